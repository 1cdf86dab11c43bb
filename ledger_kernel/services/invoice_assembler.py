"""
InvoiceAssembler -- Validating builder for invoices, bills and vouchers.

Responsibility:
    Accumulates an invoice header (id, owner, notes, date opened, billing
    id, currency) and an ordered list of entries, computes the subtotal and
    tax exactly, commits the invoice through the engine, and cross-checks
    the engine's own totals against the local ones.

Architecture position:
    Kernel > Services -- depends on the AccountingEngine port only.

Invariants enforced:
    - An invoice has a defined owner and at least one entry.
    - Every entry names an account the engine resolves within the book.
    - subtotal = sum of entry nets; tax = sum of entry taxes; computed in
      exact rational arithmetic before anything is committed.
    - Every referenced tax table is looked up before the commit.

Failure modes:
    - MissingOwnerError, EmptyInvoiceError, MissingAccountReferenceError
      -- local validation; nothing committed.
    - EntityNotFoundError -- unknown tax table or job; nothing committed.
    - InvalidOwnerError -- a job not owned by a customer or vendor.
    - ExternalCommitFailedError -- the engine failed to commit.
    - EngineTotalMismatchError -- raised AFTER the commit when the engine's
      totals disagree; carries the committed invoice reference.

Audit relevance:
    A total mismatch is logged at WARNING with both sets of totals before
    the error is raised, so the committed invoice can be traced and voided.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from ledger_kernel.db.types import validate_currency
from ledger_kernel.domain.engine_port import (
    AccountingEngine,
    EntryRequest,
    InvoiceRequest,
)
from ledger_kernel.domain.invoicing import (
    DiscountType,
    EntryAmounts,
    InvoiceTotals,
    InvoiceType,
    TaxRate,
    compute_entry_amounts,
    invoice_type_for,
    total_entries,
)
from ledger_kernel.domain.owner import Owner, UndefinedOwner, is_undefined
from ledger_kernel.domain.rational import RationalValue
from ledger_kernel.domain.references import EntityKind, EntityRef
from ledger_kernel.exceptions import (
    EmptyInvoiceError,
    EngineTotalMismatchError,
    ExternalCommitFailedError,
    MissingAccountReferenceError,
    MissingOwnerError,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.invoice_assembler")


@dataclass(frozen=True, slots=True)
class EntrySpec:
    """One pending invoice line; consumed by build()."""

    description: str
    unit_price: RationalValue
    quantity: RationalValue
    account: EntityRef | None
    taxable: bool = False
    tax_table: EntityRef | None = None
    tax_included: bool = False
    discount: RationalValue | None = None
    discount_type: DiscountType = DiscountType.PERCENT
    action: str | None = None


@dataclass(frozen=True, slots=True)
class BuiltInvoice:
    ref: EntityRef
    invoice_type: InvoiceType
    totals: InvoiceTotals


class InvoiceAssembler:
    """
    Accumulate entries and header fields, then build() one invoice.

    Contract:
        Accumulation methods return the assembler for chaining.  Entries
        keep the order they were added in.  build() leaves the assembler
        unchanged.

    Guarantees:
        - At most one create_invoice() request per build().
        - The returned totals are the exact, locally computed ones.
    """

    def __init__(self, engine: AccountingEngine, book: EntityRef, *, currency: str = "USD"):
        self._engine = engine
        self._book = book
        self._currency = validate_currency(currency)
        self._invoice_id: str | None = None
        self._owner: Owner = UndefinedOwner()
        self._notes: str | None = None
        self._billing_id: str | None = None
        self._date_opened: date | None = None
        self._entries: list[EntrySpec] = []

    # ------------------------------------------------------------------
    # Header
    # ------------------------------------------------------------------

    def id(self, invoice_id: str) -> InvoiceAssembler:
        self._invoice_id = invoice_id
        return self

    def owner(self, owner: Owner) -> InvoiceAssembler:
        self._owner = owner
        return self

    def notes(self, text: str) -> InvoiceAssembler:
        self._notes = text
        return self

    def billing_id(self, billing_id: str) -> InvoiceAssembler:
        self._billing_id = billing_id
        return self

    def date_opened(self, day: int, month: int, year: int) -> InvoiceAssembler:
        self._date_opened = date(year, month, day)
        return self

    def currency(self, mnemonic: str) -> InvoiceAssembler:
        self._currency = validate_currency(mnemonic)
        return self

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def entry(
        self,
        description: str,
        price: RationalValue,
        quantity: RationalValue,
        account: EntityRef | None,
        *,
        taxable: bool = False,
        tax_table: EntityRef | None = None,
        tax_included: bool = False,
        discount: RationalValue | None = None,
        discount_type: DiscountType = DiscountType.PERCENT,
        action: str | None = None,
    ) -> InvoiceAssembler:
        """
        Add one line.

        ``discount`` is a percentage of the pre-tax line or a flat amount,
        per ``discount_type``.  ``tax_included`` means ``price`` already
        contains the table's tax.
        """
        for name, value in (("price", price), ("quantity", quantity)):
            if not isinstance(value, RationalValue):
                raise TypeError(f"Entry {name} must be a RationalValue, got {type(value).__name__}")
        self._entries.append(
            EntrySpec(
                description=description,
                unit_price=price,
                quantity=quantity,
                account=account,
                taxable=taxable,
                tax_table=tax_table,
                tax_included=tax_included,
                discount=discount,
                discount_type=DiscountType(discount_type),
                action=action,
            )
        )
        return self

    def entry_with_action(
        self,
        description: str,
        action: str,
        price: RationalValue,
        quantity: RationalValue,
        account: EntityRef | None,
        **options,
    ) -> InvoiceAssembler:
        return self.entry(description, price, quantity, account, action=action, **options)

    @property
    def entries(self) -> tuple[EntrySpec, ...]:
        return tuple(self._entries)

    # ------------------------------------------------------------------
    # Totals
    # ------------------------------------------------------------------

    def _rates_by_table(self) -> dict[EntityRef, tuple[TaxRate, ...]]:
        rates: dict[EntityRef, tuple[TaxRate, ...]] = {}
        for spec in self._entries:
            if spec.tax_table is not None and spec.tax_table not in rates:
                rates[spec.tax_table] = self._engine.tax_table_entries(spec.tax_table)
        return rates

    def entry_amounts(self) -> list[EntryAmounts]:
        """
        Value every entry.

        Raises:
            EntityNotFoundError: If a referenced tax table does not exist.
        """
        rates = self._rates_by_table()
        return [
            compute_entry_amounts(
                spec.unit_price,
                spec.quantity,
                rates.get(spec.tax_table, ()) if spec.tax_table is not None else (),
                taxable=spec.taxable,
                tax_included=spec.tax_included,
                discount=spec.discount,
                discount_type=spec.discount_type,
            )
            for spec in self._entries
        ]

    def compute_totals(self) -> InvoiceTotals:
        """Exact subtotal and tax of the current entries, without committing."""
        return total_entries(self.entry_amounts())

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def _validate(self) -> None:
        if is_undefined(self._owner):
            raise MissingOwnerError()
        if not self._entries:
            raise EmptyInvoiceError(self._invoice_id)
        for position, spec in enumerate(self._entries):
            if spec.account is None or not self._engine.resolve(
                spec.account, EntityKind.ACCOUNT, self._book
            ):
                raise MissingAccountReferenceError(position, spec.account)

    def build(self) -> BuiltInvoice:
        """
        Validate, compute totals, commit, then cross-check the engine.

        Raises:
            EngineTotalMismatchError: After a successful commit, if the
                engine's totals differ from the local ones.
        """
        self._validate()
        invoice_type = invoice_type_for(self._owner, self._engine)
        totals = self.compute_totals()

        request = InvoiceRequest(
            owner=self._owner,
            invoice_type=invoice_type,
            entries=tuple(
                EntryRequest(
                    description=spec.description,
                    unit_price=spec.unit_price,
                    quantity=spec.quantity,
                    account=spec.account,
                    taxable=spec.taxable,
                    tax_table=spec.tax_table,
                    tax_included=spec.tax_included,
                    discount=spec.discount,
                    discount_type=spec.discount_type,
                    action=spec.action,
                )
                for spec in self._entries
            ),
            currency=self._currency,
            invoice_id=self._invoice_id,
            notes=self._notes,
            billing_id=self._billing_id,
            date_opened=self._date_opened,
            expected_totals=totals,
        )

        try:
            with self._engine.edit_cycle():
                ref = self._engine.create_invoice(self._book, request)
        except Exception as exc:
            logger.error(
                "invoice_commit_failed",
                extra={"invoice_id": self._invoice_id, "entry_count": len(self._entries)},
            )
            raise ExternalCommitFailedError(
                EntityKind.INVOICE.value, f"{type(exc).__name__}: {exc}"
            ) from exc

        engine_totals = self._engine.invoice_totals(ref)
        if not totals.matches(engine_totals):
            logger.warning(
                "invoice_total_mismatch",
                extra={
                    "invoice_guid": str(ref.guid),
                    "expected_subtotal": totals.subtotal,
                    "engine_subtotal": engine_totals.subtotal,
                    "expected_tax": totals.tax,
                    "engine_tax": engine_totals.tax,
                },
            )
            raise EngineTotalMismatchError(
                ref,
                expected_subtotal=totals.subtotal,
                engine_subtotal=engine_totals.subtotal,
                expected_tax=totals.tax,
                engine_tax=engine_totals.tax,
            )

        logger.info(
            "invoice_assembled",
            extra={
                "invoice_guid": str(ref.guid),
                "invoice_id": self._invoice_id,
                "invoice_type": invoice_type.value,
                "entry_count": len(self._entries),
                "subtotal": totals.subtotal,
                "tax": totals.tax,
            },
        )
        return BuiltInvoice(ref=ref, invoice_type=invoice_type, totals=totals)
