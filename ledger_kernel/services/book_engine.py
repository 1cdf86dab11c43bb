"""
SqlBookEngine -- Reference bookkeeping engine on SQLAlchemy.

Responsibility:
    Implements the AccountingEngine port over the ORM models in
    ``ledger_kernel.models``: reference resolution, a SAVEPOINT-backed edit
    cycle, search via SearchSelector, transaction and invoice creation, tax
    table and job-owner lookups, and the engine's own invoice totals.  Also
    offers the setup operations callers need to populate a book (accounts,
    customers, vendors, employees, jobs, tax tables).

Architecture position:
    Kernel > Services -- adapter behind the domain port.  The domain layer
    and the assemblers know only AccountingEngine.

Invariants enforced:
    - Every created row belongs to the book it was created for; references
      into another book are EntityNotFoundError.
    - The edit cycle maps onto ``Session.begin_nested()``: a rolled-back
      edit leaves no rows behind while the outer transaction survives.
    - Invoice totals are computed per entry, with net and tax each rounded
      onto the currency fraction before summing.

Failure modes:
    - EntityNotFoundError for unknown or foreign references.
    - InvalidOwnerError when a job is given an owner other than a customer
      or vendor.
    - SQLAlchemy errors from flush propagate unchanged.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP
from typing import TYPE_CHECKING, Sequence
from uuid import UUID

from sqlalchemy.orm import Session, SessionTransaction

from ledger_kernel.db.types import DEFAULT_CURRENCY_FRACTION, validate_currency
from ledger_kernel.domain.engine_port import (
    AccountingEngine,
    InvoiceRequest,
    TransactionRequest,
)
from ledger_kernel.domain.invoicing import (
    DiscountType,
    InvoiceTotals,
    TaxAmountType,
    TaxRate,
    compute_entry_amounts,
)
from ledger_kernel.domain.owner import CustomerOwner, Owner, VendorOwner
from ledger_kernel.domain.query import SearchRequest
from ledger_kernel.domain.rational import RationalValue
from ledger_kernel.domain.references import EntityKind, EntityRef
from ledger_kernel.exceptions import EntityNotFoundError, InvalidOwnerError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.book import Book
from ledger_kernel.models.business import (
    Customer,
    Employee,
    Invoice,
    InvoiceEntry,
    Job,
    TaxTable,
    TaxTableEntry,
    Vendor,
)
from ledger_kernel.models.transaction import Split, Transaction
from ledger_kernel.selectors.search_selector import SearchSelector
from ledger_kernel.services.base import BaseService

if TYPE_CHECKING:
    from ledger_config.schema import LedgerConfig

logger = get_logger("services.book_engine")

_MODELS = {
    EntityKind.BOOK: Book,
    EntityKind.ACCOUNT: Account,
    EntityKind.TRANSACTION: Transaction,
    EntityKind.SPLIT: Split,
    EntityKind.CUSTOMER: Customer,
    EntityKind.VENDOR: Vendor,
    EntityKind.EMPLOYEE: Employee,
    EntityKind.JOB: Job,
    EntityKind.TAX_TABLE: TaxTable,
    EntityKind.INVOICE: Invoice,
    EntityKind.ENTRY: InvoiceEntry,
}


def _owning_book_id(obj) -> UUID:
    if isinstance(obj, Book):
        return obj.id
    if isinstance(obj, Split):
        return obj.transaction.book_id
    if isinstance(obj, InvoiceEntry):
        return obj.invoice.book_id
    return obj.book_id


class SqlBookEngine(BaseService, AccountingEngine):
    """
    AccountingEngine backed by a caller-owned SQLAlchemy Session.

    Contract:
        The caller owns the outer transaction.  Commit requests flush inside
        the current edit's savepoint; nothing is committed to the database
        until the caller commits the session.

    Guarantees:
        - search() returns references in insertion order.
        - A query without its own result limit gets default_result_limit.

    Non-goals:
        - Not safe for concurrent use; one session, one caller.
        - No multi-currency conversion: split value and amount are equal.
    """

    def __init__(
        self,
        session: Session,
        *,
        currency_fraction: int = DEFAULT_CURRENCY_FRACTION,
        rounding: str = ROUND_HALF_UP,
        default_result_limit: int | None = None,
    ):
        super().__init__(session)
        if currency_fraction <= 0:
            raise ValueError(f"currency_fraction must be positive, got {currency_fraction}")
        self.currency_fraction = currency_fraction
        self.rounding = rounding
        self.default_result_limit = default_result_limit
        self._searcher = SearchSelector(session)

    @classmethod
    def from_config(cls, session: Session, config: LedgerConfig) -> SqlBookEngine:
        return cls(
            session,
            currency_fraction=config.money.currency_fraction,
            rounding=config.money.rounding,
            default_result_limit=config.query.default_result_limit,
        )

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _load(self, ref: EntityRef, kind: EntityKind | None = None):
        if kind is not None and ref.kind != kind:
            raise EntityNotFoundError(kind.value, ref.guid)
        obj = self.session.get(_MODELS[ref.kind], ref.guid)
        if obj is None:
            raise EntityNotFoundError(ref.kind.value, ref.guid)
        return obj

    def _load_in_book(self, ref: EntityRef, kind: EntityKind, book_id: UUID):
        obj = self._load(ref, kind)
        if obj.book_id != book_id:
            raise EntityNotFoundError(kind.value, ref.guid)
        return obj

    def resolve(
        self,
        ref: EntityRef,
        kind: EntityKind | None = None,
        book: EntityRef | None = None,
    ) -> bool:
        if kind is not None and ref.kind != kind:
            return False
        obj = self.session.get(_MODELS[ref.kind], ref.guid)
        if obj is None:
            return False
        return book is None or _owning_book_id(obj) == book.guid

    # ------------------------------------------------------------------
    # Edit cycle
    # ------------------------------------------------------------------

    def begin_edit(self) -> SessionTransaction:
        return self.session.begin_nested()

    def commit_edit(self, token: SessionTransaction) -> None:
        token.commit()

    def rollback_edit(self, token: SessionTransaction) -> None:
        # A failed flush leaves the savepoint deactivated but still open.
        if self.session.get_nested_transaction() is token:
            token.rollback()

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, request: SearchRequest) -> list[EntityRef]:
        self._load(request.book, EntityKind.BOOK)
        if request.result_limit is None and self.default_result_limit is not None:
            request = SearchRequest(
                target=request.target,
                book=request.book,
                terms=request.terms,
                result_limit=self.default_result_limit,
            )
        return self._searcher.search(request)

    # ------------------------------------------------------------------
    # Commit requests
    # ------------------------------------------------------------------

    def create_transaction(self, book: EntityRef, request: TransactionRequest) -> EntityRef:
        book_row = self._load(book, EntityKind.BOOK)
        txn = Transaction(
            book_id=book_row.id,
            currency=validate_currency(request.currency),
            num=request.num,
            description=request.description,
            notes=request.notes,
            date_posted=request.date_posted,
        )
        for split_request in request.splits:
            account = self._load_in_book(split_request.account, EntityKind.ACCOUNT, book_row.id)
            txn.splits.append(
                Split(
                    account_id=account.id,
                    memo=split_request.memo,
                    value=split_request.amount,
                    amount=split_request.amount,
                )
            )
        self.session.add(txn)
        self.session.flush()

        logger.info(
            "transaction_created",
            extra={
                "transaction_id": str(txn.id),
                "book_id": str(book_row.id),
                "split_count": len(request.splits),
            },
        )
        return EntityRef(EntityKind.TRANSACTION, txn.id)

    def create_invoice(self, book: EntityRef, request: InvoiceRequest) -> EntityRef:
        book_row = self._load(book, EntityKind.BOOK)
        if request.owner.ref is not None:
            self._load_in_book(request.owner.ref, request.owner.ref.kind, book_row.id)

        invoice = Invoice(
            book_id=book_row.id,
            invoice_id=request.invoice_id,
            invoice_type=request.invoice_type.value,
            owner=request.owner,
            currency=validate_currency(request.currency),
            notes=request.notes,
            billing_id=request.billing_id,
            date_opened=request.date_opened,
        )
        for entry_request in request.entries:
            account = self._load_in_book(entry_request.account, EntityKind.ACCOUNT, book_row.id)
            tax_table_id = None
            if entry_request.tax_table is not None:
                tax_table_id = self._load_in_book(
                    entry_request.tax_table, EntityKind.TAX_TABLE, book_row.id
                ).id
            invoice.entries.append(
                InvoiceEntry(
                    description=entry_request.description,
                    action=entry_request.action,
                    account_id=account.id,
                    quantity=entry_request.quantity,
                    price=entry_request.unit_price,
                    taxable=entry_request.taxable,
                    tax_included=entry_request.tax_included,
                    tax_table_id=tax_table_id,
                    discount=entry_request.discount,
                    discount_type=entry_request.discount_type.value,
                )
            )
        self.session.add(invoice)
        self.session.flush()

        logger.info(
            "invoice_created",
            extra={
                "invoice_guid": str(invoice.id),
                "invoice_id": request.invoice_id,
                "invoice_type": request.invoice_type.value,
                "entry_count": len(request.entries),
            },
        )
        return EntityRef(EntityKind.INVOICE, invoice.id)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def tax_table_entries(self, ref: EntityRef) -> tuple[TaxRate, ...]:
        table = self._load(ref, EntityKind.TAX_TABLE)
        return tuple(
            TaxRate(
                amount_type=TaxAmountType(entry.amount_type),
                amount=entry.amount,
                account=(
                    EntityRef(EntityKind.ACCOUNT, entry.account_id)
                    if entry.account_id is not None
                    else None
                ),
            )
            for entry in table.entries
        )

    def invoice_totals(self, ref: EntityRef) -> InvoiceTotals:
        """
        Subtotal and tax as this engine books them.

        Each entry's net and tax are brought onto the currency fraction
        before summing, as a ledger posting would.
        """
        invoice = self._load(ref, EntityKind.INVOICE)
        subtotal = RationalValue.zero()
        tax = RationalValue.zero()
        for entry in invoice.entries:
            rates: Sequence[TaxRate] = ()
            if entry.tax_table_id is not None:
                rates = self.tax_table_entries(EntityRef(EntityKind.TAX_TABLE, entry.tax_table_id))
            amounts = compute_entry_amounts(
                entry.price,
                entry.quantity,
                rates,
                taxable=entry.taxable,
                tax_included=entry.tax_included,
                discount=entry.discount,
                discount_type=DiscountType(entry.discount_type),
            )
            subtotal = subtotal.add(amounts.net.convert(self.currency_fraction, self.rounding))
            tax = tax.add(amounts.tax.convert(self.currency_fraction, self.rounding))
        return InvoiceTotals(subtotal=subtotal, tax=tax)

    def job_owner(self, ref: EntityRef) -> Owner:
        job = self._load(ref, EntityKind.JOB)
        return job.owner

    # ------------------------------------------------------------------
    # Setup operations
    # ------------------------------------------------------------------

    def create_book(self, name: str | None = None, currency: str = "USD") -> EntityRef:
        book = Book(name=name, currency=validate_currency(currency))
        self.session.add(book)
        self.session.flush()
        logger.info("book_created", extra={"book_id": str(book.id), "book_name": name})
        return EntityRef(EntityKind.BOOK, book.id)

    def create_account(
        self,
        book: EntityRef,
        name: str,
        account_type: AccountType | str,
        *,
        code: str | None = None,
        description: str | None = None,
        parent: EntityRef | None = None,
        commodity: str | None = None,
        placeholder: bool = False,
        hidden: bool = False,
    ) -> EntityRef:
        book_row = self._load(book, EntityKind.BOOK)
        parent_id = None
        if parent is not None:
            parent_id = self._load_in_book(parent, EntityKind.ACCOUNT, book_row.id).id
        account = Account(
            book_id=book_row.id,
            name=name,
            code=code,
            description=description,
            account_type=AccountType(account_type).value,
            commodity=validate_currency(commodity or book_row.currency),
            placeholder=placeholder,
            hidden=hidden,
            parent_id=parent_id,
        )
        self.session.add(account)
        self.session.flush()
        return EntityRef(EntityKind.ACCOUNT, account.id)

    def _create_party(
        self,
        model,
        kind: EntityKind,
        book: EntityRef,
        name: str,
        id_code: str | None,
        currency: str | None,
    ) -> EntityRef:
        book_row = self._load(book, EntityKind.BOOK)
        party = model(
            book_id=book_row.id,
            name=name,
            id_code=id_code,
            currency=validate_currency(currency or book_row.currency),
        )
        self.session.add(party)
        self.session.flush()
        logger.info(
            "party_created",
            extra={"party_kind": kind.value, "party_id": str(party.id), "id_code": id_code},
        )
        return EntityRef(kind, party.id)

    def create_customer(
        self,
        book: EntityRef,
        name: str,
        *,
        id_code: str | None = None,
        currency: str | None = None,
    ) -> EntityRef:
        return self._create_party(Customer, EntityKind.CUSTOMER, book, name, id_code, currency)

    def create_vendor(
        self,
        book: EntityRef,
        name: str,
        *,
        id_code: str | None = None,
        currency: str | None = None,
    ) -> EntityRef:
        return self._create_party(Vendor, EntityKind.VENDOR, book, name, id_code, currency)

    def create_employee(
        self,
        book: EntityRef,
        name: str,
        *,
        id_code: str | None = None,
        currency: str | None = None,
    ) -> EntityRef:
        return self._create_party(Employee, EntityKind.EMPLOYEE, book, name, id_code, currency)

    def create_job(
        self,
        book: EntityRef,
        owner: Owner,
        name: str,
        *,
        id_code: str | None = None,
        reference: str | None = None,
    ) -> EntityRef:
        """
        Raises:
            InvalidOwnerError: If the owner is not a customer or vendor.
        """
        if not isinstance(owner, (CustomerOwner, VendorOwner)):
            raise InvalidOwnerError(
                owner.owner_type.value, "a job must be owned by a customer or vendor"
            )
        book_row = self._load(book, EntityKind.BOOK)
        self._load_in_book(owner.ref, owner.ref.kind, book_row.id)
        job = Job(book_id=book_row.id, name=name, id_code=id_code, reference=reference, owner=owner)
        self.session.add(job)
        self.session.flush()
        return EntityRef(EntityKind.JOB, job.id)

    def create_tax_table(self, book: EntityRef, name: str, rates: Sequence[TaxRate]) -> EntityRef:
        book_row = self._load(book, EntityKind.BOOK)
        table = TaxTable(book_id=book_row.id, name=name)
        for rate in rates:
            account_id = None
            if rate.account is not None:
                account_id = self._load_in_book(rate.account, EntityKind.ACCOUNT, book_row.id).id
            table.entries.append(
                TaxTableEntry(
                    amount_type=TaxAmountType(rate.amount_type).value,
                    amount=rate.amount,
                    account_id=account_id,
                )
            )
        self.session.add(table)
        self.session.flush()
        return EntityRef(EntityKind.TAX_TABLE, table.id)
