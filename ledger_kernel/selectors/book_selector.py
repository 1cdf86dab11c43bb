"""
Module: ledger_kernel.selectors.book_selector
Responsibility: Read-only DTO access to what the reference engine has
    persisted: transactions with their splits, accounts, and invoices with
    their entries.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only: no mutations performed on any queried data.
    - DTO convention: public methods return frozen dataclasses, never ORM
      instances.  Rationals come back as RationalValue, unreduced.
    - Child rows (splits, entries) are in insertion order.

Failure modes:
    - Returns None when the requested entity does not exist.
"""

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from ledger_kernel.domain.owner import Owner
from ledger_kernel.domain.rational import RationalValue
from ledger_kernel.domain.references import EntityKind, EntityRef
from ledger_kernel.models.account import Account
from ledger_kernel.models.business import Invoice
from ledger_kernel.models.transaction import Split, Transaction
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class SplitDTO:
    id: UUID
    account_id: UUID
    value: RationalValue
    amount: RationalValue
    memo: str | None
    action: str | None
    reconcile_flag: str


@dataclass(frozen=True)
class TransactionDTO:
    id: UUID
    book_id: UUID
    currency: str
    num: str | None
    description: str | None
    notes: str | None
    date_posted: datetime | None
    splits: tuple[SplitDTO, ...]

    @property
    def imbalance(self) -> RationalValue:
        return RationalValue.sum(split.value for split in self.splits)

    @property
    def is_balanced(self) -> bool:
        return self.imbalance.is_zero


@dataclass(frozen=True)
class AccountDTO:
    id: UUID
    name: str
    code: str | None
    account_type: str
    parent_id: UUID | None
    placeholder: bool
    hidden: bool


@dataclass(frozen=True)
class InvoiceEntryDTO:
    id: UUID
    description: str
    action: str | None
    account_id: UUID
    quantity: RationalValue
    price: RationalValue
    taxable: bool
    tax_included: bool
    tax_table_id: UUID | None
    discount: RationalValue | None
    discount_type: str


@dataclass(frozen=True)
class InvoiceDTO:
    id: UUID
    invoice_id: str | None
    invoice_type: str
    owner: Owner
    currency: str
    notes: str | None
    billing_id: str | None
    date_opened: date | None
    entries: tuple[InvoiceEntryDTO, ...]


def _guid(ref: EntityRef | UUID) -> UUID:
    return ref.guid if isinstance(ref, EntityRef) else ref


class BookSelector(BaseSelector):
    """
    Selector for persisted book contents.

    Guarantees:
        - Read-only.
        - Children eager-loaded via selectinload.
    """

    def _split_dto(self, split: Split) -> SplitDTO:
        return SplitDTO(
            id=split.id,
            account_id=split.account_id,
            value=split.value,
            amount=split.amount,
            memo=split.memo,
            action=split.action,
            reconcile_flag=split.reconcile_flag,
        )

    def _transaction_dto(self, txn: Transaction) -> TransactionDTO:
        return TransactionDTO(
            id=txn.id,
            book_id=txn.book_id,
            currency=txn.currency,
            num=txn.num,
            description=txn.description,
            notes=txn.notes,
            date_posted=txn.date_posted,
            splits=tuple(self._split_dto(s) for s in sorted(txn.splits, key=lambda s: s.seq)),
        )

    def get_transaction(self, ref: EntityRef | UUID) -> TransactionDTO | None:
        stmt = (
            select(Transaction)
            .options(selectinload(Transaction.splits))
            .where(Transaction.id == _guid(ref))
        )
        txn = self.session.scalars(stmt).one_or_none()
        return self._transaction_dto(txn) if txn is not None else None

    def list_transactions(self, book: EntityRef) -> list[TransactionDTO]:
        stmt = (
            select(Transaction)
            .options(selectinload(Transaction.splits))
            .where(Transaction.book_id == book.guid)
            .order_by(Transaction.seq)
        )
        return [self._transaction_dto(t) for t in self.session.scalars(stmt)]

    def get_split(self, ref: EntityRef | UUID) -> SplitDTO | None:
        split = self.session.get(Split, _guid(ref))
        return self._split_dto(split) if split is not None else None

    def get_account(self, ref: EntityRef | UUID) -> AccountDTO | None:
        account = self.session.get(Account, _guid(ref))
        if account is None:
            return None
        return AccountDTO(
            id=account.id,
            name=account.name,
            code=account.code,
            account_type=account.account_type,
            parent_id=account.parent_id,
            placeholder=account.placeholder,
            hidden=account.hidden,
        )

    def account_balance(self, ref: EntityRef | UUID) -> RationalValue:
        """Exact sum of the amounts of every split against the account."""
        stmt = select(Split).where(Split.account_id == _guid(ref)).order_by(Split.seq)
        return RationalValue.sum(split.amount for split in self.session.scalars(stmt))

    def get_invoice(self, ref: EntityRef | UUID) -> InvoiceDTO | None:
        stmt = (
            select(Invoice)
            .options(selectinload(Invoice.entries))
            .where(Invoice.id == _guid(ref))
        )
        invoice = self.session.scalars(stmt).one_or_none()
        if invoice is None:
            return None
        entries = tuple(
            InvoiceEntryDTO(
                id=entry.id,
                description=entry.description,
                action=entry.action,
                account_id=entry.account_id,
                quantity=entry.quantity,
                price=entry.price,
                taxable=entry.taxable,
                tax_included=entry.tax_included,
                tax_table_id=entry.tax_table_id,
                discount=entry.discount,
                discount_type=entry.discount_type,
            )
            for entry in sorted(invoice.entries, key=lambda e: e.seq)
        )
        return InvoiceDTO(
            id=invoice.id,
            invoice_id=invoice.invoice_id,
            invoice_type=invoice.invoice_type,
            owner=invoice.owner,
            currency=invoice.currency,
            notes=invoice.notes,
            billing_id=invoice.billing_id,
            date_opened=invoice.date_opened,
            entries=entries,
        )

    def invoice_refs(self, book: EntityRef) -> list[EntityRef]:
        stmt = select(Invoice.id).where(Invoice.book_id == book.guid).order_by(Invoice.seq)
        return [EntityRef(EntityKind.INVOICE, guid) for guid in self.session.scalars(stmt)]
