"""
Module: ledger_kernel.models.transaction
Responsibility: ORM persistence for transactions and their splits.
Architecture position: Kernel > Models.  May import from db/ and the pure
    RationalValue type only.

Invariants enforced:
    - Split value and amount are exact rationals stored as BigInteger
      numerator/denominator pairs with a positive denominator.
    - Splits load in insertion order (``seq``).
    - The splits of a committed transaction sum to zero (enforced by
      TransactionAssembler before the commit request, not by this model).
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.models.rational_columns import rational_property

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ReconcileFlag:
    """Single-character reconcile states."""

    NOT_RECONCILED = "n"
    CLEARED = "c"
    RECONCILED = "y"
    FROZEN = "f"
    VOIDED = "v"


class Transaction(TrackedBase):
    """
    A dated, described, balanced set of splits in one currency.
    """

    __tablename__ = "transactions"

    __table_args__ = (
        Index("idx_transaction_book", "book_id"),
        Index("idx_transaction_posted", "date_posted"),
    )

    book_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("books.id"),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    num: Mapped[str | None] = mapped_column(String(50), nullable=True)

    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    date_posted: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    date_entered: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    splits: Mapped[list["Split"]] = relationship(
        back_populates="transaction",
        order_by="Split.seq",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Transaction {self.num or ''} {self.description or ''}>"


class Split(TrackedBase):
    """
    One leg of a transaction against one account.

    ``value`` is in the transaction currency; ``amount`` in the account's
    commodity.  Without currency conversion the two are equal.
    """

    __tablename__ = "splits"

    __table_args__ = (
        Index("idx_split_transaction", "transaction_id"),
        Index("idx_split_account", "account_id"),
    )

    transaction_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("transactions.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    memo: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    action: Mapped[str | None] = mapped_column(String(50), nullable=True)

    reconcile_flag: Mapped[str] = mapped_column(
        String(1),
        nullable=False,
        default=ReconcileFlag.NOT_RECONCILED,
    )

    value_num: Mapped[int] = mapped_column(BigInteger, nullable=False)
    value_denom: Mapped[int] = mapped_column(BigInteger, nullable=False)
    amount_num: Mapped[int] = mapped_column(BigInteger, nullable=False)
    amount_denom: Mapped[int] = mapped_column(BigInteger, nullable=False)

    value = rational_property("value_num", "value_denom")
    amount = rational_property("amount_num", "amount_denom")

    transaction: Mapped[Transaction] = relationship(back_populates="splits")

    account: Mapped["Account"] = relationship(back_populates="splits")

    def __repr__(self) -> str:
        return f"<Split {self.value} {self.memo or ''}>"
