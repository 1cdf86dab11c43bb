"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for accounts -- the targets of every split.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - An account belongs to exactly one book; its parent (if any) is in the
      same book (enforced by SqlBookEngine.create_account).
    - Placeholder accounts group children and carry no splits of their own
      (not enforced here; the engine's placeholder flag is informational).
"""

from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.transaction import Split


class AccountType(str, Enum):
    """Account types understood by the bookkeeping engine."""

    BANK = "bank"
    CASH = "cash"
    CREDIT = "credit"
    ASSET = "asset"
    LIABILITY = "liability"
    STOCK = "stock"
    MUTUAL = "mutual"
    CURRENCY = "currency"
    INCOME = "income"
    EXPENSE = "expense"
    EQUITY = "equity"
    RECEIVABLE = "receivable"
    PAYABLE = "payable"
    ROOT = "root"
    TRADING = "trading"


class Account(TrackedBase):
    """
    One node in a book's account tree.

    Guarantees:
        - name is non-null; code may be empty.
        - account_type is an AccountType value.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        Index("idx_account_book", "book_id"),
        Index("idx_account_type", "account_type"),
    )

    book_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("books.id"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    commodity: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    placeholder: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    hidden: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    parent: Mapped["Account | None"] = relationship(remote_side="Account.id")

    splits: Mapped[list["Split"]] = relationship(back_populates="account")

    def __repr__(self) -> str:
        return f"<Account {self.code or ''}: {self.name}>"
