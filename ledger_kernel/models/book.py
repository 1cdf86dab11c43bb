"""
Module: ledger_kernel.models.book
Responsibility: ORM persistence for books, the container every other
    reference-engine entity belongs to.
Architecture position: Kernel > Models.  May import from db/ only.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class Book(TrackedBase):
    """
    A self-contained set of accounts, transactions and business records.

    Guarantees:
        - currency is the book's default ISO 4217 code.
    """

    __tablename__ = "books"

    name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    def __repr__(self) -> str:
        return f"<Book {self.name or self.id}>"
