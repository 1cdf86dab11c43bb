"""
Module: ledger_kernel.models.business
Responsibility: ORM persistence for the business side of a book --
    customers, vendors, employees, jobs, tax tables, invoices and their
    entries.
Architecture position: Kernel > Models.  May import from db/ and the pure
    domain value types only.

Invariants enforced:
    - An invoice or job stores its owner as (owner_type, owner_id); the
      pair maps one-to-one onto the Owner sum type.
    - Entries and tax-table lines load in insertion order (``seq``).
    - Quantities, prices, discounts and tax amounts are exact rationals.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.owner import Owner, OwnerType, owner_from_ref
from ledger_kernel.domain.references import EntityKind, EntityRef
from ledger_kernel.models.rational_columns import rational_property


class _Party(TrackedBase):
    """Columns shared by customers, vendors and employees."""

    __abstract__ = True

    book_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("books.id"),
        nullable=False,
    )

    id_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)


class Customer(_Party):
    __tablename__ = "customers"


class Vendor(_Party):
    __tablename__ = "vendors"


class Employee(_Party):
    __tablename__ = "employees"


class _OwnedMixin:
    """(owner_type, owner_id) columns read and written as an Owner."""

    @property
    def owner(self) -> Owner:
        if self.owner_type is None or self.owner_type == OwnerType.UNDEFINED.value:
            return owner_from_ref(None)
        return owner_from_ref(EntityRef(EntityKind(self.owner_type), self.owner_id))

    @owner.setter
    def owner(self, owner: Owner) -> None:
        self.owner_type = owner.owner_type.value
        self.owner_id = owner.ref.guid if owner.ref is not None else None


class Job(_OwnedMixin, TrackedBase):
    """A piece of work for a customer or vendor."""

    __tablename__ = "jobs"

    book_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("books.id"),
        nullable=False,
    )

    id_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    owner_type: Mapped[str] = mapped_column(String(20), nullable=False)

    owner_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)


class TaxTable(TrackedBase):
    __tablename__ = "tax_tables"

    book_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("books.id"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    entries: Mapped[list["TaxTableEntry"]] = relationship(
        back_populates="tax_table",
        order_by="TaxTableEntry.seq",
        cascade="all, delete-orphan",
    )


class TaxTableEntry(TrackedBase):
    """One rate of a tax table, either a percentage or a flat value."""

    __tablename__ = "tax_table_entries"

    tax_table_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tax_tables.id"),
        nullable=False,
    )

    account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    amount_type: Mapped[str] = mapped_column(String(10), nullable=False)

    amount_num: Mapped[int] = mapped_column(nullable=False)
    amount_denom: Mapped[int] = mapped_column(nullable=False)

    amount = rational_property("amount_num", "amount_denom")

    tax_table: Mapped[TaxTable] = relationship(back_populates="entries")


class Invoice(_OwnedMixin, TrackedBase):
    """
    An invoice, bill or voucher, depending on invoice_type.

    Guarantees:
        - entries load in the order they were added.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        Index("idx_invoice_book", "book_id"),
        Index("idx_invoice_owner", "owner_type", "owner_id"),
    )

    book_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("books.id"),
        nullable=False,
    )

    invoice_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    invoice_type: Mapped[str] = mapped_column(String(30), nullable=False)

    owner_type: Mapped[str] = mapped_column(String(20), nullable=False)

    owner_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    billing_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    date_opened: Mapped[date | None] = mapped_column(Date, nullable=True)

    entries: Mapped[list["InvoiceEntry"]] = relationship(
        back_populates="invoice",
        order_by="InvoiceEntry.seq",
        cascade="all, delete-orphan",
    )


class InvoiceEntry(TrackedBase):
    """One line of an invoice."""

    __tablename__ = "invoice_entries"

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("invoices.id"),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(String(4000), nullable=False)

    action: Mapped[str | None] = mapped_column(String(50), nullable=True)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    quantity_num: Mapped[int] = mapped_column(nullable=False)
    quantity_denom: Mapped[int] = mapped_column(nullable=False)
    price_num: Mapped[int] = mapped_column(nullable=False)
    price_denom: Mapped[int] = mapped_column(nullable=False)

    quantity = rational_property("quantity_num", "quantity_denom")
    price = rational_property("price_num", "price_denom")

    taxable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    tax_included: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    tax_table_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("tax_tables.id"),
        nullable=True,
    )

    discount_num: Mapped[int | None] = mapped_column(nullable=True)
    discount_denom: Mapped[int | None] = mapped_column(nullable=True)

    discount = rational_property("discount_num", "discount_denom")

    discount_type: Mapped[str] = mapped_column(String(10), nullable=False, default="percent")

    invoice: Mapped[Invoice] = relationship(back_populates="entries")
