"""ORM models of the reference bookkeeping engine."""

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
from ledger_kernel.models.transaction import ReconcileFlag, Split, Transaction

__all__ = [
    "Book",
    "Account",
    "AccountType",
    "Transaction",
    "Split",
    "ReconcileFlag",
    "Customer",
    "Vendor",
    "Employee",
    "Job",
    "TaxTable",
    "TaxTableEntry",
    "Invoice",
    "InvoiceEntry",
]
