"""Services: the reference engine and the validating assemblers (write side)."""

from ledger_kernel.services.book_engine import SqlBookEngine
from ledger_kernel.services.invoice_assembler import BuiltInvoice, EntrySpec, InvoiceAssembler
from ledger_kernel.services.transaction_assembler import SplitSpec, TransactionAssembler

__all__ = [
    "SqlBookEngine",
    "TransactionAssembler",
    "SplitSpec",
    "InvoiceAssembler",
    "EntrySpec",
    "BuiltInvoice",
]
