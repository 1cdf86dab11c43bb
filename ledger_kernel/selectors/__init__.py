"""Selectors for the reference engine (read side)."""

from ledger_kernel.selectors.book_selector import (
    AccountDTO,
    BookSelector,
    InvoiceDTO,
    InvoiceEntryDTO,
    SplitDTO,
    TransactionDTO,
)
from ledger_kernel.selectors.search_selector import SearchSelector, field_paths

__all__ = [
    "BookSelector",
    "SearchSelector",
    "field_paths",
    "AccountDTO",
    "InvoiceDTO",
    "InvoiceEntryDTO",
    "SplitDTO",
    "TransactionDTO",
]
