"""
Pure domain layer.

Value objects, predicate queries, owners, invoice arithmetic and the
abstract engine port.  No dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All value objects are immutable.
"""

from ledger_kernel.domain.engine_port import (
    AccountingEngine,
    EntryRequest,
    InvoiceRequest,
    SplitRequest,
    TransactionRequest,
)
from ledger_kernel.domain.invoicing import (
    DiscountType,
    EntryAmounts,
    InvoiceTotals,
    InvoiceType,
    TaxAmountType,
    TaxRate,
    compute_entry_amounts,
    invoice_type_for,
    total_entries,
)
from ledger_kernel.domain.owner import (
    CustomerOwner,
    EmployeeOwner,
    JobOwner,
    Owner,
    OwnerType,
    UndefinedOwner,
    VendorOwner,
    end_owner,
    owner_from_ref,
)
from ledger_kernel.domain.query import (
    Combinator,
    Params,
    PredicateQuery,
    QueryOp,
    QueryTerm,
    SearchRequest,
    SearchTarget,
)
from ledger_kernel.domain.rational import RationalValue
from ledger_kernel.domain.references import EntityKind, EntityRef

__all__ = [
    # Values
    "RationalValue",
    "EntityKind",
    "EntityRef",
    # Owners
    "Owner",
    "OwnerType",
    "UndefinedOwner",
    "CustomerOwner",
    "VendorOwner",
    "EmployeeOwner",
    "JobOwner",
    "owner_from_ref",
    "end_owner",
    # Queries
    "PredicateQuery",
    "QueryTerm",
    "QueryOp",
    "Combinator",
    "Params",
    "SearchRequest",
    "SearchTarget",
    # Invoicing
    "DiscountType",
    "TaxAmountType",
    "TaxRate",
    "InvoiceType",
    "InvoiceTotals",
    "EntryAmounts",
    "compute_entry_amounts",
    "total_entries",
    "invoice_type_for",
    # Engine port
    "AccountingEngine",
    "SplitRequest",
    "TransactionRequest",
    "EntryRequest",
    "InvoiceRequest",
]
