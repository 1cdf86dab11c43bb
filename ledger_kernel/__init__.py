"""
Ledger Kernel

A domain layer above a double-entry bookkeeping engine with:
- Exact rational arithmetic for every monetary and quantity value
- Composable predicate queries over splits, transactions and accounts
- Validating builders for balanced transactions and tax-aware invoices
- A SQLAlchemy reference engine behind an abstract engine port
"""

__version__ = "0.1.0"
