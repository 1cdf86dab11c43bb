"""Database layer of the reference engine - engine, base classes, types."""

from ledger_kernel.db.base import Base, TrackedBase, UUIDString
from ledger_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from ledger_kernel.db.types import InvalidCurrencyError, validate_currency

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "reset_engine",
    "Base",
    "TrackedBase",
    "UUIDString",
    "InvalidCurrencyError",
    "validate_currency",
]
