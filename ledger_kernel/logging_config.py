"""
Structured JSON logging for the ledger kernel.

Every record is one JSON object: the envelope (ts, level, logger, message),
the bound LogContext fields, the ``extra`` payload and, for exceptions, the
kernel error code plus the error's structured attributes.  Exact values keep
their exact form: a RationalValue renders as ``"n/d"`` and an EntityRef as
``{"kind": ..., "guid": ...}``.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, is_dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator
from uuid import UUID

ROOT_LOGGER = "ledger_kernel"

_CONTEXT_FIELDS = ("correlation_id", "book_id", "actor_id", "entity_id")
_CONTEXT: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"ledger_log_{name}", default=None) for name in _CONTEXT_FIELDS
}


def _context_var(name: str) -> ContextVar[str | None]:
    try:
        return _CONTEXT[name]
    except KeyError:
        raise TypeError(f"Unknown log context field: {name!r}") from None


class LogContext:
    """Request-scoped fields merged into every record; async- and thread-safe."""

    @staticmethod
    def set(**fields: str | None) -> None:
        """Set the given fields; None leaves a field unchanged."""
        for name, value in fields.items():
            if value is not None:
                _context_var(name).set(value)

    @staticmethod
    def get_all() -> dict[str, str]:
        values = {name: var.get() for name, var in _CONTEXT.items()}
        return {name: value for name, value in values.items() if value is not None}

    @staticmethod
    def clear() -> None:
        for var in _CONTEXT.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """Set fields for the duration of the block, then restore them."""
        tokens = [
            (_context_var(name), _context_var(name).set(value))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_RECORD_ATTRIBUTES: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    # RationalValue; duck-typed because the domain package imports this module
    if hasattr(obj, "numerator") and hasattr(obj, "denominator"):
        return str(obj)
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if not name.startswith("_") and name != "code":
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON line per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        for key, value in vars(record).items():
            if key not in _RECORD_ATTRIBUTES and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger under the ledger_kernel namespace, e.g. ``services.book_engine``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ledger_kernel logger.

    ``level`` may be a level name as written in the configuration file.
    Only the first call has an effect until reset_logging().
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

        root = logging.getLogger(ROOT_LOGGER)
        root.setLevel(level.upper() if isinstance(level, str) else level)
        root.propagate = False

        handler = handler or logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())
        root.addHandler(handler)


def reset_logging() -> None:
    """Undo configure_logging(). For tests."""
    global _configured
    with _lock:
        _configured = False
        root = logging.getLogger(ROOT_LOGGER)
        root.handlers.clear()
        root.setLevel(logging.WARNING)
