"""
LedgerConfig schema.

Typed, frozen view of a configuration YAML file.  The loader parses raw
YAML into these types; get_active_config() is the only runtime entrypoint.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import (
    ROUND_05UP,
    ROUND_CEILING,
    ROUND_DOWN,
    ROUND_FLOOR,
    ROUND_HALF_DOWN,
    ROUND_HALF_EVEN,
    ROUND_HALF_UP,
    ROUND_UP,
)

ROUNDING_MODES = frozenset(
    {
        ROUND_05UP,
        ROUND_CEILING,
        ROUND_DOWN,
        ROUND_FLOOR,
        ROUND_HALF_DOWN,
        ROUND_HALF_EVEN,
        ROUND_HALF_UP,
        ROUND_UP,
    }
)


@dataclass(frozen=True)
class DatabaseConfig:
    """Where the reference engine keeps its tables."""

    url: str = "sqlite://"
    echo: bool = False


@dataclass(frozen=True)
class MoneyConfig:
    """
    How the engine rounds exact values onto a currency.

    currency_fraction is the number of smallest units per whole unit
    (100 for cents); rounding is a ``decimal`` rounding mode name.
    """

    default_currency: str = "USD"
    currency_fraction: int = 100
    rounding: str = ROUND_HALF_UP


@dataclass(frozen=True)
class QueryConfig:
    default_result_limit: int | None = None


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class LedgerConfig:
    """The complete runtime configuration."""

    config_id: str
    version: int
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    money: MoneyConfig = field(default_factory=MoneyConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    checksum: str = ""
