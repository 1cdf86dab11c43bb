"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``ledger_config.schema`` dataclasses.  This is tooling: runtime callers
go through ``ledger_config.get_active_config()``.

Invariants enforced
-------------------
* Every parse error raises ``ValueError`` or ``KeyError`` with a
  descriptive message; required keys have no silent defaults.
* ``compute_checksum`` is deterministic for identical input.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``config_id`` / ``version``  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    ROUNDING_MODES,
    DatabaseConfig,
    LedgerConfig,
    LoggingConfig,
    MoneyConfig,
    QueryConfig,
)

_LOG_LEVELS = frozenset(logging.getLevelNamesMapping())


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return data


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    return DatabaseConfig(
        url=str(data.get("url", "sqlite://")),
        echo=bool(data.get("echo", False)),
    )


def parse_money(data: dict[str, Any]) -> MoneyConfig:
    from ledger_kernel.db.types import validate_currency

    fraction = data.get("currency_fraction", 100)
    if not isinstance(fraction, int) or isinstance(fraction, bool) or fraction <= 0:
        raise ValueError(f"currency_fraction must be a positive integer, got {fraction!r}")

    rounding = data.get("rounding", "ROUND_HALF_UP")
    if rounding not in ROUNDING_MODES:
        raise ValueError(
            f"Unknown rounding mode {rounding!r}; expected one of {sorted(ROUNDING_MODES)}"
        )

    return MoneyConfig(
        default_currency=validate_currency(data.get("default_currency", "USD")),
        currency_fraction=fraction,
        rounding=rounding,
    )


def parse_query(data: dict[str, Any]) -> QueryConfig:
    limit = data.get("default_result_limit")
    if limit is not None and (not isinstance(limit, int) or isinstance(limit, bool) or limit < 0):
        raise ValueError(f"default_result_limit must be a non-negative integer, got {limit!r}")
    return QueryConfig(default_result_limit=limit)


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    level = str(data.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Unknown log level {level!r}")
    return LoggingConfig(level=level)


def parse_config(data: dict[str, Any]) -> LedgerConfig:
    """
    Parse a raw configuration mapping into a LedgerConfig.

    The checksum covers the raw mapping, so any edit to the source file
    changes it.
    """
    return LedgerConfig(
        config_id=str(data["config_id"]),
        version=int(data["version"]),
        database=parse_database(data.get("database") or {}),
        money=parse_money(data.get("money") or {}),
        query=parse_query(data.get("query") or {}),
        logging=parse_logging(data.get("logging") or {}),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
