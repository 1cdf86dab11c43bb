"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains
    configuration.  YAML loading and parsing live in ``loader`` and are
    tooling.

Architecture position:
    Configuration -- sits beside ``ledger_kernel``.  The kernel's domain
    layer never imports it; the reference engine and scripts receive a
    LedgerConfig from their caller.

Failure modes:
    - ``FileNotFoundError`` -- the requested file does not exist.
    - ``ValueError`` -- a field fails validation.
    - ``KeyError`` -- a required key is missing.

Audit relevance:
    Every successful call emits a ``LEDGER_CONFIG_TRACE`` log entry with
    the config id, version and checksum.
"""

from __future__ import annotations

from pathlib import Path

from ledger_config.loader import compute_checksum, load_yaml_file, parse_config
from ledger_config.schema import LedgerConfig
from ledger_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> LedgerConfig:
    """
    Load, validate and return the configuration.

    Args:
        path: YAML file to load.  Defaults to ``ledger_config/sets/default.yaml``.
    """
    config_path = Path(path) if path is not None else _DEFAULT_CONFIG_FILE
    config = parse_config(load_yaml_file(config_path))

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(config_path),
        },
    )
    return config


__all__ = [
    "LedgerConfig",
    "compute_checksum",
    "get_active_config",
]
