"""
billing_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration.  Sits above ``billing_kernel`` and below
    ``billing_modules``.  The kernel MUST NEVER import from
    ``billing_config``; the facade passes individual values down.

Audit relevance:
    Every call emits a ``ledger_settings_loaded`` log entry with the
    settings checksum and source file, tying behavior back to the exact
    configuration in force.
"""

from __future__ import annotations

import logging
from pathlib import Path

from billing_config.loader import compute_checksum, load_settings, resolve_config_path
from billing_config.schema import LedgerSettings

_logger = logging.getLogger("billing_kernel.config")


def get_active_settings(path: Path | str | None = None) -> LedgerSettings:
    """
    The ONLY public configuration entrypoint.

    Args:
        path: YAML file to read.  Defaults to $BILLING_LEDGER_CONFIG, or
            pure defaults when that is unset.

    Raises:
        FileNotFoundError: Named file does not exist.
        ValueError: Any setting is invalid.
    """
    source = resolve_config_path(path)
    settings = load_settings(source)
    summary = settings.to_dict()
    _logger.info(
        "ledger_settings_loaded",
        extra={
            "checksum": compute_checksum(summary),
            "source": str(source) if source is not None else None,
            "database_dialect": settings.database_url.split(":", 1)[0],
            "max_transaction_attempts": settings.max_transaction_attempts,
            "fee_eligible_charge_types": summary["fee_eligible_charge_types"],
        },
    )
    return settings


__all__ = ["LedgerSettings", "get_active_settings"]
