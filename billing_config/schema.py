"""
Configuration schema for the billing ledger.

``LedgerSettings`` is the one frozen runtime artifact produced by
``billing_config.get_active_settings()``.  Every field is validated at
construction; an invalid value raises ValueError before anything else runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any

from billing_kernel.domain.charge_status import DEFAULT_FEE_ELIGIBLE_TYPES, ChargeType

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class LedgerSettings:
    """
    Runtime settings for the billing ledger.

    Guarantees:
        - max_transaction_attempts >= 1, retry_backoff_seconds >= 0.
        - fee_eligible_charge_types never contains late_fee.
        - default_grace_days within 0..30.
    """

    database_url: str = "sqlite:///./billing_ledger.db"
    echo_sql: bool = False
    log_level: str = "INFO"
    currency: str = "USD"
    max_transaction_attempts: int = 3
    retry_backoff_seconds: float = 0.05
    fee_eligible_charge_types: frozenset[ChargeType] = field(
        default_factory=lambda: DEFAULT_FEE_ELIGIBLE_TYPES
    )
    default_grace_days: int = 5

    def __post_init__(self) -> None:
        if not isinstance(self.database_url, str) or not self.database_url:
            raise ValueError("database_url must be a non-empty string")

        level = str(self.log_level).upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}, got {self.log_level!r}")
        object.__setattr__(self, "log_level", level)

        currency = str(self.currency).strip().upper()
        if len(currency) != 3 or not currency.isalpha():
            raise ValueError(f"currency must be a three-letter ISO code, got {self.currency!r}")
        object.__setattr__(self, "currency", currency)

        attempts = self.max_transaction_attempts
        if isinstance(attempts, bool) or not isinstance(attempts, int) or attempts < 1:
            raise ValueError("max_transaction_attempts must be an integer >= 1")

        if isinstance(self.retry_backoff_seconds, bool) or self.retry_backoff_seconds < 0:
            raise ValueError("retry_backoff_seconds must be >= 0")

        try:
            eligible = frozenset(ChargeType(t) for t in self.fee_eligible_charge_types)
        except ValueError as exc:
            raise ValueError(f"fee_eligible_charge_types: {exc}") from exc
        if ChargeType.LATE_FEE in eligible:
            raise ValueError("fee_eligible_charge_types must not contain late_fee")
        object.__setattr__(self, "fee_eligible_charge_types", eligible)

        grace = self.default_grace_days
        if isinstance(grace, bool) or not isinstance(grace, int) or not 0 <= grace <= 30:
            raise ValueError("default_grace_days must be an integer between 0 and 30")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LedgerSettings:
        """
        Build settings from a parsed mapping (e.g. YAML).

        Unknown keys are rejected so typos do not silently fall back to
        defaults.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown ledger settings: {sorted(unknown)}")
        return cls(**data)

    def with_overrides(self, **overrides: Any) -> LedgerSettings:
        """Copy with ``overrides`` applied (and re-validated)."""
        return replace(self, **overrides)

    def to_dict(self) -> dict[str, Any]:
        return {
            "database_url": self.database_url,
            "echo_sql": self.echo_sql,
            "log_level": self.log_level,
            "currency": self.currency,
            "max_transaction_attempts": self.max_transaction_attempts,
            "retry_backoff_seconds": self.retry_backoff_seconds,
            "fee_eligible_charge_types": sorted(t.value for t in self.fee_eligible_charge_types),
            "default_grace_days": self.default_grace_days,
        }
