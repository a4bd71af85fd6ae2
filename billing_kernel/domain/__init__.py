"""
Pure domain layer.

Value objects, status derivation, clocks and DTOs, with no dependencies on
the ORM, the database, or I/O (SystemClock excepted).
"""

from billing_kernel.domain.charge_status import (
    DEFAULT_FEE_ELIGIBLE_TYPES,
    OUTSTANDING_STATUSES,
    ChargeStatus,
    ChargeType,
    derive_charge_status,
)
from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.dtos import (
    AllocationLine,
    AuditRecord,
    ChargeBalance,
    ChargeFilters,
    ChargeRecord,
    LateFeePolicy,
    LateFeeType,
    OverdueCharge,
    PaymentFilters,
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
)
from billing_kernel.domain.values import Money, round_half_up_cents

__all__ = [
    "AllocationLine",
    "AuditRecord",
    "ChargeBalance",
    "ChargeFilters",
    "ChargeRecord",
    "ChargeStatus",
    "ChargeType",
    "Clock",
    "DEFAULT_FEE_ELIGIBLE_TYPES",
    "DeterministicClock",
    "LateFeePolicy",
    "LateFeeType",
    "Money",
    "OUTSTANDING_STATUSES",
    "OverdueCharge",
    "PaymentFilters",
    "PaymentMethod",
    "PaymentRecord",
    "PaymentStatus",
    "SystemClock",
    "derive_charge_status",
    "round_half_up_cents",
]
