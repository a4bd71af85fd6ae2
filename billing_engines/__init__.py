"""
Module: billing_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel/domain (and sibling engine modules).
    MUST NOT import billing_config or billing_modules.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
    - Integer-cent arithmetic; floats are rejected.
    - Determinism: identical inputs always produce identical outputs.
"""

from billing_engines.allocation import (
    AllocationResult,
    AllocationTarget,
    TargetAllocation,
    allocate_fifo,
)
from billing_engines.late_fee import (
    compute_late_fee,
    days_overdue,
    is_past_grace,
    late_fee_eligible_on,
    overdue_cutoff,
)
from billing_engines.tracer import traced_engine

__all__ = [
    "AllocationResult",
    "AllocationTarget",
    "TargetAllocation",
    "allocate_fifo",
    "compute_late_fee",
    "days_overdue",
    "is_past_grace",
    "late_fee_eligible_on",
    "overdue_cutoff",
    "traced_engine",
]
