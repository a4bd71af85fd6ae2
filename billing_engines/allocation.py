"""
Module: billing_engines.allocation
Responsibility:
    Allocate a payment amount across a lease's outstanding charges, oldest
    due date first (FIFO), in whole cents.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel/domain.

Invariants enforced:
    - Conservation: total_allocated + unallocated == source_amount.
    - No target receives more than its eligible (outstanding) amount.
    - Deterministic order: (due_date, target_id).  Identical inputs always
      produce identical allocations.

Failure modes:
    - ValueError on a non-positive eligible amount or a currency mismatch.

Usage:
    from billing_engines.allocation import AllocationTarget, allocate_fifo
    from billing_kernel.domain.values import Money

    result = allocate_fifo(
        amount=Money(100000),
        targets=[
            AllocationTarget(target_id=jan_id, eligible_amount=Money(60000), due_date=date(2024, 1, 1)),
            AllocationTarget(target_id=feb_id, eligible_amount=Money(70000), due_date=date(2024, 2, 1)),
        ],
    )
    # jan 60000, feb 40000, unallocated 0
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from billing_engines.tracer import traced_engine
from billing_kernel.domain.values import Money
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


@dataclass(frozen=True)
class AllocationTarget:
    """
    A charge that can receive part of a payment.

    Guarantees:
        - ``eligible_amount`` is positive.
    """

    target_id: UUID
    eligible_amount: Money
    due_date: date

    def __post_init__(self) -> None:
        if not self.eligible_amount.is_positive:
            raise ValueError(
                f"Eligible amount must be positive for target {self.target_id}"
            )


@dataclass(frozen=True)
class TargetAllocation:
    """
    Result of allocation to a single target.

    Guarantees:
        - ``allocated + remaining == eligible_amount``.
    """

    target_id: UUID
    allocated: Money
    remaining: Money

    @property
    def is_fully_allocated(self) -> bool:
        return self.remaining.is_zero


@dataclass(frozen=True)
class AllocationResult:
    """
    Complete allocation result.

    Guarantees:
        - ``total_allocated + unallocated == source_amount``.
        - ``lines`` holds only targets that received money, in allocation order.
    """

    source_amount: Money
    lines: tuple[TargetAllocation, ...]
    total_allocated: Money
    unallocated: Money

    @property
    def is_fully_allocated(self) -> bool:
        return self.unallocated.is_zero


@traced_engine("allocation", "1.0", fingerprint_fields=("amount",))
def allocate_fifo(amount: Money, targets: Sequence[AllocationTarget]) -> AllocationResult:
    """
    Allocate ``amount`` to ``targets`` oldest due date first.

    Each target absorbs ``min(remaining, eligible_amount)``.  Whatever is
    left after every target is full becomes ``unallocated``.
    """
    for target in targets:
        if target.eligible_amount.currency != amount.currency:
            raise ValueError(
                f"Currency mismatch: target {target.target_id} is "
                f"{target.eligible_amount.currency}, payment is {amount.currency}"
            )

    ordered = sorted(targets, key=lambda t: (t.due_date, str(t.target_id)))
    remaining = amount
    lines: list[TargetAllocation] = []

    for target in ordered:
        if remaining.is_zero:
            break
        take = remaining.min(target.eligible_amount)
        remaining = remaining - take
        lines.append(
            TargetAllocation(
                target_id=target.target_id,
                allocated=take,
                remaining=target.eligible_amount - take,
            )
        )

    total_allocated = amount - remaining
    assert total_allocated + remaining == amount

    logger.info("allocation_fifo_completed", extra={
        "source_amount": amount.cents,
        "total_allocated": total_allocated.cents,
        "unallocated": remaining.cents,
        "targets_funded": len(lines),
        "target_count": len(targets),
    })

    return AllocationResult(
        source_amount=amount,
        lines=tuple(lines),
        total_allocated=total_allocated,
        unallocated=remaining,
    )
