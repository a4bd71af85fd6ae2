"""
Module: billing_engines.late_fee
Responsibility:
    Compute the late fee a policy yields for a charge, and the grace-period
    date arithmetic shared by the late-fee engine and the overdue listing.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel/domain.

Invariants enforced:
    - Fees are whole cents.  Percentage fees round half-up at the cent
      (0.5 cent rounds up, 0.49 cent rounds down) before any cap is applied.
    - The cap (max_fee_amount) applies to percentage fees only.
    - Purity: "today" is always a parameter, never read from a clock.

Failure modes:
    - ValueError if a flat policy carries a fractional amount.

Usage:
    from billing_engines.late_fee import compute_late_fee
    from billing_kernel.domain.dtos import LateFeePolicy, LateFeeType

    policy = LateFeePolicy(enabled=True, fee_type=LateFeeType.PERCENTAGE,
                           fee_amount=Decimal("5"), max_fee_amount=2500)
    compute_late_fee(charge_amount=100000, policy=policy)   # 2500
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from billing_engines.tracer import traced_engine
from billing_kernel.domain.dtos import LateFeePolicy, LateFeeType
from billing_kernel.domain.values import Money


@traced_engine("late_fee", "1.0", fingerprint_fields=("charge_amount", "policy"))
def compute_late_fee(charge_amount: int, policy: LateFeePolicy) -> int:
    """
    Late fee in cents for a charge of ``charge_amount`` cents.

    Returns 0 when the policy has no fee amount configured.  ``enabled`` is
    not consulted here; eligibility is the caller's concern.

    Args:
        charge_amount: The source charge's amount (not its remaining balance).
        policy: Organization late-fee policy.
    """
    if policy.fee_amount is None:
        return 0

    if policy.fee_type == LateFeeType.FLAT:
        fee = Decimal(policy.fee_amount)
        if fee != fee.to_integral_value():
            raise ValueError(f"Flat late fee must be whole cents, got {policy.fee_amount}")
        return int(fee)

    fee_money = Money(charge_amount).percent(Decimal(policy.fee_amount))
    if policy.max_fee_amount is not None:
        fee_money = fee_money.min(Money(policy.max_fee_amount))
    return fee_money.cents


def late_fee_eligible_on(due_date: date, grace_days: int) -> date:
    """First date on which a late fee may be applied."""
    return due_date + timedelta(days=grace_days)


def is_past_grace(due_date: date, grace_days: int, today: date) -> bool:
    """True once ``today`` has reached the end of the grace period."""
    return today >= late_fee_eligible_on(due_date, grace_days)


def overdue_cutoff(grace_days: int, today: date) -> date:
    """Charges due strictly before this date are overdue beyond their grace period."""
    return today - timedelta(days=grace_days)


def days_overdue(due_date: date, today: date) -> int:
    """Whole days since the due date (negative before it)."""
    return (today - due_date).days
