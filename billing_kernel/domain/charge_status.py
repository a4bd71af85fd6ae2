"""
Charge status -- the lifecycle of a charge as a pure function of its amounts.

Responsibility:
    Defines the charge vocabularies (ChargeType, ChargeStatus) and
    ``derive_charge_status``, the single place where a charge's status is
    computed.  No code path sets status directly.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - status == void  <=>  the charge has been voided.
    - open / partial / paid are determined by paid_amount vs amount.
    - 0 <= paid_amount <= amount.

Failure modes:
    - ValueError if the amounts violate the bounds above.
"""

from enum import Enum


class ChargeType(str, Enum):
    """What a charge bills for."""

    RENT = "rent"
    LATE_FEE = "late_fee"
    UTILITY = "utility"
    DEPOSIT = "deposit"
    PET_DEPOSIT = "pet_deposit"
    PET_RENT = "pet_rent"
    PARKING = "parking"
    DAMAGE = "damage"
    OTHER = "other"


class ChargeStatus(str, Enum):
    """Derived charge status."""

    OPEN = "open"
    PARTIAL = "partial"
    PAID = "paid"
    VOID = "void"

    @property
    def accepts_payment(self) -> bool:
        return self in (ChargeStatus.OPEN, ChargeStatus.PARTIAL)


OUTSTANDING_STATUSES: frozenset[ChargeStatus] = frozenset(
    {ChargeStatus.OPEN, ChargeStatus.PARTIAL}
)

DEFAULT_FEE_ELIGIBLE_TYPES: frozenset[ChargeType] = frozenset(
    {ChargeType.RENT, ChargeType.PET_RENT}
)


def derive_charge_status(amount: int, paid_amount: int, voided: bool) -> ChargeStatus:
    """
    Compute a charge's status.

    Args:
        amount: Charge amount in cents (positive).
        paid_amount: Cents applied so far.
        voided: Whether the charge has been voided.

    Raises:
        ValueError: If paid_amount is negative or exceeds amount.
    """
    if paid_amount < 0 or paid_amount > amount:
        raise ValueError(
            f"paid_amount {paid_amount} out of range for charge amount {amount}"
        )
    if voided:
        return ChargeStatus.VOID
    if paid_amount == 0:
        return ChargeStatus.OPEN
    if paid_amount < amount:
        return ChargeStatus.PARTIAL
    return ChargeStatus.PAID
