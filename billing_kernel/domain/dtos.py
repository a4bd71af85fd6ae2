"""
DTOs -- Immutable data transfer objects for the billing ledger.

Responsibility:
    Defines the frozen structures that cross the kernel boundary: charge and
    payment records, allocation lines, balances, query filters and the
    late-fee policy.  Callers outside the kernel never see ORM rows.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters and are only
    invoked from the service/selector layer.

Invariants enforced:
    - Money is integer cents everywhere.
    - Every record is frozen; allocation lists are tuples.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from billing_kernel.domain.charge_status import ChargeStatus, ChargeType

if TYPE_CHECKING:
    from billing_kernel.models.charge import Charge as ChargeModel
    from billing_kernel.models.organization import Organization as OrganizationModel
    from billing_kernel.models.payment import Payment as PaymentModel


class PaymentMethod(str, Enum):
    """How a payment was made.  The last two come from the card processor."""

    CASH = "cash"
    CHECK = "check"
    MONEY_ORDER = "money_order"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"
    CARD = "card"
    US_BANK_ACCOUNT = "us_bank_account"


class PaymentStatus(str, Enum):
    """Processor pipeline status.  Manual recordings are SUCCEEDED."""

    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"
    REFUNDED = "refunded"


class LateFeeType(str, Enum):
    FLAT = "flat"
    PERCENTAGE = "percentage"


@dataclass(frozen=True)
class AllocationLine:
    """One slice of a payment applied to one charge."""

    charge_id: UUID
    amount: int

    def __post_init__(self) -> None:
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise TypeError(f"allocation amount must be int cents, got {type(self.amount).__name__}")


@dataclass(frozen=True)
class ChargeRecord:
    """Read-side view of a charge."""

    id: UUID
    llc_id: UUID
    lease_id: UUID
    period: str
    charge_type: ChargeType
    amount: int
    paid_amount: int
    status: ChargeStatus
    due_date: date
    description: str | None = None
    linked_charge_id: UUID | None = None
    late_fee_applied_charge_id: UUID | None = None
    late_fee_applied_at: datetime | None = None
    void_reason: str | None = None
    voided_at: datetime | None = None
    voided_by_id: UUID | None = None
    version: int = 1

    @property
    def outstanding(self) -> int:
        """Cents still owed (zero for void charges)."""
        if self.status == ChargeStatus.VOID:
            return 0
        return self.amount - self.paid_amount

    @classmethod
    def from_model(cls, model: ChargeModel) -> ChargeRecord:
        return cls(
            id=model.id,
            llc_id=model.llc_id,
            lease_id=model.lease_id,
            period=model.period,
            charge_type=ChargeType(model.charge_type),
            amount=model.amount,
            paid_amount=model.paid_amount,
            status=ChargeStatus(model.status),
            due_date=model.due_date,
            description=model.description,
            linked_charge_id=model.linked_charge_id,
            late_fee_applied_charge_id=model.late_fee_applied_charge_id,
            late_fee_applied_at=model.late_fee_applied_at,
            void_reason=model.void_reason,
            voided_at=model.voided_at,
            voided_by_id=model.voided_by_id,
            version=model.version,
        )


@dataclass(frozen=True)
class PaymentRecord:
    """
    Read-side view of a payment with its final allocation list.

    Guarantees:
        sum(a.amount for a in allocations) + unallocated_amount == amount
    """

    id: UUID
    llc_id: UUID
    lease_id: UUID
    tenant_id: UUID
    amount: int
    unallocated_amount: int
    currency: str
    method: PaymentMethod
    status: PaymentStatus
    payment_date: date
    allocations: tuple[AllocationLine, ...] = ()
    check_number: str | None = None
    memo: str | None = None

    @property
    def allocated_amount(self) -> int:
        return sum(line.amount for line in self.allocations)

    @classmethod
    def from_model(cls, model: PaymentModel) -> PaymentRecord:
        allocations = tuple(
            AllocationLine(charge_id=row.charge_id, amount=row.amount)
            for row in sorted(model.allocations, key=lambda r: r.position)
        )
        return cls(
            id=model.id,
            llc_id=model.llc_id,
            lease_id=model.lease_id,
            tenant_id=model.tenant_id,
            amount=model.amount,
            unallocated_amount=model.unallocated_amount,
            currency=model.currency,
            method=PaymentMethod(model.method),
            status=PaymentStatus(model.status),
            payment_date=model.payment_date,
            allocations=allocations,
            check_number=model.check_number,
            memo=model.memo,
        )


@dataclass(frozen=True)
class ChargeBalance:
    """Per-lease balance summary, in cents."""

    total_charges: int
    total_paid: int
    balance: int
    overdue_amount: int
    open_charges: int


@dataclass(frozen=True)
class OverdueCharge:
    charge: ChargeRecord
    days_overdue: int


@dataclass(frozen=True)
class ChargeFilters:
    """Optional filters for listing a lease's charges.  None means no filter."""

    status: ChargeStatus | None = None
    charge_type: ChargeType | None = None
    due_from: date | None = None
    due_to: date | None = None


@dataclass(frozen=True)
class PaymentFilters:
    """Optional filters for listing an LLC's payments.  Dates are inclusive."""

    lease_id: UUID | None = None
    tenant_id: UUID | None = None
    status: PaymentStatus | None = None
    date_from: date | None = None
    date_to: date | None = None


@dataclass(frozen=True)
class LateFeePolicy:
    """
    Per-organization late-fee policy.

    Contract:
        ``fee_amount`` is whole cents (int) for FLAT policies and a percent
        (Decimal, e.g. Decimal("5") for 5%) for PERCENTAGE policies.
        ``max_fee_amount`` caps percentage fees only.  None means unset.
    """

    enabled: bool = False
    fee_type: LateFeeType = LateFeeType.FLAT
    fee_amount: int | Decimal | None = None
    max_fee_amount: int | None = None
    grace_days: int = 5

    @classmethod
    def from_model(
        cls, model: OrganizationModel, default_grace_days: int = 5
    ) -> LateFeePolicy:
        fee_type = LateFeeType(model.late_fee_type)
        fee_amount: int | Decimal | None = model.late_fee_amount
        if fee_amount is not None and fee_type == LateFeeType.FLAT:
            fee_amount = int(fee_amount)
        elif fee_amount is not None:
            fee_amount = Decimal(fee_amount)
        return cls(
            enabled=model.late_fee_enabled,
            fee_type=fee_type,
            fee_amount=fee_amount,
            max_fee_amount=model.late_fee_max_amount,
            grace_days=(
                model.late_fee_grace_days
                if model.late_fee_grace_days is not None
                else default_grace_days
            ),
        )


@dataclass(frozen=True)
class AuditRecord:
    """Read-side view of one audit log entry."""

    entity_type: str
    entity_id: UUID
    action: str
    actor_id: UUID
    llc_id: UUID
    occurred_at: datetime
    changes: dict = field(default_factory=dict)
