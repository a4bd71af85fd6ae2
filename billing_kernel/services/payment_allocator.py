"""
PaymentAllocator -- records a payment and applies it to a lease's charges.

Responsibility:
    Validates a payment, decides how it is split across charges (explicit
    allocations or FIFO by due date), increments each charge's paid_amount,
    and persists the payment with its ordered allocation rows.

Architecture position:
    Kernel > Services -- imperative shell.
    Uses ChargeLedgerService for every charge write and the pure
    ``billing_engines.allocation.allocate_fifo`` for automatic splits.

Invariants enforced:
    - sum(allocations) + unallocated_amount == payment.amount.
    - Explicit allocations sum exactly to the payment amount, so
      unallocated_amount is 0.  An empty list therefore never validates.
    - Each allocated charge belongs to the payment's lease, is open or
      partial, and has room for the slice.
    - Only SUCCEEDED payments move money onto charges.
    - Target charges are locked in ascending id order and updated under a
      version check, so overlapping payments never lose an increment.

Failure modes:
    - ValidationError for malformed payment fields.
    - LeaseNotFoundError for an unknown or foreign lease.
    - InvalidAllocationError for any allocation inconsistency (nothing is
      written).
    - OptimisticLockError on a concurrent charge update (retryable).

Audit relevance:
    payment_recorded on the payment plus charge_payment_applied on every
    charge touched.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_engines.allocation import AllocationTarget, allocate_fifo
from billing_kernel.db.types import MAX_CHECK_NUMBER_LENGTH, MAX_TEXT_LENGTH
from billing_kernel.domain.charge_status import OUTSTANDING_STATUSES
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.dtos import AllocationLine, PaymentMethod, PaymentStatus
from billing_kernel.domain.values import Money
from billing_kernel.exceptions import InvalidAllocationError, ValidationError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.audit_log import AuditAction
from billing_kernel.models.charge import Charge
from billing_kernel.models.payment import Payment, PaymentAllocation
from billing_kernel.services.audit_service import AuditLogService
from billing_kernel.services.base import BaseService
from billing_kernel.services.charge_ledger import (
    ChargeLedgerService,
    validate_cents,
    validate_text,
)

logger = get_logger("services.payment_allocator")


class PaymentAllocator(BaseService):
    """
    Payment recording and allocation service.

    Contract:
        ``record_payment`` either persists the payment, its allocation rows
        and every charge update together, or raises and writes nothing.

    Non-goals:
        - Does NOT talk to a payment processor.
        - Does NOT reverse allocations on refund.
        - Does NOT commit.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ledger: ChargeLedgerService | None = None,
        audit: AuditLogService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._audit = audit or AuditLogService(session, self._clock)
        self._ledger = ledger or ChargeLedgerService(session, self._clock, self._audit)

    def record_payment(
        self,
        llc_id: UUID,
        lease_id: UUID,
        tenant_id: UUID,
        amount: int,
        method: PaymentMethod | str,
        actor_id: UUID,
        allocations: Sequence[AllocationLine] | None = None,
        status: PaymentStatus | str = PaymentStatus.SUCCEEDED,
        payment_date: date | None = None,
        check_number: str | None = None,
        memo: str | None = None,
        currency: str = "USD",
    ) -> Payment:
        """
        Record a payment and allocate it.

        Args:
            allocations: Explicit split.  ``None`` means FIFO over the
                lease's outstanding charges, oldest due date first, with any
                remainder kept as unallocated credit.
            status: Processor status.  Anything but SUCCEEDED is recorded
                with no allocations.
            payment_date: Defaults to the clock's today.

        Returns:
            The flushed Payment with its allocation rows in order.
        """
        validate_cents("amount", amount)
        try:
            method = PaymentMethod(method)
        except ValueError as exc:
            raise ValidationError("method", f"unknown payment method {method!r}") from exc
        try:
            status = PaymentStatus(status)
        except ValueError as exc:
            raise ValidationError("status", f"unknown payment status {status!r}") from exc
        if tenant_id is None:
            raise ValidationError("tenant_id", "is required")
        validate_text("check_number", check_number, MAX_CHECK_NUMBER_LENGTH)
        validate_text("memo", memo, MAX_TEXT_LENGTH)
        try:
            currency = Money(0, currency).currency
        except (TypeError, ValueError) as exc:
            raise ValidationError("currency", "must be a three-letter ISO code") from exc

        self._ledger.get_lease(llc_id, lease_id)

        if status != PaymentStatus.SUCCEEDED:
            if allocations is not None:
                raise InvalidAllocationError(
                    f"a {status.value} payment cannot carry allocations"
                )
            plan: list[tuple[Charge, int]] = []
        elif allocations is not None:
            plan = self._plan_explicit(llc_id, lease_id, amount, allocations)
        else:
            plan = self._plan_fifo(llc_id, lease_id, amount, currency)

        allocated = sum(slice_amount for _, slice_amount in plan)
        payment = Payment(
            llc_id=llc_id,
            lease_id=lease_id,
            tenant_id=tenant_id,
            amount=amount,
            unallocated_amount=amount - allocated,
            currency=currency,
            method=method.value,
            status=status.value,
            payment_date=payment_date or self._clock.today(),
            check_number=check_number,
            memo=memo,
            created_by_id=actor_id,
        )
        self.session.add(payment)
        self.session.flush()

        for position, (charge, slice_amount) in enumerate(plan):
            self._ledger.apply_payment(charge, slice_amount, actor_id, payment_id=payment.id)
            payment.allocations.append(
                PaymentAllocation(
                    charge_id=charge.id,
                    amount=slice_amount,
                    position=position,
                )
            )

        assert sum(a.amount for a in payment.allocations) + payment.unallocated_amount == amount

        self._flush_versioned(
            "Charge", ",".join(str(charge.id) for charge, _ in plan) or str(lease_id)
        )

        self._audit.record(
            entity_type="Payment",
            entity_id=payment.id,
            action=AuditAction.PAYMENT_RECORDED,
            actor_id=actor_id,
            llc_id=llc_id,
            after={
                "amount": amount,
                "unallocated_amount": payment.unallocated_amount,
                "method": method,
                "status": status,
                "allocations": [
                    {"charge_id": a.charge_id, "amount": a.amount}
                    for a in payment.allocations
                ],
            },
        )

        logger.info(
            "payment_recorded",
            extra={
                "payment_id": str(payment.id),
                "lease_id": str(lease_id),
                "amount": amount,
                "allocated": allocated,
                "unallocated_amount": payment.unallocated_amount,
                "allocation_mode": "explicit" if allocations is not None else "fifo",
                "status": status.value,
            },
        )
        return payment

    # =========================================================================
    # Planning
    # =========================================================================

    def _lock_charges(self, llc_id: UUID, *criteria) -> list[Charge]:
        """Lock matching charges in ascending id order."""
        stmt = (
            select(Charge)
            .where(Charge.llc_id == llc_id, *criteria)
            .order_by(Charge.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return list(self.session.execute(stmt).scalars())

    def _plan_explicit(
        self,
        llc_id: UUID,
        lease_id: UUID,
        amount: int,
        allocations: Sequence[AllocationLine],
    ) -> list[tuple[Charge, int]]:
        seen: set[UUID] = set()
        for line in allocations:
            if isinstance(line.amount, bool) or not isinstance(line.amount, int) or line.amount <= 0:
                raise InvalidAllocationError(
                    "allocation amount must be a positive integer", charge_id=str(line.charge_id)
                )
            if line.charge_id in seen:
                raise InvalidAllocationError(
                    "charge appears more than once", charge_id=str(line.charge_id)
                )
            seen.add(line.charge_id)

        total = sum(line.amount for line in allocations)
        if total != amount:
            raise InvalidAllocationError(
                f"allocations sum to {total} but payment amount is {amount}"
            )

        locked = {c.id: c for c in self._lock_charges(llc_id, Charge.id.in_(seen))}

        plan: list[tuple[Charge, int]] = []
        for line in allocations:
            charge = locked.get(line.charge_id)
            if charge is None:
                raise InvalidAllocationError("charge not found", charge_id=str(line.charge_id))
            if charge.lease_id != lease_id:
                raise InvalidAllocationError(
                    "charge belongs to a different lease", charge_id=str(line.charge_id)
                )
            if charge.status not in {s.value for s in OUTSTANDING_STATUSES}:
                raise InvalidAllocationError(
                    f"charge is {charge.status}", charge_id=str(line.charge_id)
                )
            if line.amount > charge.outstanding:
                raise InvalidAllocationError(
                    f"allocation {line.amount} exceeds outstanding {charge.outstanding}",
                    charge_id=str(line.charge_id),
                )
            plan.append((charge, line.amount))
        return plan

    def _plan_fifo(
        self,
        llc_id: UUID,
        lease_id: UUID,
        amount: int,
        currency: str,
    ) -> list[tuple[Charge, int]]:
        charges = self._lock_charges(
            llc_id,
            Charge.lease_id == lease_id,
            Charge.status.in_([s.value for s in OUTSTANDING_STATUSES]),
        )
        by_id = {c.id: c for c in charges}
        result = allocate_fifo(
            amount=Money(amount, currency),
            targets=[
                AllocationTarget(
                    target_id=c.id,
                    eligible_amount=Money(c.outstanding, currency),
                    due_date=c.due_date,
                )
                for c in charges
                if c.outstanding > 0
            ],
        )
        return [(by_id[line.target_id], line.allocated.cents) for line in result.lines]
