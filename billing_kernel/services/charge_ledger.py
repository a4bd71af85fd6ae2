"""
ChargeLedgerService -- charge lifecycle: create, void, apply payment.

Responsibility:
    Owns every write to a charge's amounts and status.  Creation validates
    input and lease ownership; voiding freezes a charge; payment application
    increments paid_amount.  Status is re-derived after every change and is
    never assigned directly.

Architecture position:
    Kernel > Services -- imperative shell.
    Used directly by LateFeeEngine and PaymentAllocator, and by the
    LeaseBillingService facade.

Invariants enforced:
    - 0 <= paid_amount <= amount; paid_amount never decreases.
    - status == void <=> void_reason set; void is irreversible.
    - A charge with money applied (partial or paid) cannot be voided.
    - Charges are never deleted.
    - Every mutation writes an audit entry in the same transaction.

Failure modes:
    - LeaseNotFoundError / ChargeNotFoundError for unknown or foreign ids.
    - ValidationError for malformed period, amount, type, or text fields.
    - InvalidChargeStatusError when voiding a void, partial or paid charge.
    - InvalidAllocationError when applying money a charge cannot take.
    - OptimisticLockError on a concurrent update (retryable).

Audit relevance:
    charge_created, charge_voided and charge_payment_applied entries carry
    the before/after amounts and status.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_kernel.db.types import MAX_TEXT_LENGTH
from billing_kernel.domain.charge_status import ChargeStatus, ChargeType
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.exceptions import (
    ChargeNotFoundError,
    InvalidAllocationError,
    InvalidChargeStatusError,
    LeaseNotFoundError,
    ValidationError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.models.audit_log import AuditAction
from billing_kernel.models.charge import Charge
from billing_kernel.models.lease import Lease
from billing_kernel.services.audit_service import AuditLogService
from billing_kernel.services.base import BaseService

logger = get_logger("services.charge_ledger")

PERIOD_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def _charge_snapshot(charge: Charge) -> dict:
    return {
        "amount": charge.amount,
        "paid_amount": charge.paid_amount,
        "status": charge.status,
        "void_reason": charge.void_reason,
        "late_fee_applied_charge_id": charge.late_fee_applied_charge_id,
    }


def validate_text(field: str, value: str | None, max_length: int, required: bool = False) -> None:
    """Reject non-string, blank-when-required, or over-long text."""
    if value is None:
        if required:
            raise ValidationError(field, "is required")
        return
    if not isinstance(value, str):
        raise ValidationError(field, "must be a string")
    if required and not value.strip():
        raise ValidationError(field, "must not be blank")
    if len(value) > max_length:
        raise ValidationError(field, f"must be at most {max_length} characters")


def validate_cents(field: str, value: object) -> int:
    """Return ``value`` if it is a positive int number of cents."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(field, "must be an integer number of cents")
    if value <= 0:
        raise ValidationError(field, "must be positive")
    return value


class ChargeLedgerService(BaseService):
    """
    Charge lifecycle service.

    Contract:
        Creates, voids and pays down charges inside the caller's
        transaction.  Reads used for mutation take a row lock.

    Guarantees:
        - Returned Charge rows are flushed and carry their new version.

    Non-goals:
        - Does NOT commit.
        - Does NOT decide late-fee eligibility (LateFeeEngine does).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditLogService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._audit = audit or AuditLogService(session, self._clock)

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_lease(self, llc_id: UUID, lease_id: UUID) -> Lease:
        """Lease owned by ``llc_id``; LeaseNotFoundError otherwise."""
        lease = self.session.execute(
            select(Lease).where(Lease.id == lease_id, Lease.llc_id == llc_id)
        ).scalar_one_or_none()
        if lease is None:
            raise LeaseNotFoundError(str(lease_id))
        return lease

    def get_charge(self, llc_id: UUID, charge_id: UUID, for_update: bool = False) -> Charge:
        """
        Charge owned by ``llc_id``; ChargeNotFoundError otherwise.

        With ``for_update`` the row is locked (PostgreSQL) and reloaded from
        the database, discarding any stale identity-map state.
        """
        stmt = select(Charge).where(Charge.id == charge_id, Charge.llc_id == llc_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        charge = self.session.execute(stmt).scalar_one_or_none()
        if charge is None:
            raise ChargeNotFoundError(str(charge_id))
        return charge

    # =========================================================================
    # Create
    # =========================================================================

    def create_charge(
        self,
        llc_id: UUID,
        lease_id: UUID,
        period: str,
        charge_type: ChargeType | str,
        amount: int,
        due_date: date,
        actor_id: UUID,
        description: str | None = None,
        linked_charge_id: UUID | None = None,
    ) -> Charge:
        """
        Create an open charge on a lease.

        Args:
            period: Billing period token, ``YYYY-MM``.
            amount: Positive integer cents.
            linked_charge_id: For late-fee charges only, the source charge.

        Raises:
            ValidationError: On malformed input (nothing is written).
            LeaseNotFoundError: If the lease is missing or foreign.
            OptimisticLockError: If ``linked_charge_id`` already has a late
                fee committed by a concurrent transaction.
        """
        if not isinstance(period, str) or not PERIOD_PATTERN.match(period):
            raise ValidationError("period", "must match YYYY-MM")
        try:
            charge_type = ChargeType(charge_type)
        except ValueError as exc:
            raise ValidationError("charge_type", f"unknown charge type {charge_type!r}") from exc
        validate_cents("amount", amount)
        if isinstance(due_date, datetime) or not isinstance(due_date, date):
            raise ValidationError("due_date", "must be a calendar date")
        validate_text("description", description, MAX_TEXT_LENGTH)

        self.get_lease(llc_id, lease_id)

        charge = Charge(
            llc_id=llc_id,
            lease_id=lease_id,
            period=period,
            charge_type=charge_type.value,
            description=description,
            amount=amount,
            paid_amount=0,
            due_date=due_date,
            linked_charge_id=linked_charge_id,
            created_by_id=actor_id,
        )
        charge.refresh_status()
        self.session.add(charge)
        self._flush_versioned(
            "Charge",
            str(linked_charge_id or lease_id),
            unique_column="linked_charge_id" if linked_charge_id is not None else None,
        )

        self._audit.record(
            entity_type="Charge",
            entity_id=charge.id,
            action=AuditAction.CHARGE_CREATED,
            actor_id=actor_id,
            llc_id=llc_id,
            after={
                **_charge_snapshot(charge),
                "charge_type": charge.charge_type,
                "period": charge.period,
                "due_date": charge.due_date,
                "linked_charge_id": charge.linked_charge_id,
            },
        )

        logger.info(
            "charge_created",
            extra={
                "charge_id": str(charge.id),
                "lease_id": str(lease_id),
                "charge_type": charge.charge_type,
                "amount": amount,
                "period": period,
            },
        )
        return charge

    # =========================================================================
    # Void
    # =========================================================================

    def void_charge(
        self,
        llc_id: UUID,
        charge_id: UUID,
        reason: str,
        actor_id: UUID,
    ) -> Charge:
        """
        Void a charge that has no money applied.

        paid_amount is left untouched; voiding is irreversible.

        Raises:
            ValidationError: If reason is blank or longer than 500 characters.
            ChargeNotFoundError: If the charge is missing or foreign.
            InvalidChargeStatusError: If the charge is void, partial or paid.
        """
        validate_text("reason", reason, MAX_TEXT_LENGTH, required=True)

        charge = self.get_charge(llc_id, charge_id, for_update=True)
        status = ChargeStatus(charge.status)
        if status == ChargeStatus.VOID:
            raise InvalidChargeStatusError(str(charge_id), status.value, "already void")
        if status in (ChargeStatus.PARTIAL, ChargeStatus.PAID):
            raise InvalidChargeStatusError(
                str(charge_id),
                status.value,
                "payments have been applied; refund them before voiding",
            )

        before = _charge_snapshot(charge)
        charge.void_reason = reason
        charge.voided_at = self._clock.now()
        charge.voided_by_id = actor_id
        charge.updated_by_id = actor_id
        charge.refresh_status()
        self._flush_versioned("Charge", str(charge_id))

        self._audit.record(
            entity_type="Charge",
            entity_id=charge.id,
            action=AuditAction.CHARGE_VOIDED,
            actor_id=actor_id,
            llc_id=llc_id,
            before=before,
            after=_charge_snapshot(charge),
        )

        logger.info(
            "charge_voided",
            extra={
                "charge_id": str(charge_id),
                "previous_status": status.value,
            },
        )
        return charge

    # =========================================================================
    # Payment application
    # =========================================================================

    def apply_payment(
        self,
        charge: Charge,
        amount: int,
        actor_id: UUID,
        payment_id: UUID | None = None,
    ) -> Charge:
        """
        Increment a locked charge's paid_amount by ``amount`` cents.

        Preconditions:
            ``charge`` was loaded with ``for_update=True`` in this transaction.
        Postconditions:
            paid_amount increased by ``amount``; status re-derived.  The
            change is flushed by the caller together with the payment rows.

        Raises:
            InvalidAllocationError: If the charge is not open/partial or
                ``amount`` exceeds what it still owes.
        """
        status = ChargeStatus(charge.status)
        if not status.accepts_payment:
            raise InvalidAllocationError(
                f"charge is {status.value}", charge_id=str(charge.id)
            )
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAllocationError(
                "allocation amount must be a positive integer", charge_id=str(charge.id)
            )
        if amount > charge.outstanding:
            raise InvalidAllocationError(
                f"allocation {amount} exceeds outstanding {charge.outstanding}",
                charge_id=str(charge.id),
            )

        before = _charge_snapshot(charge)
        charge.paid_amount = charge.paid_amount + amount
        charge.updated_by_id = actor_id
        new_status = charge.refresh_status()

        self._audit.record(
            entity_type="Charge",
            entity_id=charge.id,
            action=AuditAction.CHARGE_PAYMENT_APPLIED,
            actor_id=actor_id,
            llc_id=charge.llc_id,
            before=before,
            after={**_charge_snapshot(charge), "payment_id": payment_id},
        )

        logger.debug(
            "charge_payment_applied",
            extra={
                "charge_id": str(charge.id),
                "amount": amount,
                "paid_amount": charge.paid_amount,
                "status": new_status.value,
            },
        )
        return charge
