"""
LateFeeEngine -- applies a late fee to an overdue charge, at most once.

Responsibility:
    Checks a source charge against its organization's policy and, when
    every check passes, creates a ``late_fee`` charge linked to it and
    marks the source as having had its fee applied.

Architecture position:
    Kernel > Services -- imperative shell.
    Calls LateFeePolicyService (read), ChargeLedgerService (writes) and the
    pure ``billing_engines.late_fee`` calculations.

Invariants enforced:
    - Checks run in a fixed order and the first failure wins:
        1. charge exists                      -> NOT_FOUND
        2. policy enabled                     -> LATE_FEE_DISABLED
        3. charge type fee-eligible           -> INVALID_TYPE
        4. status open or partial             -> INVALID_STATUS
        5. no late fee applied yet            -> ALREADY_APPLIED
        6. today >= due_date + grace_days     -> GRACE_PERIOD
        7. computed fee > 0                   -> ZERO_FEE
    - At most one late fee per source charge, ever.  The source row is
      locked (FOR UPDATE) and version-checked, and linked_charge_id is
      UNIQUE, so two concurrent callers cannot both succeed.
    - late_fee charges are never themselves fee-eligible.

Failure modes:
    - The typed errors above (terminal).
    - OptimisticLockError when a concurrent transaction won the race;
      the retried attempt then fails with ALREADY_APPLIED.

Audit relevance:
    charge_created on the new fee charge and late_fee_applied on the source.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from billing_engines.late_fee import compute_late_fee, is_past_grace, late_fee_eligible_on
from billing_kernel.domain.charge_status import (
    DEFAULT_FEE_ELIGIBLE_TYPES,
    ChargeStatus,
    ChargeType,
)
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.exceptions import (
    BillingLedgerError,
    GracePeriodError,
    InvalidChargeStatusError,
    InvalidChargeTypeError,
    LateFeeAlreadyAppliedError,
    LateFeeDisabledError,
    ZeroFeeError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.models.audit_log import AuditAction
from billing_kernel.models.charge import Charge
from billing_kernel.services.audit_service import AuditLogService
from billing_kernel.services.base import BaseService
from billing_kernel.services.charge_ledger import ChargeLedgerService
from billing_kernel.services.late_fee_policy import LateFeePolicyService

logger = get_logger("services.late_fee_engine")


class LateFeeEngine(BaseService):
    """
    Late-fee application service.

    Contract:
        ``apply_late_fee`` either returns the new late-fee charge with the
        source charge updated in the same transaction, or raises and
        writes nothing.

    Non-goals:
        - Does NOT scan for overdue charges (see ChargeSelector).
        - Does NOT commit.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ledger: ChargeLedgerService | None = None,
        policies: LateFeePolicyService | None = None,
        audit: AuditLogService | None = None,
        eligible_types: Iterable[ChargeType | str] = DEFAULT_FEE_ELIGIBLE_TYPES,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._audit = audit or AuditLogService(session, self._clock)
        self._ledger = ledger or ChargeLedgerService(session, self._clock, self._audit)
        self._policies = policies or LateFeePolicyService(session, self._clock, self._audit)
        self._eligible_types = frozenset(ChargeType(t) for t in eligible_types) - {
            ChargeType.LATE_FEE
        }

    def _rejected(self, charge_id: UUID, exc: BillingLedgerError) -> BillingLedgerError:
        logger.info(
            "late_fee_rejected",
            extra={"charge_id": str(charge_id), "reason_code": exc.code},
        )
        return exc

    def apply_late_fee(
        self,
        llc_id: UUID,
        charge_id: UUID,
        actor_id: UUID,
        today: date | None = None,
    ) -> Charge:
        """
        Apply the organization's late fee to ``charge_id``.

        Args:
            today: Evaluation date; defaults to the injected clock's today.

        Returns:
            The newly created ``late_fee`` charge.
        """
        today = today or self._clock.today()

        # 1. exists (locked)
        charge = self._ledger.get_charge(llc_id, charge_id, for_update=True)

        # 2. enabled
        policy = self._policies.get_policy(llc_id)
        if not policy.enabled:
            raise self._rejected(charge_id, LateFeeDisabledError(str(llc_id)))

        # 3. eligible type
        charge_type = ChargeType(charge.charge_type)
        if charge_type not in self._eligible_types:
            raise self._rejected(
                charge_id, InvalidChargeTypeError(str(charge_id), charge_type.value)
            )

        # 4. outstanding
        status = ChargeStatus(charge.status)
        if not status.accepts_payment:
            raise self._rejected(
                charge_id,
                InvalidChargeStatusError(
                    str(charge_id), status.value, "late fees apply only to open or partial charges"
                ),
            )

        # 5. not yet applied
        if charge.late_fee_applied_charge_id is not None:
            raise self._rejected(
                charge_id,
                LateFeeAlreadyAppliedError(str(charge_id), str(charge.late_fee_applied_charge_id)),
            )

        # 6. grace period elapsed
        if not is_past_grace(charge.due_date, policy.grace_days, today):
            raise self._rejected(
                charge_id,
                GracePeriodError(
                    str(charge_id), late_fee_eligible_on(charge.due_date, policy.grace_days)
                ),
            )

        # 7. non-zero fee
        fee = compute_late_fee(charge_amount=charge.amount, policy=policy)
        if fee <= 0:
            raise self._rejected(charge_id, ZeroFeeError(str(charge_id)))

        late_fee = self._ledger.create_charge(
            llc_id=llc_id,
            lease_id=charge.lease_id,
            period=charge.period,
            charge_type=ChargeType.LATE_FEE,
            amount=fee,
            due_date=today,
            actor_id=actor_id,
            description=f"Late fee for {charge_type.value} charge ({charge.period})",
            linked_charge_id=charge.id,
        )

        charge.late_fee_applied_charge_id = late_fee.id
        charge.late_fee_applied_at = self._clock.now()
        charge.updated_by_id = actor_id
        self._flush_versioned("Charge", str(charge_id))

        self._audit.record(
            entity_type="Charge",
            entity_id=charge.id,
            action=AuditAction.LATE_FEE_APPLIED,
            actor_id=actor_id,
            llc_id=llc_id,
            before={"late_fee_applied_charge_id": None},
            after={
                "late_fee_applied_charge_id": late_fee.id,
                "fee_amount": fee,
                "fee_type": policy.fee_type,
            },
        )

        logger.info(
            "late_fee_applied",
            extra={
                "charge_id": str(charge_id),
                "late_fee_charge_id": str(late_fee.id),
                "fee_amount": fee,
                "fee_type": policy.fee_type.value,
                "grace_days": policy.grace_days,
            },
        )
        return late_fee
