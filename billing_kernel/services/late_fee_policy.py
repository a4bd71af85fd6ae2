"""
LateFeePolicyService -- per-organization late-fee settings store.

Responsibility:
    Reads and updates an LLC's late-fee policy.  The LateFeeEngine only
    ever calls ``get_policy``.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - fee_type is flat or percentage.
    - fee_amount and max_fee_amount are non-negative; a flat fee_amount is
      whole cents.
    - grace_days is an integer in 0..30.
    - An LLC that never saved a policy reads as: disabled, flat, no amount,
      default grace days.

Failure modes:
    - OrganizationNotFoundError for an unknown LLC.
    - ValidationError for any invalid field; nothing is written.
"""

from __future__ import annotations

from dataclasses import asdict, replace
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.dtos import LateFeePolicy, LateFeeType
from billing_kernel.exceptions import OrganizationNotFoundError, ValidationError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.audit_log import AuditAction
from billing_kernel.models.organization import Organization
from billing_kernel.services.audit_service import AuditLogService
from billing_kernel.services.base import BaseService

logger = get_logger("services.late_fee_policy")

MAX_GRACE_DAYS = 30

_UPDATABLE_FIELDS = frozenset(
    {"enabled", "fee_type", "fee_amount", "max_fee_amount", "grace_days"}
)


def _coerce_fee_amount(value: Any, fee_type: LateFeeType) -> int | Decimal | None:
    if value is None:
        return None
    if isinstance(value, (bool, float)):
        raise ValidationError("fee_amount", "must be an int or Decimal")
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError("fee_amount", "must be numeric") from exc
    if not amount.is_finite() or amount < 0:
        raise ValidationError("fee_amount", "must be a non-negative number")
    if fee_type == LateFeeType.FLAT:
        if amount != amount.to_integral_value():
            raise ValidationError("fee_amount", "flat fee must be whole cents")
        return int(amount)
    return amount


def validate_policy(policy: LateFeePolicy) -> LateFeePolicy:
    """Return a normalized copy of ``policy`` or raise ValidationError."""
    if not isinstance(policy.enabled, bool):
        raise ValidationError("enabled", "must be a boolean")
    try:
        fee_type = LateFeeType(policy.fee_type)
    except ValueError as exc:
        raise ValidationError("fee_type", "must be 'flat' or 'percentage'") from exc

    fee_amount = _coerce_fee_amount(policy.fee_amount, fee_type)

    max_fee = policy.max_fee_amount
    if max_fee is not None:
        if isinstance(max_fee, bool) or not isinstance(max_fee, int) or max_fee < 0:
            raise ValidationError("max_fee_amount", "must be a non-negative integer number of cents")

    grace = policy.grace_days
    if isinstance(grace, bool) or not isinstance(grace, int):
        raise ValidationError("grace_days", "must be an integer")
    if grace < 0 or grace > MAX_GRACE_DAYS:
        raise ValidationError("grace_days", f"must be between 0 and {MAX_GRACE_DAYS}")

    return replace(policy, fee_type=fee_type, fee_amount=fee_amount)


class LateFeePolicyService(BaseService):
    """
    Late-fee policy store backed by the organization row.

    Guarantees:
        - ``get_policy`` never writes.
        - ``update_policy`` validates the merged policy before touching
          the row, and audits the change.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditLogService | None = None,
        default_grace_days: int = 5,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._audit = audit or AuditLogService(session, self._clock)
        self._default_grace_days = default_grace_days

    def _get_organization(self, llc_id: UUID, for_update: bool = False) -> Organization:
        stmt = select(Organization).where(Organization.id == llc_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        org = self.session.execute(stmt).scalar_one_or_none()
        if org is None:
            raise OrganizationNotFoundError(str(llc_id))
        return org

    def get_policy(self, llc_id: UUID) -> LateFeePolicy:
        """Current policy for ``llc_id``."""
        org = self._get_organization(llc_id)
        return LateFeePolicy.from_model(org, self._default_grace_days)

    def update_policy(self, llc_id: UUID, actor_id: UUID, **changes: Any) -> LateFeePolicy:
        """
        Apply ``changes`` (any of enabled, fee_type, fee_amount,
        max_fee_amount, grace_days) and return the saved policy.

        Raises:
            ValidationError: Unknown field or invalid value.
            OrganizationNotFoundError: Unknown LLC.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(", ".join(sorted(unknown)), "not a late-fee policy field")

        org = self._get_organization(llc_id, for_update=True)
        current = LateFeePolicy.from_model(org, self._default_grace_days)
        updated = validate_policy(replace(current, **changes))

        org.late_fee_enabled = updated.enabled
        org.late_fee_type = updated.fee_type.value
        org.late_fee_amount = (
            Decimal(updated.fee_amount) if updated.fee_amount is not None else None
        )
        org.late_fee_max_amount = updated.max_fee_amount
        org.late_fee_grace_days = updated.grace_days
        org.updated_by_id = actor_id
        self.session.flush()

        self._audit.record(
            entity_type="Organization",
            entity_id=org.id,
            action=AuditAction.LATE_FEE_POLICY_UPDATED,
            actor_id=actor_id,
            llc_id=llc_id,
            before=asdict(current),
            after=asdict(updated),
        )

        logger.info(
            "late_fee_policy_updated",
            extra={
                "llc_id": str(llc_id),
                "enabled": updated.enabled,
                "fee_type": updated.fee_type.value,
                "grace_days": updated.grace_days,
                "changed_fields": sorted(changes),
            },
        )
        return updated
