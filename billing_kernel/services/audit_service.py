"""
AuditLogService -- append-only audit log writer.

Responsibility:
    Records one AuditLogEntry per ledger mutation, inside the caller's
    transaction, with before/after snapshots of the fields touched.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by ChargeLedgerService, LateFeeEngine, PaymentAllocator and
    LateFeePolicyService.

Invariants enforced:
    - Audit rows share the mutation's transaction: a rollback removes both.
    - Snapshots are JSON-safe (UUIDs, dates and Decimals become strings).

Failure modes:
    - None of its own; database errors propagate to the caller.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.logging_config import get_logger
from billing_kernel.models.audit_log import AuditAction, AuditLogEntry
from billing_kernel.services.base import BaseService

logger = get_logger("services.audit")


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return str(value)


class AuditLogService(BaseService):
    """
    Writes audit log rows.

    Guarantees:
        - ``record`` adds exactly one row and never flushes on its own;
          the row is written with the mutation's next flush.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def record(
        self,
        *,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        llc_id: UUID,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action.value,
            actor_id=actor_id,
            llc_id=llc_id,
            occurred_at=self._clock.now(),
            changes={"before": _jsonable(before), "after": _jsonable(after)},
        )
        self.session.add(entry)
        logger.debug(
            "audit_entry_recorded",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action.value,
            },
        )
        return entry
