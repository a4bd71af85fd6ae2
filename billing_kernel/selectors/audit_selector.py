"""
Module: billing_kernel.selectors.audit_selector
Responsibility: Read-side queries over the ledger audit log.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select

from billing_kernel.domain.dtos import AuditRecord
from billing_kernel.models.audit_log import AuditAction, AuditLogEntry
from billing_kernel.selectors.base import BaseSelector


class AuditSelector(BaseSelector):
    """Audit log queries returning AuditRecord DTOs, oldest first."""

    def list_entries(
        self,
        llc_id: UUID,
        entity_id: UUID | None = None,
        action: AuditAction | None = None,
    ) -> list[AuditRecord]:
        stmt = select(AuditLogEntry).where(AuditLogEntry.llc_id == llc_id)
        if entity_id is not None:
            stmt = stmt.where(AuditLogEntry.entity_id == entity_id)
        if action is not None:
            stmt = stmt.where(AuditLogEntry.action == action.value)
        stmt = stmt.order_by(AuditLogEntry.occurred_at, AuditLogEntry.id)
        return [
            AuditRecord(
                entity_type=row.entity_type,
                entity_id=row.entity_id,
                action=row.action,
                actor_id=row.actor_id,
                llc_id=row.llc_id,
                occurred_at=row.occurred_at,
                changes=dict(row.changes),
            )
            for row in self.session.execute(stmt).scalars()
        ]
