"""
Module: billing_kernel.models.audit_log
Responsibility: ORM persistence for the append-only ledger audit log.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Rows are only ever inserted, in the same transaction as the mutation
      they describe.  A rolled-back mutation leaves no audit row behind.

Audit relevance:
    Every charge creation, void, payment application, late fee, payment and
    late-fee policy change records who did it, when, and the before/after
    values of the fields it touched.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import Base, UUIDString
from billing_kernel.db.types import ShortCode


class AuditAction(str, Enum):
    """Types of auditable ledger actions."""

    CHARGE_CREATED = "charge_created"
    CHARGE_VOIDED = "charge_voided"
    CHARGE_PAYMENT_APPLIED = "charge_payment_applied"
    LATE_FEE_APPLIED = "late_fee_applied"
    PAYMENT_RECORDED = "payment_recorded"
    LATE_FEE_POLICY_UPDATED = "late_fee_policy_updated"


class AuditLogEntry(Base):
    """
    One audited mutation.

    Non-goals:
        - No hash chain.  Tamper evidence is left to the database's own
          access controls.
    """

    __tablename__ = "audit_log"

    __table_args__ = (
        Index("idx_audit_log_entity", "entity_type", "entity_id"),
        Index("idx_audit_log_llc_occurred", "llc_id", "occurred_at"),
    )

    # e.g. "Charge", "Payment", "Organization"
    entity_type: Mapped[ShortCode] = mapped_column(
        nullable=False,
    )

    entity_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    action: Mapped[ShortCode] = mapped_column(
        nullable=False,
    )

    actor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    llc_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # {"before": {...} | None, "after": {...} | None}
    changes: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AuditLogEntry {self.action} on {self.entity_type}:{self.entity_id}>"
