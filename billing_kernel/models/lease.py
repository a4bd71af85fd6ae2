"""
Module: billing_kernel.models.lease
Responsibility: ORM persistence for leases.  The ledger only checks that a
    lease exists and belongs to the calling LLC; lease lifecycle is managed
    outside it.
Architecture position: Kernel > Models.  May import from db/ only.
"""

from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase, UUIDString


class Lease(TrackedBase):
    """A tenancy agreement that charges and payments attach to."""

    __tablename__ = "leases"

    __table_args__ = (
        Index("idx_lease_llc", "llc_id"),
    )

    llc_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("llcs.id"),
        nullable=False,
    )

    tenant_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
    )

    def __repr__(self) -> str:
        return f"<Lease {self.id} llc={self.llc_id} status={self.status}>"
