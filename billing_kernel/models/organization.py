"""
Module: billing_kernel.models.organization
Responsibility: ORM persistence for owning organizations (LLCs) and their
    late-fee policy.  Rows are created by the surrounding CRUD layer; the
    ledger reads them for ownership checks and policy lookups and writes only
    the late_fee_* columns.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - late_fee_grace_days within 0..30 (CHECK constraint).
    - late_fee_amount and late_fee_max_amount non-negative (CHECK constraints).
"""

from sqlalchemy import Boolean, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase
from billing_kernel.db.types import Cents, FeeAmount
from billing_kernel.domain.dtos import LateFeeType


class Organization(TrackedBase):
    """
    An LLC that owns leases and bills tenants.

    Guarantees:
        - An organization that never saved late-fee settings has the policy
          defaults: disabled, flat, no amount, and the configured default
          grace period (5 days unless overridden).

    Non-goals:
        - Owner/member management lives outside the ledger.
    """

    __tablename__ = "llcs"

    __table_args__ = (
        CheckConstraint(
            "late_fee_grace_days IS NULL "
            "OR (late_fee_grace_days >= 0 AND late_fee_grace_days <= 30)",
            name="ck_llc_grace_days_range",
        ),
        CheckConstraint(
            "late_fee_amount IS NULL OR late_fee_amount >= 0",
            name="ck_llc_late_fee_amount_non_negative",
        ),
        CheckConstraint(
            "late_fee_max_amount IS NULL OR late_fee_max_amount >= 0",
            name="ck_llc_late_fee_max_non_negative",
        ),
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    late_fee_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    late_fee_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=LateFeeType.FLAT.value,
    )

    # Cents for flat policies, percent for percentage policies
    late_fee_amount: Mapped[FeeAmount | None] = mapped_column(
        nullable=True,
    )

    late_fee_max_amount: Mapped[Cents | None] = mapped_column(
        nullable=True,
    )

    # NULL until the policy is first saved; readers fall back to the
    # configured default grace period
    late_fee_grace_days: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Organization {self.id}: {self.name}>"
