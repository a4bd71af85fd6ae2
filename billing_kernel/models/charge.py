"""
Module: billing_kernel.models.charge
Responsibility: ORM persistence for charges, the billable obligations tied to
    a lease.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - 0 <= paid_amount <= amount, amount > 0 (CHECK constraints).
    - status == 'void' <=> void_reason IS NOT NULL (CHECK constraint).
    - linked_charge_id is UNIQUE: a source charge has at most one late fee.
    - version is SQLAlchemy's version_id_col: every UPDATE carries
      ``WHERE version = :expected`` and raises StaleDataError when another
      transaction got there first.

Failure modes:
    - IntegrityError on a second late fee for the same source charge.
    - StaleDataError on a concurrent update to the same charge.

Audit relevance:
    Charges are never deleted.  Voiding keeps the row and records who voided
    it, when, and why.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase, UUIDString
from billing_kernel.db.types import Cents, LongText, PeriodToken
from billing_kernel.domain.charge_status import ChargeStatus, derive_charge_status


class Charge(TrackedBase):
    """
    A billable obligation on a lease.

    Contract:
        ``status`` is stored for querying but is always the output of
        ``derive_charge_status``; call ``refresh_status()`` after touching
        ``paid_amount`` or voiding.

    Guarantees:
        - amount is immutable after creation.
        - paid_amount never decreases.
    """

    __tablename__ = "charges"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_charge_amount_positive"),
        CheckConstraint("paid_amount >= 0", name="ck_charge_paid_non_negative"),
        CheckConstraint("paid_amount <= amount", name="ck_charge_paid_within_amount"),
        CheckConstraint(
            "status IN ('open', 'partial', 'paid', 'void')",
            name="ck_charge_status_valid",
        ),
        CheckConstraint(
            "(status = 'void' AND void_reason IS NOT NULL) "
            "OR (status <> 'void' AND void_reason IS NULL)",
            name="ck_charge_void_reason_iff_void",
        ),
        Index("idx_charge_lease_due", "lease_id", "due_date"),
        Index("idx_charge_llc_status", "llc_id", "status"),
    )

    llc_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("llcs.id"),
        nullable=False,
    )

    lease_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("leases.id"),
        nullable=False,
    )

    # "YYYY-MM"
    period: Mapped[PeriodToken] = mapped_column(
        nullable=False,
    )

    charge_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    description: Mapped[LongText | None] = mapped_column(
        nullable=True,
    )

    amount: Mapped[Cents] = mapped_column(
        nullable=False,
    )

    paid_amount: Mapped[Cents] = mapped_column(
        nullable=False,
        default=0,
    )

    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=ChargeStatus.OPEN.value,
    )

    due_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    # On a late_fee charge: the source charge it was generated from
    linked_charge_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("charges.id"),
        nullable=True,
        unique=True,
    )

    # On a source charge: the late fee generated from it
    late_fee_applied_charge_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("charges.id"),
        nullable=True,
    )

    late_fee_applied_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    void_reason: Mapped[LongText | None] = mapped_column(
        nullable=True,
    )

    voided_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    voided_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_voided(self) -> bool:
        return self.void_reason is not None

    @property
    def outstanding(self) -> int:
        """Cents still owed; zero once voided."""
        if self.is_voided:
            return 0
        return self.amount - self.paid_amount

    def refresh_status(self) -> ChargeStatus:
        """Recompute and store status from amount, paid_amount and void state."""
        status = derive_charge_status(self.amount, self.paid_amount, self.is_voided)
        self.status = status.value
        return status

    def __repr__(self) -> str:
        return (
            f"<Charge {self.id} {self.charge_type} {self.period} "
            f"{self.paid_amount}/{self.amount} {self.status}>"
        )
