"""
Module: billing_kernel.models.payment
Responsibility: ORM persistence for payments and their allocation rows.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - amount > 0, 0 <= unallocated_amount <= amount (CHECK constraints).
    - allocation amounts are positive (CHECK constraint).
    - at most one allocation row per (payment, charge) and per
      (payment, position) (UNIQUE constraints).
    - sum(allocations.amount) + unallocated_amount == amount is established
      by PaymentAllocator before the rows are flushed.

Audit relevance:
    Payments are append-only from the ledger's point of view.  Allocation
    rows are the evidence for every increment of a charge's paid_amount.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import Base, TrackedBase, UUIDString
from billing_kernel.db.types import Cents, Currency, LongText, ShortCode
from billing_kernel.domain.dtos import PaymentStatus


class Payment(TrackedBase):
    """
    Money received against a lease.

    Guarantees:
        - allocations are loaded in ``position`` order.
        - a payment whose status is not SUCCEEDED has no allocations.
    """

    __tablename__ = "payments"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        CheckConstraint(
            "unallocated_amount >= 0 AND unallocated_amount <= amount",
            name="ck_payment_unallocated_range",
        ),
        Index("idx_payment_llc_date", "llc_id", "payment_date"),
        Index("idx_payment_lease", "lease_id"),
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

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    amount: Mapped[Cents] = mapped_column(
        nullable=False,
    )

    unallocated_amount: Mapped[Cents] = mapped_column(
        nullable=False,
        default=0,
    )

    currency: Mapped[Currency] = mapped_column(
        nullable=False,
        default="USD",
    )

    method: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=PaymentStatus.SUCCEEDED.value,
    )

    payment_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    check_number: Mapped[ShortCode | None] = mapped_column(
        nullable=True,
    )

    memo: Mapped[LongText | None] = mapped_column(
        nullable=True,
    )

    allocations: Mapped[list["PaymentAllocation"]] = relationship(
        back_populates="payment",
        cascade="all, delete-orphan",
        order_by="PaymentAllocation.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Payment {self.id} {self.amount} {self.status}>"


class PaymentAllocation(Base):
    """One slice of a payment applied to one charge."""

    __tablename__ = "payment_allocations"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_allocation_amount_positive"),
        UniqueConstraint("payment_id", "charge_id", name="uq_allocation_payment_charge"),
        UniqueConstraint("payment_id", "position", name="uq_allocation_payment_position"),
        Index("idx_allocation_charge", "charge_id"),
    )

    payment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payments.id"),
        nullable=False,
    )

    charge_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("charges.id"),
        nullable=False,
    )

    amount: Mapped[Cents] = mapped_column(
        nullable=False,
    )

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    payment: Mapped[Payment] = relationship(back_populates="allocations")

    def __repr__(self) -> str:
        return f"<PaymentAllocation {self.payment_id} -> {self.charge_id}: {self.amount}>"
