"""
Module: billing_kernel.selectors.payment_selector
Responsibility: Read-side queries over payments and their allocations.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Listings are newest payment_date first.
    - Allocations are returned in their recorded order.
"""

from uuid import UUID

from sqlalchemy import select

from billing_kernel.domain.dtos import PaymentFilters, PaymentRecord
from billing_kernel.exceptions import PaymentNotFoundError
from billing_kernel.models.payment import Payment
from billing_kernel.selectors.base import BaseSelector


class PaymentSelector(BaseSelector):
    """Payment queries returning PaymentRecord DTOs."""

    def get_payment(self, llc_id: UUID, payment_id: UUID) -> PaymentRecord:
        """
        Raises:
            PaymentNotFoundError: If absent or owned by another LLC.
        """
        payment = self.session.execute(
            select(Payment).where(Payment.id == payment_id, Payment.llc_id == llc_id)
        ).scalar_one_or_none()
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        return PaymentRecord.from_model(payment)

    def list_payments(
        self,
        llc_id: UUID,
        filters: PaymentFilters | None = None,
    ) -> list[PaymentRecord]:
        """Payments for an LLC.  Date bounds are inclusive."""
        filters = filters or PaymentFilters()
        stmt = select(Payment).where(Payment.llc_id == llc_id)
        if filters.lease_id is not None:
            stmt = stmt.where(Payment.lease_id == filters.lease_id)
        if filters.tenant_id is not None:
            stmt = stmt.where(Payment.tenant_id == filters.tenant_id)
        if filters.status is not None:
            stmt = stmt.where(Payment.status == filters.status.value)
        if filters.date_from is not None:
            stmt = stmt.where(Payment.payment_date >= filters.date_from)
        if filters.date_to is not None:
            stmt = stmt.where(Payment.payment_date <= filters.date_to)
        stmt = stmt.order_by(Payment.payment_date.desc(), Payment.created_at.desc(), Payment.id)
        return [PaymentRecord.from_model(p) for p in self.session.execute(stmt).scalars()]
