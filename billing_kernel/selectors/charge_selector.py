"""
Module: billing_kernel.selectors.charge_selector
Responsibility: Read-side queries over charges: single lookup, filtered
    per-lease listing, and the LLC-wide overdue scan used to find charges a
    late fee could be applied to.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Listings are ordered by due_date ascending, then id.
    - The overdue scan never returns late_fee charges or charges that
      already carry a late fee.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_engines.late_fee import days_overdue, overdue_cutoff
from billing_kernel.domain.charge_status import OUTSTANDING_STATUSES, ChargeType
from billing_kernel.domain.dtos import ChargeFilters, ChargeRecord, LateFeePolicy, OverdueCharge
from billing_kernel.exceptions import ChargeNotFoundError, OrganizationNotFoundError
from billing_kernel.models.charge import Charge
from billing_kernel.models.organization import Organization
from billing_kernel.selectors.base import BaseSelector


class ChargeSelector(BaseSelector):
    """Charge queries returning ChargeRecord DTOs."""

    def __init__(self, session: Session, default_grace_days: int = 5):
        super().__init__(session)
        self._default_grace_days = default_grace_days

    def get_charge(self, llc_id: UUID, charge_id: UUID) -> ChargeRecord:
        """
        Raises:
            ChargeNotFoundError: If absent or owned by another LLC.
        """
        charge = self.session.execute(
            select(Charge).where(Charge.id == charge_id, Charge.llc_id == llc_id)
        ).scalar_one_or_none()
        if charge is None:
            raise ChargeNotFoundError(str(charge_id))
        return ChargeRecord.from_model(charge)

    def list_charges(
        self,
        llc_id: UUID,
        lease_id: UUID,
        filters: ChargeFilters | None = None,
    ) -> list[ChargeRecord]:
        """Charges on a lease, oldest due date first.  Dates are inclusive."""
        filters = filters or ChargeFilters()
        stmt = select(Charge).where(Charge.llc_id == llc_id, Charge.lease_id == lease_id)
        if filters.status is not None:
            stmt = stmt.where(Charge.status == filters.status.value)
        if filters.charge_type is not None:
            stmt = stmt.where(Charge.charge_type == filters.charge_type.value)
        if filters.due_from is not None:
            stmt = stmt.where(Charge.due_date >= filters.due_from)
        if filters.due_to is not None:
            stmt = stmt.where(Charge.due_date <= filters.due_to)
        stmt = stmt.order_by(Charge.due_date, Charge.id)
        return [ChargeRecord.from_model(c) for c in self.session.execute(stmt).scalars()]

    def list_overdue_charges(self, llc_id: UUID, today: date) -> list[OverdueCharge]:
        """
        Open or partial charges past their grace period with no late fee yet.

        A charge qualifies when ``due_date < today - grace_days``.

        Raises:
            OrganizationNotFoundError: Unknown LLC.
        """
        org = self.session.get(Organization, llc_id)
        if org is None:
            raise OrganizationNotFoundError(str(llc_id))
        policy = LateFeePolicy.from_model(org, self._default_grace_days)
        cutoff = overdue_cutoff(policy.grace_days, today)

        stmt = (
            select(Charge)
            .where(
                Charge.llc_id == llc_id,
                Charge.status.in_([s.value for s in OUTSTANDING_STATUSES]),
                Charge.charge_type != ChargeType.LATE_FEE.value,
                Charge.late_fee_applied_charge_id.is_(None),
                Charge.due_date < cutoff,
            )
            .order_by(Charge.due_date, Charge.id)
        )
        return [
            OverdueCharge(
                charge=ChargeRecord.from_model(c),
                days_overdue=days_overdue(c.due_date, today),
            )
            for c in self.session.execute(stmt).scalars()
        ]
