"""
Module: billing_kernel.selectors.balance_selector
Responsibility: Per-lease balance aggregation, computed from charge rows in
    a single query.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Void charges contribute nothing to any total.
    - balance == total_charges - total_paid.
    - overdue_amount sums what is still owed on charges due before today.
    - Nothing is cached; every call reads committed state.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import and_, case, func, select

from billing_kernel.domain.charge_status import OUTSTANDING_STATUSES, ChargeStatus
from billing_kernel.domain.dtos import ChargeBalance
from billing_kernel.models.charge import Charge
from billing_kernel.selectors.base import BaseSelector


class BalanceSelector(BaseSelector):
    """Lease balance queries."""

    def get_charge_balance(self, llc_id: UUID, lease_id: UUID, today: date) -> ChargeBalance:
        """
        Balance summary for a lease.  A lease with no charges (or an
        unknown lease) yields all zeros.
        """
        outstanding = Charge.amount - Charge.paid_amount
        outstanding_values = [s.value for s in OUTSTANDING_STATUSES]
        stmt = select(
            func.coalesce(func.sum(Charge.amount), 0),
            func.coalesce(func.sum(Charge.paid_amount), 0),
            func.coalesce(
                func.sum(
                    case(
                        (
                            and_(
                                Charge.due_date < today,
                                Charge.status != ChargeStatus.PAID.value,
                            ),
                            outstanding,
                        ),
                        else_=0,
                    )
                ),
                0,
            ),
            func.count(case((Charge.status.in_(outstanding_values), 1))),
        ).where(
            Charge.llc_id == llc_id,
            Charge.lease_id == lease_id,
            Charge.status != ChargeStatus.VOID.value,
        )

        total_charges, total_paid, overdue, open_count = self.session.execute(stmt).one()
        total_charges = int(total_charges)
        total_paid = int(total_paid)
        return ChargeBalance(
            total_charges=total_charges,
            total_paid=total_paid,
            balance=total_charges - total_paid,
            overdue_amount=int(overdue),
            open_charges=int(open_count),
        )
