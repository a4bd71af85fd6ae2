"""
Hypothesis-driven operation sequences against the billing facade.

Random interleavings of charge creation, payments, voids and late fees
must keep every charge and payment internally consistent:

- 0 <= paid_amount <= amount on every charge
- allocations across all payments sum to each charge's paid_amount
- every payment's allocations plus its credit equal its amount
- the lease balance equals total charges minus total paid

Business rejections (void of a paid charge, second late fee, ...) are
expected along the way and leave state untouched.
"""

from collections import defaultdict
from datetime import date, timedelta

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from billing_kernel.domain.charge_status import ChargeStatus
from billing_kernel.exceptions import BillingLedgerError

START = date(2024, 1, 1)
TODAY = date(2024, 6, 1)

operations = st.lists(
    st.one_of(
        st.tuples(st.just("charge"), st.integers(1, 200000), st.integers(0, 120)),
        st.tuples(st.just("pay"), st.integers(1, 300000)),
        st.tuples(st.just("void"), st.integers(0, 20)),
        st.tuples(st.just("fee"), st.integers(0, 20)),
    ),
    min_size=1,
    max_size=12,
)


class TestLedgerSequences:
    @given(ops=operations)
    @settings(
        max_examples=30,
        deadline=None,
        suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
    )
    def test_totals_stay_consistent(self, billing, seed_lease, flat_policy, test_actor_id, ops):
        llc_id, lease_id, tenant_id = seed_lease(**flat_policy(amount=2500, grace_days=0))
        charge_ids = []

        for op in ops:
            try:
                if op[0] == "charge":
                    due = START + timedelta(days=op[2])
                    charge = billing.create_charge(
                        llc_id, lease_id, due.strftime("%Y-%m"), "rent", op[1], due, test_actor_id
                    )
                    charge_ids.append(charge.id)
                elif op[0] == "pay":
                    billing.record_payment(llc_id, lease_id, tenant_id, op[1], "cash", test_actor_id)
                elif charge_ids and op[0] == "void":
                    billing.void_charge(llc_id, charge_ids[op[1] % len(charge_ids)], "Reissued", test_actor_id)
                elif charge_ids and op[0] == "fee":
                    fee = billing.apply_late_fee(
                        llc_id, charge_ids[op[1] % len(charge_ids)], test_actor_id, today=TODAY
                    )
                    charge_ids.append(fee.id)
            except BillingLedgerError:
                pass

        charges = billing.list_charges(llc_id, lease_id)
        payments = billing.list_payments(llc_id)

        allocated = defaultdict(int)
        for payment in payments:
            assert payment.allocated_amount + payment.unallocated_amount == payment.amount
            for line in payment.allocations:
                allocated[line.charge_id] += line.amount

        for charge in charges:
            assert 0 <= charge.paid_amount <= charge.amount
            assert allocated[charge.id] == charge.paid_amount
            if charge.status == ChargeStatus.VOID:
                assert charge.paid_amount == 0
            elif charge.paid_amount == charge.amount:
                assert charge.status == ChargeStatus.PAID

        live = [c for c in charges if c.status != ChargeStatus.VOID]
        balance = billing.get_charge_balance(llc_id, lease_id, TODAY)
        assert balance.total_charges == sum(c.amount for c in live)
        assert balance.total_paid == sum(c.paid_amount for c in live)
        assert balance.balance == balance.total_charges - balance.total_paid
