"""Tests for payment lookups and listings."""

from datetime import date
from uuid import uuid4

import pytest

from billing_kernel.domain.dtos import AllocationLine, PaymentFilters, PaymentMethod, PaymentStatus
from billing_kernel.exceptions import PaymentNotFoundError


@pytest.fixture
def pay(allocator, test_actor_id):
    def _pay(lease, amount, payment_date, **kwargs):
        kwargs.setdefault("method", "cash")
        return allocator.record_payment(
            llc_id=lease.llc_id,
            lease_id=lease.id,
            tenant_id=lease.tenant_id,
            amount=amount,
            actor_id=test_actor_id,
            payment_date=payment_date,
            **kwargs,
        )

    return _pay


class TestGetPayment:
    def test_returns_record_with_allocations(self, payment_selector, pay, lease, make_charge):
        jan = make_charge(lease, amount=600, due_date=date(2024, 1, 1))
        feb = make_charge(lease, amount=700, due_date=date(2024, 2, 1))
        payment = pay(lease, 1000, date(2024, 1, 5), method="check", check_number="1042")

        record = payment_selector.get_payment(lease.llc_id, payment.id)

        assert record.method == PaymentMethod.CHECK
        assert record.status == PaymentStatus.SUCCEEDED
        assert record.allocations == (AllocationLine(jan.id, 600), AllocationLine(feb.id, 400))
        assert record.check_number == "1042"

    def test_unknown(self, payment_selector, org):
        with pytest.raises(PaymentNotFoundError):
            payment_selector.get_payment(org.id, uuid4())

    def test_foreign_llc(self, payment_selector, pay, lease, make_org):
        payment = pay(lease, 1000, date(2024, 1, 5))
        with pytest.raises(PaymentNotFoundError):
            payment_selector.get_payment(make_org(name="Elm LLC").id, payment.id)


class TestListPayments:
    @pytest.fixture
    def payments(self, pay, org, lease, make_lease):
        other_lease = make_lease(org)
        return {
            "early": pay(lease, 1000, date(2024, 1, 2)),
            "late": pay(lease, 2000, date(2024, 1, 20)),
            "other": pay(other_lease, 3000, date(2024, 1, 10)),
            "failed": pay(lease, 4000, date(2024, 1, 15), method="card", status="failed"),
        }

    def test_newest_first(self, payment_selector, org, payments):
        records = payment_selector.list_payments(org.id)
        assert [r.id for r in records] == [
            payments["late"].id,
            payments["failed"].id,
            payments["other"].id,
            payments["early"].id,
        ]

    def test_lease_filter(self, payment_selector, org, lease, payments):
        records = payment_selector.list_payments(org.id, PaymentFilters(lease_id=lease.id))
        assert payments["other"].id not in {r.id for r in records}
        assert len(records) == 3

    def test_status_and_date_filters(self, payment_selector, org, payments):
        records = payment_selector.list_payments(
            org.id,
            PaymentFilters(
                status=PaymentStatus.SUCCEEDED,
                date_from=date(2024, 1, 2),
                date_to=date(2024, 1, 10),
            ),
        )
        assert [r.id for r in records] == [payments["other"].id, payments["early"].id]

    def test_tenant_filter(self, payment_selector, org, lease, payments):
        records = payment_selector.list_payments(org.id, PaymentFilters(tenant_id=lease.tenant_id))
        assert {r.id for r in records} == {
            payments["early"].id,
            payments["late"].id,
            payments["failed"].id,
        }
