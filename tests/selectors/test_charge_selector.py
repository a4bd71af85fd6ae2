"""Tests for charge lookups, filtered listings and the overdue scan."""

from datetime import date
from uuid import uuid4

import pytest

from billing_kernel.domain.charge_status import ChargeStatus, ChargeType
from billing_kernel.domain.dtos import ChargeFilters
from billing_kernel.exceptions import ChargeNotFoundError, OrganizationNotFoundError
from billing_kernel.selectors.charge_selector import ChargeSelector


class TestGetCharge:
    def test_returns_record(self, charge_selector, lease, make_charge):
        charge = make_charge(lease, amount=150000)
        record = charge_selector.get_charge(lease.llc_id, charge.id)
        assert record.id == charge.id
        assert record.charge_type == ChargeType.RENT
        assert record.status == ChargeStatus.OPEN
        assert record.outstanding == 150000

    def test_foreign_llc_not_found(self, charge_selector, make_org, lease, make_charge):
        charge = make_charge(lease)
        with pytest.raises(ChargeNotFoundError):
            charge_selector.get_charge(make_org(name="Elm LLC").id, charge.id)


class TestListCharges:
    @pytest.fixture
    def charges(self, ledger, lease, make_charge, test_actor_id):
        feb = make_charge(lease, amount=1000, due_date=date(2024, 2, 1))
        jan = make_charge(lease, amount=1000, due_date=date(2024, 1, 1))
        util = make_charge(lease, amount=300, due_date=date(2024, 1, 10), charge_type="utility")
        mar = make_charge(lease, amount=1000, due_date=date(2024, 3, 1))
        ledger.void_charge(lease.llc_id, mar.id, "Lease ended", test_actor_id)
        return {"jan": jan, "util": util, "feb": feb, "mar": mar}

    def test_ordered_by_due_date(self, charge_selector, lease, charges):
        records = charge_selector.list_charges(lease.llc_id, lease.id)
        assert [r.id for r in records] == [
            charges["jan"].id,
            charges["util"].id,
            charges["feb"].id,
            charges["mar"].id,
        ]

    def test_status_filter(self, charge_selector, lease, charges):
        records = charge_selector.list_charges(
            lease.llc_id, lease.id, ChargeFilters(status=ChargeStatus.VOID)
        )
        assert [r.id for r in records] == [charges["mar"].id]

    def test_type_filter(self, charge_selector, lease, charges):
        records = charge_selector.list_charges(
            lease.llc_id, lease.id, ChargeFilters(charge_type=ChargeType.UTILITY)
        )
        assert [r.id for r in records] == [charges["util"].id]

    def test_inclusive_date_range(self, charge_selector, lease, charges):
        records = charge_selector.list_charges(
            lease.llc_id,
            lease.id,
            ChargeFilters(due_from=date(2024, 1, 10), due_to=date(2024, 2, 1)),
        )
        assert [r.id for r in records] == [charges["util"].id, charges["feb"].id]


class TestListOverdueCharges:
    def test_grace_cutoff_is_strict(self, session, make_org, make_lease, flat_policy, make_charge):
        lease = make_lease(make_org(**flat_policy(grace_days=5)))
        on_cutoff = make_charge(lease, due_date=date(2024, 1, 2))
        past_cutoff = make_charge(lease, due_date=date(2024, 1, 1))

        overdue = ChargeSelector(session).list_overdue_charges(lease.llc_id, date(2024, 1, 7))

        assert [o.charge.id for o in overdue] == [past_cutoff.id]
        assert overdue[0].days_overdue == 6
        assert on_cutoff.id not in {o.charge.id for o in overdue}

    def test_excludes_fees_paid_void_and_already_charged(
        self, session, ledger, late_fee_engine, make_org, make_lease, flat_policy, make_charge, test_actor_id
    ):
        lease = make_lease(make_org(**flat_policy(grace_days=0)))
        eligible = make_charge(lease, due_date=date(2023, 12, 1))
        paid = make_charge(lease, amount=1000, due_date=date(2023, 12, 1))
        ledger.apply_payment(paid, 1000, test_actor_id)
        voided = make_charge(lease, due_date=date(2023, 12, 1))
        ledger.void_charge(lease.llc_id, voided.id, "Mistake", test_actor_id)
        charged = make_charge(lease, due_date=date(2023, 11, 1))
        fee = late_fee_engine.apply_late_fee(lease.llc_id, charged.id, test_actor_id, today=date(2023, 12, 1))

        overdue = ChargeSelector(session).list_overdue_charges(lease.llc_id, date(2024, 1, 15))

        ids = [o.charge.id for o in overdue]
        assert ids == [eligible.id]
        assert fee.id not in ids

    def test_unsaved_policy_uses_default_grace(self, session, org, lease, make_charge):
        charge = make_charge(lease, due_date=date(2024, 1, 1))
        assert ChargeSelector(session, default_grace_days=10).list_overdue_charges(org.id, date(2024, 1, 8)) == []
        assert [o.charge.id for o in ChargeSelector(session).list_overdue_charges(org.id, date(2024, 1, 8))] == [charge.id]

    def test_unknown_llc(self, charge_selector):
        with pytest.raises(OrganizationNotFoundError):
            charge_selector.list_overdue_charges(uuid4(), date(2024, 1, 8))
