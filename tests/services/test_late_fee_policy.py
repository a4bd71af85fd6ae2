"""Tests for LateFeePolicyService: defaults, updates and validation."""

from decimal import Decimal
from uuid import uuid4

import pytest

from billing_kernel.domain.dtos import LateFeePolicy, LateFeeType
from billing_kernel.exceptions import OrganizationNotFoundError, ValidationError
from billing_kernel.models.audit_log import AuditAction
from billing_kernel.selectors.audit_selector import AuditSelector
from billing_kernel.services.late_fee_policy import LateFeePolicyService, validate_policy


class TestGetPolicy:
    def test_defaults_for_unsaved_org(self, policy_service, org):
        assert policy_service.get_policy(org.id) == LateFeePolicy()

    def test_configured_default_grace(self, session, deterministic_clock, org):
        service = LateFeePolicyService(session, deterministic_clock, default_grace_days=10)
        assert service.get_policy(org.id).grace_days == 10

    def test_unknown_org(self, policy_service):
        with pytest.raises(OrganizationNotFoundError):
            policy_service.get_policy(uuid4())


class TestUpdatePolicy:
    def test_enable_flat(self, policy_service, org, test_actor_id):
        policy = policy_service.update_policy(
            org.id, test_actor_id, enabled=True, fee_amount=5000, grace_days=3
        )

        assert policy == LateFeePolicy(
            enabled=True, fee_type=LateFeeType.FLAT, fee_amount=5000, grace_days=3
        )
        assert policy_service.get_policy(org.id) == policy

    def test_partial_update_keeps_other_fields(self, policy_service, org, test_actor_id):
        policy_service.update_policy(org.id, test_actor_id, enabled=True, fee_amount=5000)
        policy = policy_service.update_policy(org.id, test_actor_id, grace_days=0)

        assert policy.enabled is True
        assert policy.fee_amount == 5000
        assert policy.grace_days == 0

    def test_percentage_with_cap(self, policy_service, org, test_actor_id):
        policy = policy_service.update_policy(
            org.id,
            test_actor_id,
            enabled=True,
            fee_type="percentage",
            fee_amount=Decimal("5"),
            max_fee_amount=10000,
        )
        assert policy.fee_type == LateFeeType.PERCENTAGE
        assert policy.fee_amount == Decimal("5")
        assert policy.max_fee_amount == 10000

    def test_string_amount_accepted(self, policy_service, org, test_actor_id):
        policy = policy_service.update_policy(org.id, test_actor_id, fee_amount="2500")
        assert policy.fee_amount == 2500

    @pytest.mark.parametrize(
        "changes, field",
        [
            ({"grace_days": 31}, "grace_days"),
            ({"grace_days": -1}, "grace_days"),
            ({"grace_days": 2.5}, "grace_days"),
            ({"fee_type": "compound"}, "fee_type"),
            ({"fee_amount": -1}, "fee_amount"),
            ({"fee_amount": 12.5}, "fee_amount"),
            ({"fee_amount": Decimal("10.5")}, "fee_amount"),
            ({"fee_amount": "lots"}, "fee_amount"),
            ({"max_fee_amount": -5}, "max_fee_amount"),
            ({"enabled": "yes"}, "enabled"),
        ],
    )
    def test_invalid_changes_rejected(self, policy_service, org, test_actor_id, changes, field):
        with pytest.raises(ValidationError) as exc_info:
            policy_service.update_policy(org.id, test_actor_id, **changes)
        assert exc_info.value.field == field
        assert policy_service.get_policy(org.id) == LateFeePolicy()

    def test_unknown_field_rejected(self, policy_service, org, test_actor_id):
        with pytest.raises(ValidationError, match="not a late-fee policy field"):
            policy_service.update_policy(org.id, test_actor_id, fee_percent=5)

    def test_unknown_org(self, policy_service, test_actor_id):
        with pytest.raises(OrganizationNotFoundError):
            policy_service.update_policy(uuid4(), test_actor_id, enabled=True)

    def test_audited(self, policy_service, session, org, test_actor_id, captured_logs):
        policy_service.update_policy(org.id, test_actor_id, enabled=True, fee_amount=5000)
        session.flush()

        (entry,) = AuditSelector(session).list_entries(
            org.id, action=AuditAction.LATE_FEE_POLICY_UPDATED
        )
        assert entry.changes["before"]["enabled"] is False
        assert entry.changes["after"]["enabled"] is True
        assert entry.changes["after"]["fee_amount"] == 5000
        (record,) = [r for r in captured_logs() if r["message"] == "late_fee_policy_updated"]
        assert record["changed_fields"] == ["enabled", "fee_amount"]


class TestValidatePolicy:
    def test_percentage_keeps_fraction(self):
        policy = validate_policy(
            LateFeePolicy(enabled=True, fee_type="percentage", fee_amount=Decimal("2.75"))
        )
        assert policy.fee_type == LateFeeType.PERCENTAGE
        assert policy.fee_amount == Decimal("2.75")

    def test_flat_integral_decimal_becomes_int(self):
        policy = validate_policy(LateFeePolicy(fee_amount=Decimal("5000.00")))
        assert policy.fee_amount == 5000
        assert isinstance(policy.fee_amount, int)
