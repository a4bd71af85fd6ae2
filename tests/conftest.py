"""
Pytest fixtures for the billing ledger test suite.

Provides:
- A file-backed SQLite database per test (shared by threads in
  concurrency tests)
- Kernel services and selectors bound to one session
- A LeaseBillingService facade bound to the same database
- Organization / lease factories
- Structured log capture

Set BILLING_TEST_DATABASE_URL to run against PostgreSQL instead; tables are
dropped and recreated around every test.
"""

import json
import logging
import os
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest
from sqlalchemy.orm import sessionmaker

from billing_kernel.db.engine import build_engine, create_tables, drop_tables
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from billing_kernel.models.lease import Lease
from billing_kernel.models.organization import Organization
from billing_kernel.selectors.balance_selector import BalanceSelector
from billing_kernel.selectors.charge_selector import ChargeSelector
from billing_kernel.selectors.payment_selector import PaymentSelector
from billing_kernel.services.audit_service import AuditLogService
from billing_kernel.services.charge_ledger import ChargeLedgerService
from billing_kernel.services.late_fee_engine import LateFeeEngine
from billing_kernel.services.late_fee_policy import LateFeePolicyService
from billing_kernel.services.payment_allocator import PaymentAllocator
from billing_modules.lease_billing.service import LeaseBillingService


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture billing_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.create_charge(...)
            logs = captured_logs()
            assert any(r["message"] == "charge_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("billing_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine(tmp_path):
    """Fresh schema per test."""
    url = os.environ.get("BILLING_TEST_DATABASE_URL") or f"sqlite:///{tmp_path / 'ledger.db'}"
    engine = build_engine(url)
    drop_tables(engine)
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


# =============================================================================
# Clock / actors
# =============================================================================


@pytest.fixture
def test_actor_id():
    return uuid4()


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


# =============================================================================
# Factories
# =============================================================================


def _flat_policy(amount: int = 5000, grace_days: int = 5) -> dict:
    return {
        "late_fee_enabled": True,
        "late_fee_type": "flat",
        "late_fee_amount": Decimal(amount),
        "late_fee_grace_days": grace_days,
    }


def _percentage_policy(rate: str = "5", cap: int | None = None, grace_days: int = 5) -> dict:
    return {
        "late_fee_enabled": True,
        "late_fee_type": "percentage",
        "late_fee_amount": Decimal(rate),
        "late_fee_max_amount": cap,
        "late_fee_grace_days": grace_days,
    }


@pytest.fixture
def flat_policy():
    """Policy column kwargs for an enabled flat fee."""
    return _flat_policy


@pytest.fixture
def percentage_policy():
    """Policy column kwargs for an enabled percentage fee."""
    return _percentage_policy


@pytest.fixture
def make_org(session, test_actor_id):
    """Create an organization in the test session.  kwargs set policy columns."""

    def _make(name: str = "Maple Street LLC", **policy) -> Organization:
        org = Organization(name=name, created_by_id=test_actor_id, **policy)
        session.add(org)
        session.flush()
        return org

    return _make


@pytest.fixture
def make_lease(session, test_actor_id):
    def _make(org: Organization, tenant_id=None) -> Lease:
        lease = Lease(
            llc_id=org.id,
            tenant_id=tenant_id or uuid4(),
            created_by_id=test_actor_id,
        )
        session.add(lease)
        session.flush()
        return lease

    return _make


@pytest.fixture
def org(make_org):
    """Organization with the default (disabled) late-fee policy."""
    return make_org()


@pytest.fixture
def lease(make_lease, org):
    return make_lease(org)


@pytest.fixture
def seed_lease(session_factory, test_actor_id):
    """
    Commit an organization and a lease for facade and concurrency tests.

    Returns (llc_id, lease_id, tenant_id).
    """

    def _seed(**policy):
        with session_factory() as sess:
            org = Organization(name="Oak Court LLC", created_by_id=test_actor_id, **policy)
            sess.add(org)
            sess.flush()
            tenant_id = uuid4()
            lease = Lease(llc_id=org.id, tenant_id=tenant_id, created_by_id=test_actor_id)
            sess.add(lease)
            sess.commit()
            return org.id, lease.id, tenant_id

    return _seed


# =============================================================================
# Kernel services and selectors
# =============================================================================


@pytest.fixture
def audit_service(session, deterministic_clock):
    return AuditLogService(session, deterministic_clock)


@pytest.fixture
def ledger(session, deterministic_clock, audit_service):
    return ChargeLedgerService(session, deterministic_clock, audit_service)


@pytest.fixture
def policy_service(session, deterministic_clock, audit_service):
    return LateFeePolicyService(session, deterministic_clock, audit_service)


@pytest.fixture
def late_fee_engine(session, deterministic_clock, ledger, policy_service, audit_service):
    return LateFeeEngine(
        session,
        deterministic_clock,
        ledger=ledger,
        policies=policy_service,
        audit=audit_service,
    )


@pytest.fixture
def allocator(session, deterministic_clock, ledger, audit_service):
    return PaymentAllocator(session, deterministic_clock, ledger=ledger, audit=audit_service)


@pytest.fixture
def charge_selector(session):
    return ChargeSelector(session)


@pytest.fixture
def balance_selector(session):
    return BalanceSelector(session)


@pytest.fixture
def payment_selector(session):
    return PaymentSelector(session)


@pytest.fixture
def make_charge(ledger, test_actor_id):
    """Create a charge through the ledger service with sensible defaults."""

    def _make(
        lease: Lease,
        amount: int = 150000,
        due_date: date = date(2024, 1, 1),
        charge_type: str = "rent",
        period: str | None = None,
    ):
        return ledger.create_charge(
            llc_id=lease.llc_id,
            lease_id=lease.id,
            period=period or due_date.strftime("%Y-%m"),
            charge_type=charge_type,
            amount=amount,
            due_date=due_date,
            actor_id=test_actor_id,
        )

    return _make


# =============================================================================
# Facade
# =============================================================================


@pytest.fixture
def billing(session_factory, deterministic_clock):
    return LeaseBillingService(
        session_factory,
        clock=deterministic_clock,
        retry_backoff_seconds=0,
    )
