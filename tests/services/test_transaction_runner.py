"""
Tests for TransactionRunner.

Uses stub sessions so each attempt's commit/rollback/close can be observed
without a database.
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from billing_kernel.exceptions import (
    GracePeriodError,
    OptimisticLockError,
    TransactionRetryExhaustedError,
)
from billing_kernel.services.retry import TransactionRunner, is_retryable, is_transient_db_error


class StubSession:
    def __init__(self, log):
        self.log = log

    def commit(self):
        self.log.append("commit")

    def rollback(self):
        self.log.append("rollback")

    def close(self):
        self.log.append("close")


@pytest.fixture
def session_log():
    return []


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def runner(session_log, sleeps):
    return TransactionRunner(
        lambda: StubSession(session_log),
        max_attempts=3,
        backoff_seconds=0.01,
        sleep=sleeps.append,
    )


def _failing(errors, result="ok"):
    """Work that raises each error in turn, then returns ``result``."""
    pending = list(errors)

    def work(session):
        if pending:
            raise pending.pop(0)
        return result

    return work


def _locked():
    return OperationalError("UPDATE charges", {}, Exception("database is locked"))


class TestRun:
    def test_success_commits_once(self, runner, session_log, sleeps):
        assert runner.run("op", _failing([])) == "ok"
        assert session_log == ["commit", "close"]
        assert sleeps == []

    def test_conflict_retried(self, runner, session_log, sleeps, captured_logs):
        result = runner.run("op", _failing([OptimisticLockError("Charge", "c-1")]))

        assert result == "ok"
        assert session_log == ["rollback", "close", "commit", "close"]
        assert sleeps == [0.01]
        retries = [r for r in captured_logs() if r["message"] == "transaction_retry"]
        assert retries[0]["error_type"] == "OptimisticLockError"
        assert retries[0]["attempt"] == 1

    def test_stale_data_and_locked_database_retried(self, runner, sleeps):
        work = _failing([StaleDataError("stale"), _locked()])
        assert runner.run("op", work) == "ok"
        assert sleeps == [0.01, 0.02]

    def test_business_error_not_retried(self, runner, session_log):
        from datetime import date

        with pytest.raises(GracePeriodError):
            runner.run("op", _failing([GracePeriodError("c-1", date(2024, 1, 6))]))
        assert session_log == ["rollback", "close"]

    def test_other_errors_propagate_after_rollback(self, runner, session_log):
        with pytest.raises(KeyError):
            runner.run("op", _failing([KeyError("boom")]))
        assert session_log == ["rollback", "close"]

    def test_exhaustion(self, runner, session_log):
        errors = [OptimisticLockError("Charge", "c-1") for _ in range(3)]

        with pytest.raises(TransactionRetryExhaustedError) as exc_info:
            runner.run("apply_late_fee", _failing(errors))

        assert exc_info.value.code == "TRANSACTION_RETRY_EXHAUSTED"
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.__cause__, OptimisticLockError)
        assert session_log.count("rollback") == 3
        assert "commit" not in session_log

    @pytest.mark.parametrize("attempts", [0, 11])
    def test_attempt_limits(self, attempts):
        with pytest.raises(ValueError):
            TransactionRunner(lambda: None, max_attempts=attempts)

    def test_negative_backoff_rejected(self):
        with pytest.raises(ValueError):
            TransactionRunner(lambda: None, backoff_seconds=-1)


class TestClassification:
    def test_transient_markers(self):
        assert is_transient_db_error(_locked())
        assert is_transient_db_error(
            OperationalError("x", {}, Exception("deadlock detected"))
        )
        assert not is_transient_db_error(
            IntegrityError("x", {}, Exception("UNIQUE constraint failed"))
        )
        assert not is_transient_db_error(ValueError("database is locked"))

    def test_exhaustion_never_retried(self):
        assert not is_retryable(TransactionRetryExhaustedError("op", 3))
        assert is_retryable(OptimisticLockError("Charge", "c-1"))
