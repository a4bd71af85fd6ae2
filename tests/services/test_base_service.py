"""
Tests for BaseService._flush_versioned error translation.

Only a UNIQUE violation on the named column counts as a concurrent
insert; FK and CHECK failures are data errors and must propagate.
"""

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from billing_kernel.exceptions import OptimisticLockError
from billing_kernel.services.base import BaseService, is_unique_violation

SQLITE_UNIQUE = "UNIQUE constraint failed: charges.linked_charge_id"
POSTGRES_UNIQUE = 'duplicate key value violates unique constraint "charges_linked_charge_id_key"'
POSTGRES_FK = (
    'insert or update on table "charges" violates foreign key constraint '
    '"charges_linked_charge_id_fkey"'
)
SQLITE_CHECK = "CHECK constraint failed: ck_charge_amount_positive"


class _RaisingSession:
    def __init__(self, error):
        self.error = error

    def flush(self):
        raise self.error


class _Service(BaseService):
    pass


def _integrity(message):
    return IntegrityError("INSERT INTO charges ...", {}, Exception(message))


class TestIsUniqueViolation:
    @pytest.mark.parametrize("message", [SQLITE_UNIQUE, POSTGRES_UNIQUE])
    def test_unique_on_column(self, message):
        assert is_unique_violation(_integrity(message), "linked_charge_id")

    @pytest.mark.parametrize("message", [POSTGRES_FK, SQLITE_CHECK])
    def test_other_constraints(self, message):
        assert not is_unique_violation(_integrity(message), "linked_charge_id")

    def test_unique_on_other_column(self):
        error = _integrity("UNIQUE constraint failed: payments.reference")
        assert not is_unique_violation(error, "linked_charge_id")


class TestFlushVersioned:
    @pytest.mark.parametrize("message", [SQLITE_UNIQUE, POSTGRES_UNIQUE])
    def test_unique_race_becomes_conflict(self, message, captured_logs):
        service = _Service(_RaisingSession(_integrity(message)))

        with pytest.raises(OptimisticLockError) as exc_info:
            service._flush_versioned("Charge", "c-1", unique_column="linked_charge_id")

        assert isinstance(exc_info.value.__cause__, IntegrityError)
        assert "concurrent_insert_conflict" in [r["message"] for r in captured_logs()]

    @pytest.mark.parametrize("message", [POSTGRES_FK, SQLITE_CHECK])
    def test_other_integrity_errors_propagate(self, message):
        error = _integrity(message)
        service = _Service(_RaisingSession(error))

        with pytest.raises(IntegrityError) as exc_info:
            service._flush_versioned("Charge", "c-1", unique_column="linked_charge_id")

        assert exc_info.value is error

    def test_integrity_error_propagates_without_unique_column(self):
        service = _Service(_RaisingSession(_integrity(SQLITE_UNIQUE)))

        with pytest.raises(IntegrityError):
            service._flush_versioned("Charge", "c-1")

    def test_stale_data_becomes_conflict(self):
        service = _Service(_RaisingSession(StaleDataError("0 rows matched")))

        with pytest.raises(OptimisticLockError):
            service._flush_versioned("Charge", "c-1")
