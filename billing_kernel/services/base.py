"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service in the kernel layer.  All concrete services receive a
    SQLAlchemy ``Session`` that they use via ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or rollback themselves.  The caller
      (LeaseBillingService via TransactionRunner, or a test harness) owns
      commit/rollback.
    - Lost updates surface as OptimisticLockError, never silently.

Failure modes:
    - OptimisticLockError when a version-checked UPDATE matches no row
      (StaleDataError) or a uniqueness guard trips under a race.
    - IntegrityError from any other constraint (FK, CHECK, NOT NULL)
      propagates as-is.
"""

from abc import ABC

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from billing_kernel.exceptions import OptimisticLockError
from billing_kernel.logging_config import get_logger

logger = get_logger("services.base")


def is_unique_violation(exc: IntegrityError, column: str) -> bool:
    """True if ``exc`` is a UNIQUE violation on ``column`` (SQLite or PostgreSQL)."""
    message = str(exc.orig).lower()
    return "unique constraint" in message and column.lower() in message


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide query-only (read) methods -- those belong
          in ``billing_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session

    def _flush_versioned(
        self,
        entity_type: str,
        entity_id: str,
        unique_column: str | None = None,
    ) -> None:
        """
        Flush pending changes, translating lost-update races.

        Args:
            entity_type: Entity named in the conflict error.
            entity_id: Entity id named in the conflict error.
            unique_column: Column whose UNIQUE constraint guards a
                concurrent insert.  A violation of that constraint is a
                conflict; every other IntegrityError propagates unchanged.
        """
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning(
                "optimistic_lock_conflict",
                extra={"entity_type": entity_type, "entity_id": entity_id},
            )
            raise OptimisticLockError(entity_type, entity_id) from exc
        except IntegrityError as exc:
            if unique_column is None or not is_unique_violation(exc, unique_column):
                raise
            logger.warning(
                "concurrent_insert_conflict",
                extra={"entity_type": entity_type, "entity_id": entity_id},
            )
            raise OptimisticLockError(entity_type, entity_id) from exc
