"""
TransactionRunner -- bounded retry of whole transactions under contention.

Responsibility:
    Runs a unit of work in a fresh session, commits it, and retries the
    whole unit when it lost a race with another transaction.

Architecture position:
    Kernel > Services -- transaction infrastructure.
    Used by the LeaseBillingService facade, which owns transaction
    boundaries.

Invariants enforced:
    - Business errors (BillingLedgerError other than ConcurrencyError) are
      terminal: rolled back and re-raised on the first attempt.
    - Only contention is retried: ConcurrencyError, StaleDataError, and
      driver errors reporting a deadlock, a serialization failure or a
      locked SQLite database.
    - At most ``max_attempts`` attempts; every failed attempt is rolled back
      before the next begins.

Failure modes:
    - TransactionRetryExhaustedError (chained to the last conflict) once
      every attempt lost its race.
    - Any other exception propagates unchanged after rollback.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from billing_kernel.exceptions import ConcurrencyError, TransactionRetryExhaustedError
from billing_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")

_TRANSIENT_MARKERS = (
    "deadlock",
    "could not serialize",
    "database is locked",
    "database table is locked",
)


def is_transient_db_error(exc: BaseException) -> bool:
    """True for driver errors that a fresh attempt may not hit again."""
    if not isinstance(exc, DBAPIError):
        return False
    message = str(exc).lower()
    return any(marker in message for marker in _TRANSIENT_MARKERS)


def is_retryable(exc: BaseException) -> bool:
    return (
        isinstance(exc, (ConcurrencyError, StaleDataError))
        and not isinstance(exc, TransactionRetryExhaustedError)
    ) or is_transient_db_error(exc)


class TransactionRunner:
    """
    Runs units of work with commit-or-rollback and bounded retry.

    Contract:
        ``run(operation, work)`` calls ``work(session)`` with a new session,
        commits, closes the session and returns ``work``'s result.

    Guarantees:
        - Retry state lives on the stack of each ``run`` call; one runner
          may be shared across threads.
        - Backoff is linear: ``backoff_seconds * attempt``.

    Non-goals:
        - Does NOT retry business rule violations.
    """

    # INVARIANT: Safety limit on configured attempts
    MAX_ATTEMPTS_LIMIT = 10

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        max_attempts: int = 3,
        backoff_seconds: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1 or max_attempts > self.MAX_ATTEMPTS_LIMIT:
            raise ValueError(
                f"max_attempts must be between 1 and {self.MAX_ATTEMPTS_LIMIT}, got {max_attempts}"
            )
        if backoff_seconds < 0:
            raise ValueError("backoff_seconds must be non-negative")
        self._session_factory = session_factory
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    def run(self, operation: str, work: Callable[[Session], T]) -> T:
        last_exc: BaseException | None = None

        for attempt in range(1, self.max_attempts + 1):
            session = self._session_factory()
            try:
                result = work(session)
                session.commit()
                if attempt > 1:
                    logger.info(
                        "transaction_succeeded_after_retry",
                        extra={"operation": operation, "attempt": attempt},
                    )
                return result
            except Exception as exc:
                session.rollback()
                if not is_retryable(exc):
                    raise
                last_exc = exc
                logger.warning(
                    "transaction_retry",
                    extra={
                        "operation": operation,
                        "attempt": attempt,
                        "max_attempts": self.max_attempts,
                        "error_type": type(exc).__name__,
                    },
                )
                if attempt < self.max_attempts and self.backoff_seconds:
                    self._sleep(self.backoff_seconds * attempt)
            finally:
                session.close()

        logger.error(
            "transaction_retry_exhausted",
            extra={"operation": operation, "attempts": self.max_attempts},
        )
        raise TransactionRetryExhaustedError(operation, self.max_attempts) from last_exc
