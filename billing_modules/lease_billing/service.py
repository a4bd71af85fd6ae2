"""
Lease Billing Module Service (``billing_modules.lease_billing.service``).

Responsibility
--------------
Public entry point for the billing ledger: charges, late fees, payments,
balances and late-fee policy for the leases of an organization (LLC).
Delegates every rule to the kernel services and selectors and owns only
the transaction boundary.

Architecture position
---------------------
**Modules layer** -- thin glue.  ``LeaseBillingService`` composes
``ChargeLedgerService``, ``LateFeeEngine``, ``PaymentAllocator`` and
``LateFeePolicyService`` for writes, and the kernel selectors for reads.

Invariants enforced
-------------------
* Each public method owns its transaction: one fresh session per call,
  committed on success, rolled back on any exception.
* Mutations run under ``TransactionRunner``; contention is retried a
  bounded number of times, business errors never are.
* Callers only ever receive frozen DTOs, never ORM rows.
* "today" comes from the injected clock unless passed explicitly.

Failure modes
-------------
* Typed ``BillingLedgerError`` subclasses from the kernel, unchanged.
* ``TransactionRetryExhaustedError`` when contention outlasts the retry cap.

Audit relevance
---------------
Each call binds ``actor_id``/``llc_id`` (and lease/charge ids where known)
into ``LogContext`` so every log line of the call carries them.  Kernel
services write the audit rows in the same transaction as the mutation.

Usage::

    billing = LeaseBillingService.from_settings(get_active_settings())
    charge = billing.create_charge(
        llc_id, lease_id, period="2024-01", charge_type="rent",
        amount=150000, due_date=date(2024, 1, 1), actor_id=actor_id,
    )
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import date
from typing import TYPE_CHECKING, Any, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from billing_kernel.domain.charge_status import DEFAULT_FEE_ELIGIBLE_TYPES, ChargeType
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.dtos import (
    AllocationLine,
    AuditRecord,
    ChargeBalance,
    ChargeFilters,
    ChargeRecord,
    LateFeePolicy,
    OverdueCharge,
    PaymentFilters,
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
)
from billing_kernel.logging_config import LogContext, configure_logging, get_logger
from billing_kernel.models.audit_log import AuditAction
from billing_kernel.selectors.audit_selector import AuditSelector
from billing_kernel.selectors.balance_selector import BalanceSelector
from billing_kernel.selectors.charge_selector import ChargeSelector
from billing_kernel.selectors.payment_selector import PaymentSelector
from billing_kernel.services.audit_service import AuditLogService
from billing_kernel.services.charge_ledger import ChargeLedgerService
from billing_kernel.services.late_fee_engine import LateFeeEngine
from billing_kernel.services.late_fee_policy import LateFeePolicyService
from billing_kernel.services.payment_allocator import PaymentAllocator
from billing_kernel.services.retry import TransactionRunner

if TYPE_CHECKING:
    from billing_config.schema import LedgerSettings

logger = get_logger("modules.lease_billing.service")

T = TypeVar("T")


class LeaseBillingService:
    """
    Transaction-owning facade over the billing kernel.

    Contract
    --------
    * Write methods return the DTO of what was persisted.
    * Read methods never write and see committed state only.

    Guarantees
    ----------
    * A failed call leaves the database exactly as it was.
    * Safe to share across threads: every call uses its own session.

    Non-goals
    ---------
    * Does NOT authenticate or authorize; ``actor_id`` and ``llc_id`` are
      trusted.
    * Does NOT create organizations or leases.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        clock: Clock | None = None,
        max_transaction_attempts: int = 3,
        retry_backoff_seconds: float = 0.05,
        fee_eligible_charge_types: frozenset[ChargeType] = DEFAULT_FEE_ELIGIBLE_TYPES,
        default_grace_days: int = 5,
        currency: str = "USD",
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._runner = TransactionRunner(
            session_factory,
            max_attempts=max_transaction_attempts,
            backoff_seconds=retry_backoff_seconds,
        )
        self._eligible_types = frozenset(fee_eligible_charge_types)
        self._default_grace_days = default_grace_days
        self._currency = currency

    @classmethod
    def from_settings(
        cls,
        settings: LedgerSettings,
        clock: Clock | None = None,
        session_factory: sessionmaker[Session] | None = None,
    ) -> LeaseBillingService:
        """
        Build the facade from resolved settings.

        Logging is configured at ``settings.log_level`` before the engine.
        Without ``session_factory`` the module-level engine is initialized
        from ``settings.database_url``.
        """
        configure_logging(level=settings.log_level)
        if session_factory is None:
            from billing_kernel.db.engine import get_session_factory, init_engine_from_url

            init_engine_from_url(settings.database_url, echo=settings.echo_sql)
            session_factory = get_session_factory()
        return cls(
            session_factory,
            clock=clock,
            max_transaction_attempts=settings.max_transaction_attempts,
            retry_backoff_seconds=settings.retry_backoff_seconds,
            fee_eligible_charge_types=settings.fee_eligible_charge_types,
            default_grace_days=settings.default_grace_days,
            currency=settings.currency,
        )

    # =========================================================================
    # Plumbing
    # =========================================================================

    def _read(self, work: Callable[[Session], T]) -> T:
        session = self._session_factory()
        try:
            return work(session)
        finally:
            session.rollback()
            session.close()

    def _ledger(self, session: Session) -> ChargeLedgerService:
        return ChargeLedgerService(session, self._clock, AuditLogService(session, self._clock))

    def _policies(self, session: Session) -> LateFeePolicyService:
        return LateFeePolicyService(
            session,
            self._clock,
            AuditLogService(session, self._clock),
            default_grace_days=self._default_grace_days,
        )

    # =========================================================================
    # Charges
    # =========================================================================

    def create_charge(
        self,
        llc_id: UUID,
        lease_id: UUID,
        period: str,
        charge_type: ChargeType | str,
        amount: int,
        due_date: date,
        actor_id: UUID,
        description: str | None = None,
    ) -> ChargeRecord:
        """
        Create an open charge on a lease.

        Raises:
            LeaseNotFoundError: Unknown lease or lease of another LLC.
            ValidationError: Bad period, type, amount or description.
        """

        def work(session: Session) -> ChargeRecord:
            charge = self._ledger(session).create_charge(
                llc_id=llc_id,
                lease_id=lease_id,
                period=period,
                charge_type=charge_type,
                amount=amount,
                due_date=due_date,
                actor_id=actor_id,
                description=description,
            )
            return ChargeRecord.from_model(charge)

        with LogContext.bind(actor_id=actor_id, llc_id=llc_id, lease_id=lease_id):
            return self._runner.run("create_charge", work)

    def get_charge(self, llc_id: UUID, charge_id: UUID) -> ChargeRecord:
        """Raises ChargeNotFoundError for an unknown or foreign charge."""
        return self._read(lambda s: ChargeSelector(s, self._default_grace_days).get_charge(llc_id, charge_id))

    def void_charge(
        self,
        llc_id: UUID,
        charge_id: UUID,
        reason: str,
        actor_id: UUID,
    ) -> ChargeRecord:
        """
        Void an open charge that has received no payment.

        Raises:
            ChargeNotFoundError: Unknown or foreign charge.
            InvalidChargeStatusError: Already void, partial or paid.
            ValidationError: Empty or overlong reason.
        """

        def work(session: Session) -> ChargeRecord:
            charge = self._ledger(session).void_charge(llc_id, charge_id, reason, actor_id)
            return ChargeRecord.from_model(charge)

        with LogContext.bind(actor_id=actor_id, llc_id=llc_id, charge_id=charge_id):
            return self._runner.run("void_charge", work)

    def list_charges(
        self,
        llc_id: UUID,
        lease_id: UUID,
        filters: ChargeFilters | None = None,
    ) -> list[ChargeRecord]:
        return self._read(
            lambda s: ChargeSelector(s, self._default_grace_days).list_charges(llc_id, lease_id, filters)
        )

    def list_overdue_charges(self, llc_id: UUID, today: date | None = None) -> list[OverdueCharge]:
        """Outstanding charges past their grace period with no late fee yet."""
        today = today or self._clock.today()
        return self._read(
            lambda s: ChargeSelector(s, self._default_grace_days).list_overdue_charges(llc_id, today)
        )

    def get_charge_balance(
        self,
        llc_id: UUID,
        lease_id: UUID,
        today: date | None = None,
    ) -> ChargeBalance:
        today = today or self._clock.today()
        return self._read(lambda s: BalanceSelector(s).get_charge_balance(llc_id, lease_id, today))

    # =========================================================================
    # Late fees
    # =========================================================================

    def apply_late_fee(
        self,
        llc_id: UUID,
        charge_id: UUID,
        actor_id: UUID,
        today: date | None = None,
    ) -> ChargeRecord:
        """
        Apply the LLC's late fee to an overdue charge.

        Returns:
            The new ``late_fee`` charge.

        Raises:
            ChargeNotFoundError, LateFeeDisabledError, InvalidChargeTypeError,
            InvalidChargeStatusError, LateFeeAlreadyAppliedError,
            GracePeriodError, ZeroFeeError -- checked in that order.
        """
        today = today or self._clock.today()

        def work(session: Session) -> ChargeRecord:
            audit = AuditLogService(session, self._clock)
            engine = LateFeeEngine(
                session,
                self._clock,
                ledger=ChargeLedgerService(session, self._clock, audit),
                policies=LateFeePolicyService(
                    session, self._clock, audit, default_grace_days=self._default_grace_days
                ),
                audit=audit,
                eligible_types=self._eligible_types,
            )
            return ChargeRecord.from_model(engine.apply_late_fee(llc_id, charge_id, actor_id, today))

        with LogContext.bind(actor_id=actor_id, llc_id=llc_id, charge_id=charge_id):
            return self._runner.run("apply_late_fee", work)

    def get_late_fee_policy(self, llc_id: UUID) -> LateFeePolicy:
        return self._read(lambda s: self._policies(s).get_policy(llc_id))

    def update_late_fee_policy(self, llc_id: UUID, actor_id: UUID, **changes: Any) -> LateFeePolicy:
        """
        Update any of enabled, fee_type, fee_amount, max_fee_amount and
        grace_days.  Unspecified fields keep their saved values.
        """

        def work(session: Session) -> LateFeePolicy:
            return self._policies(session).update_policy(llc_id, actor_id, **changes)

        with LogContext.bind(actor_id=actor_id, llc_id=llc_id):
            return self._runner.run("update_late_fee_policy", work)

    # =========================================================================
    # Payments
    # =========================================================================

    def record_payment(
        self,
        llc_id: UUID,
        lease_id: UUID,
        tenant_id: UUID,
        amount: int,
        method: PaymentMethod | str,
        actor_id: UUID,
        allocations: Sequence[AllocationLine] | None = None,
        status: PaymentStatus | str = PaymentStatus.SUCCEEDED,
        payment_date: date | None = None,
        check_number: str | None = None,
        memo: str | None = None,
        currency: str | None = None,
    ) -> PaymentRecord:
        """
        Record a payment and apply it to the lease's charges.

        Without ``allocations`` the amount is applied oldest due date first
        and any remainder is kept as unallocated credit.

        Raises:
            LeaseNotFoundError: Unknown or foreign lease.
            InvalidAllocationError: Explicit allocations that do not fit.
            ValidationError: Malformed payment fields.
        """

        def work(session: Session) -> PaymentRecord:
            audit = AuditLogService(session, self._clock)
            allocator = PaymentAllocator(
                session,
                self._clock,
                ledger=ChargeLedgerService(session, self._clock, audit),
                audit=audit,
            )
            payment = allocator.record_payment(
                llc_id=llc_id,
                lease_id=lease_id,
                tenant_id=tenant_id,
                amount=amount,
                method=method,
                actor_id=actor_id,
                allocations=allocations,
                status=status,
                payment_date=payment_date,
                check_number=check_number,
                memo=memo,
                currency=currency or self._currency,
            )
            return PaymentRecord.from_model(payment)

        with LogContext.bind(actor_id=actor_id, llc_id=llc_id, lease_id=lease_id):
            return self._runner.run("record_payment", work)

    def get_payment(self, llc_id: UUID, payment_id: UUID) -> PaymentRecord:
        return self._read(lambda s: PaymentSelector(s).get_payment(llc_id, payment_id))

    def list_payments(
        self,
        llc_id: UUID,
        filters: PaymentFilters | None = None,
    ) -> list[PaymentRecord]:
        return self._read(lambda s: PaymentSelector(s).list_payments(llc_id, filters))

    # =========================================================================
    # Audit
    # =========================================================================

    def list_audit_entries(
        self,
        llc_id: UUID,
        entity_id: UUID | None = None,
        action: AuditAction | None = None,
    ) -> list[AuditRecord]:
        return self._read(lambda s: AuditSelector(s).list_entries(llc_id, entity_id, action))
