"""
Typed Exception Hierarchy for the Billing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every business outcome the ledger can refuse is a named, terminal error that
the calling service layer surfaces to its user.  Callers catch by type and
read ``code`` for the machine-readable identifier; they never parse messages.

    try:
        ledger.apply_late_fee(llc_id, charge_id, actor_id)
    except GracePeriodError as e:
        api_response(code=e.code, eligible_on=e.eligible_on)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from BillingLedgerError:

    BillingLedgerError (base)
    |
    +-- NotFoundError
    |   +-- OrganizationNotFoundError
    |   +-- LeaseNotFoundError
    |   +-- ChargeNotFoundError
    |   +-- PaymentNotFoundError
    |
    +-- ValidationError
    |
    +-- ChargeError
    |   +-- InvalidChargeStatusError
    |   +-- InvalidChargeTypeError
    |
    +-- LateFeeError
    |   +-- LateFeeDisabledError
    |   +-- LateFeeAlreadyAppliedError
    |   +-- GracePeriodError
    |   +-- ZeroFeeError
    |
    +-- AllocationError
    |   +-- InvalidAllocationError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError
        +-- TransactionRetryExhaustedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                         | When Raised
--------------|------------------------------|-----------------------------------------
Lookup        | NOT_FOUND                    | LLC, lease, charge or payment missing
Input         | VALIDATION_ERROR             | Malformed period, amount, reason, policy
Charge        | INVALID_STATUS               | Void of void/paid/partial; late fee on
              |                              | a paid or void charge
              | INVALID_TYPE                 | Late fee on a non-eligible charge type
Late fee      | LATE_FEE_DISABLED            | LLC policy disabled
              | ALREADY_APPLIED              | Source charge already has a late fee
              | GRACE_PERIOD                 | today < due_date + grace_days
              | ZERO_FEE                     | Computed fee is zero
Allocation    | INVALID_ALLOCATION           | Sum mismatch, foreign/closed charge,
              |                              | over-allocation
Concurrency   | OPTIMISTIC_LOCK_CONFLICT     | Charge modified by another transaction
              | TRANSACTION_RETRY_EXHAUSTED  | Contention persisted past the retry cap

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Business errors are terminal.  Nothing in the kernel retries them.

2. ConcurrencyError is transient.  ``TransactionRunner`` retries the whole
   transaction a bounded number of times; only exhaustion reaches callers.

3. Any other exception (database unavailable, programming error) propagates
   unchanged after rollback.
"""

from datetime import date


class BillingLedgerError(Exception):
    """
    Base exception for all billing kernel errors.

    All subclasses must have a `code` class attribute
    for machine-readable error identification.
    """

    code: str = "BILLING_LEDGER_ERROR"


# Lookup exceptions


class NotFoundError(BillingLedgerError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"

    entity_type: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class OrganizationNotFoundError(NotFoundError):
    """LLC with given ID was not found."""

    entity_type = "Organization"


class LeaseNotFoundError(NotFoundError):
    """Lease with given ID was not found (or belongs to another LLC)."""

    entity_type = "Lease"


class ChargeNotFoundError(NotFoundError):
    """Charge with given ID was not found (or belongs to another LLC)."""

    entity_type = "Charge"


class PaymentNotFoundError(NotFoundError):
    """Payment with given ID was not found (or belongs to another LLC)."""

    entity_type = "Payment"


# Input validation


class ValidationError(BillingLedgerError):
    """Input failed validation before any state was touched."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Charge-related exceptions


class ChargeError(BillingLedgerError):
    """Base exception for charge lifecycle errors."""

    code: str = "CHARGE_ERROR"


class InvalidChargeStatusError(ChargeError):
    """Operation not permitted in the charge's current status."""

    code: str = "INVALID_STATUS"

    def __init__(self, charge_id: str, status: str, reason: str):
        self.charge_id = charge_id
        self.status = status
        self.reason = reason
        super().__init__(f"Charge {charge_id} is {status}: {reason}")


class InvalidChargeTypeError(ChargeError):
    """Charge type is not eligible for the requested operation."""

    code: str = "INVALID_TYPE"

    def __init__(self, charge_id: str, charge_type: str):
        self.charge_id = charge_id
        self.charge_type = charge_type
        super().__init__(
            f"Charge {charge_id} of type {charge_type} is not eligible for a late fee"
        )


# Late-fee exceptions


class LateFeeError(BillingLedgerError):
    """Base exception for late-fee eligibility errors."""

    code: str = "LATE_FEE_ERROR"


class LateFeeDisabledError(LateFeeError):
    """Late fees are not enabled for the organization."""

    code: str = "LATE_FEE_DISABLED"

    def __init__(self, llc_id: str):
        self.llc_id = llc_id
        super().__init__(f"Late fees are not enabled for LLC {llc_id}")


class LateFeeAlreadyAppliedError(LateFeeError):
    """Source charge already carries a late fee."""

    code: str = "ALREADY_APPLIED"

    def __init__(self, charge_id: str, late_fee_charge_id: str):
        self.charge_id = charge_id
        self.late_fee_charge_id = late_fee_charge_id
        super().__init__(
            f"Late fee already applied to charge {charge_id} "
            f"as charge {late_fee_charge_id}"
        )


class GracePeriodError(LateFeeError):
    """Charge is still inside its grace period."""

    code: str = "GRACE_PERIOD"

    def __init__(self, charge_id: str, eligible_on: date):
        self.charge_id = charge_id
        self.eligible_on = eligible_on
        super().__init__(
            f"Charge {charge_id} is within its grace period "
            f"(late fee eligible on {eligible_on.isoformat()})"
        )


class ZeroFeeError(LateFeeError):
    """Computed late fee is zero."""

    code: str = "ZERO_FEE"

    def __init__(self, charge_id: str):
        self.charge_id = charge_id
        super().__init__(f"Calculated late fee for charge {charge_id} is zero")


# Allocation exceptions


class AllocationError(BillingLedgerError):
    """Base exception for payment allocation errors."""

    code: str = "ALLOCATION_ERROR"


class InvalidAllocationError(AllocationError):
    """Payment allocations are inconsistent with the payment or its charges."""

    code: str = "INVALID_ALLOCATION"

    def __init__(self, reason: str, charge_id: str | None = None):
        self.reason = reason
        self.charge_id = charge_id
        if charge_id is not None:
            super().__init__(f"Invalid allocation to charge {charge_id}: {reason}")
        else:
            super().__init__(f"Invalid allocation: {reason}")


# Concurrency-related exceptions


class ConcurrencyError(BillingLedgerError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


class TransactionRetryExhaustedError(ConcurrencyError):
    """Contention persisted through every permitted attempt."""

    code: str = "TRANSACTION_RETRY_EXHAUSTED"

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"Operation {operation} abandoned after {attempts} conflicting attempts"
        )
