"""Kernel services: flush-only writers plus the transaction runner."""

from billing_kernel.services.audit_service import AuditLogService
from billing_kernel.services.base import BaseService
from billing_kernel.services.charge_ledger import ChargeLedgerService
from billing_kernel.services.late_fee_engine import LateFeeEngine
from billing_kernel.services.late_fee_policy import LateFeePolicyService
from billing_kernel.services.payment_allocator import PaymentAllocator
from billing_kernel.services.retry import TransactionRunner, is_transient_db_error

__all__ = [
    "AuditLogService",
    "BaseService",
    "ChargeLedgerService",
    "LateFeeEngine",
    "LateFeePolicyService",
    "PaymentAllocator",
    "TransactionRunner",
    "is_transient_db_error",
]
