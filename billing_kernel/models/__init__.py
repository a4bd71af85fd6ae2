"""ORM models for the billing kernel."""

from billing_kernel.models.audit_log import AuditAction, AuditLogEntry
from billing_kernel.models.charge import Charge
from billing_kernel.models.lease import Lease
from billing_kernel.models.organization import Organization
from billing_kernel.models.payment import Payment, PaymentAllocation

__all__ = [
    "AuditAction",
    "AuditLogEntry",
    "Charge",
    "Lease",
    "Organization",
    "Payment",
    "PaymentAllocation",
]
