"""Read-only selectors."""

from billing_kernel.selectors.audit_selector import AuditSelector
from billing_kernel.selectors.balance_selector import BalanceSelector
from billing_kernel.selectors.base import BaseSelector
from billing_kernel.selectors.charge_selector import ChargeSelector
from billing_kernel.selectors.payment_selector import PaymentSelector

__all__ = [
    "AuditSelector",
    "BalanceSelector",
    "BaseSelector",
    "ChargeSelector",
    "PaymentSelector",
]
