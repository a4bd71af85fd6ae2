"""Lease billing: charges, late fees, payments and balances for a lease."""

from billing_modules.lease_billing.service import LeaseBillingService

__all__ = ["LeaseBillingService"]
