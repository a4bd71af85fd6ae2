"""
Billing Kernel - lease billing ledger and late-fee engine.

A transactional ledger of lease charges and payments with:
- Integer-cent money arithmetic
- Derived charge status (open / partial / paid / void)
- Idempotent late-fee application
- Atomic FIFO payment allocation
- Per-lease balance aggregation
"""

__version__ = "0.1.0"
