"""
billing_modules -- transaction-owning facades over the billing kernel.

Modules own the transaction boundary and convert kernel results to DTOs.
They may import from billing_kernel, billing_engines and billing_config.
"""
