"""
Lending Core

Accounting engine for pooled lending: loan origination and lifecycle,
fixed-point interest accrual, pool balance accounting and per-borrower
credit policy.
"""

__version__ = "1.0.0"
