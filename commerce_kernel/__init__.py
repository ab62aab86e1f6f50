"""
Commerce Kernel

The core of the commercial document conversion pipeline:
- Quotation -> Order -> Invoice (sales) and Quotation -> Order -> Receipt (purchase)
- One-to-one conversions enforced in storage
- Amounts always derived by the tax calculator
- Structured, correlated logging
"""

__version__ = "0.1.0"
