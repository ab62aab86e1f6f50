"""
Commerce modules: thin ERP glue over the commerce kernel.

- ``sales``: quotation -> order -> invoice
- ``purchasing``: quotation -> order -> goods receipt
- ``analytics``: pipeline statistics, funnel, bottlenecks, savings
"""
