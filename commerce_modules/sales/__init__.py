"""
Sales Pipeline Module (``commerce_modules.sales``).

Quotation -> order -> invoice conversions for customers, delegated to the
kernel ConversionOrchestrator.
"""

from commerce_modules._pipeline_helpers import ConversionResult, ConversionStatus
from commerce_modules.sales.service import SalesPipelineService

__all__ = [
    "ConversionResult",
    "ConversionStatus",
    "SalesPipelineService",
]
