"""
Purchasing Pipeline Module (``commerce_modules.purchasing``).

Supplier quotation -> purchase order -> goods receipt conversions, with a
post-commit inventory signal on receipt.
"""

from commerce_modules._pipeline_helpers import ConversionResult, ConversionStatus
from commerce_modules.purchasing.service import PurchasingPipelineService

__all__ = [
    "ConversionResult",
    "ConversionStatus",
    "PurchasingPipelineService",
]
