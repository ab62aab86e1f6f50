"""Read-only selectors returning DTOs."""

from commerce_kernel.selectors.document_selector import (
    ConversionLink,
    DocumentDTO,
    DocumentSelector,
    DocumentSummary,
    ReceivedPurchaseLine,
)

__all__ = [
    "DocumentSelector",
    "DocumentDTO",
    "DocumentSummary",
    "ConversionLink",
    "ReceivedPurchaseLine",
]
