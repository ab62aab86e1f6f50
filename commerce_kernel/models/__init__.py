"""ORM models for the commerce kernel."""

from commerce_kernel.models.counter import DocumentCounter
from commerce_kernel.models.document import CommercialDocument, CommercialDocumentLine

__all__ = [
    "CommercialDocument",
    "CommercialDocumentLine",
    "DocumentCounter",
]
