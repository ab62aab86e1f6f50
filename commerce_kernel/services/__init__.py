"""Services for the commerce kernel (write side)."""

from commerce_kernel.services.conversion_orchestrator import (
    Conversion,
    ConversionOrchestrator,
    InvoiceOptions,
    OrderOptions,
    PipelineOptions,
    PipelineRun,
    ReceiptOptions,
)
from commerce_kernel.services.document_repository import DocumentRepository
from commerce_kernel.services.inventory_sync import (
    InventorySync,
    InventorySyncDispatcher,
    NullInventorySync,
    SyncStatus,
)
from commerce_kernel.services.lifecycle_service import DocumentLifecycleService
from commerce_kernel.services.numbering_service import DocumentNumberService

__all__ = [
    "Conversion",
    "ConversionOrchestrator",
    "DocumentLifecycleService",
    "DocumentNumberService",
    "DocumentRepository",
    "InventorySync",
    "InventorySyncDispatcher",
    "InvoiceOptions",
    "NullInventorySync",
    "OrderOptions",
    "PipelineOptions",
    "PipelineRun",
    "ReceiptOptions",
    "SyncStatus",
]
