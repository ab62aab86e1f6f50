"""
Shared helpers for the module pipeline facades.

Used by commerce_modules/sales and commerce_modules/purchasing to build the
kernel ConversionOrchestrator from configuration and to turn typed kernel
errors into ConversionResult values.

Architecture: Modules layer.  Imports commerce_kernel, commerce_engines and
commerce_config; the kernel never imports back.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlalchemy.orm import Session

from commerce_config import PipelineConfig, get_active_config
from commerce_config.bridges import build_tax_policy
from commerce_kernel.domain.clock import Clock, SystemClock
from commerce_kernel.domain.documents import Side
from commerce_kernel.exceptions import CommerceKernelError
from commerce_kernel.services.conversion_orchestrator import (
    CanConvert,
    Conversion,
    ConversionOrchestrator,
)
from commerce_kernel.services.inventory_sync import InventorySync, InventorySyncDispatcher
from commerce_kernel.services.numbering_service import DocumentNumberService


class ConversionStatus(str, Enum):
    """Status of a module conversion operation."""

    CONVERTED = "converted"
    ALREADY_CONVERTED = "already_converted"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    INVALID_LINE_ITEM = "invalid_line_item"
    NOT_PERMITTED = "not_permitted"
    STORAGE_CONFLICT = "storage_conflict"
    FAILED = "failed"


_STATUS_BY_CODE: dict[str, ConversionStatus] = {
    "ALREADY_CONVERTED": ConversionStatus.ALREADY_CONVERTED,
    "NOT_FOUND": ConversionStatus.NOT_FOUND,
    "INVALID_STATE": ConversionStatus.INVALID_STATE,
    "INVALID_TRANSITION": ConversionStatus.INVALID_STATE,
    "INVALID_LINE_ITEM": ConversionStatus.INVALID_LINE_ITEM,
    "CONVERSION_NOT_PERMITTED": ConversionStatus.NOT_PERMITTED,
    "STORAGE_CONFLICT": ConversionStatus.STORAGE_CONFLICT,
}


@dataclass(frozen=True)
class ConversionResult:
    """Result of a module conversion operation."""

    status: ConversionStatus
    conversion: Conversion | None = None
    error_code: str | None = None
    message: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.status == ConversionStatus.CONVERTED


def error_details(exc: CommerceKernelError) -> dict[str, Any]:
    """Structured attributes of a kernel error, JSON friendly."""
    details: dict[str, Any] = {}
    for key, value in vars(exc).items():
        if key.startswith("_"):
            continue
        details[key] = list(value) if isinstance(value, tuple) else value
    return details


def failure_result(exc: CommerceKernelError) -> ConversionResult:
    """Convert a kernel error into a failed ConversionResult."""
    return ConversionResult(
        status=_STATUS_BY_CODE.get(exc.code, ConversionStatus.FAILED),
        error_code=exc.code,
        message=str(exc),
        details=error_details(exc),
    )


def run_conversion(operation: Callable[[], Conversion]) -> ConversionResult:
    """Run an orchestrator call; typed kernel errors become failed results."""
    try:
        conversion = operation()
    except CommerceKernelError as exc:
        return failure_result(exc)
    return ConversionResult(
        status=ConversionStatus.CONVERTED,
        conversion=conversion,
        message=f"{conversion.rule}: {conversion.document.document_number}",
    )


def build_orchestrator(
    session: Session,
    config: PipelineConfig | None = None,
    clock: Clock | None = None,
    inventory_sync: InventorySync | None = None,
    can_convert: CanConvert | None = None,
) -> ConversionOrchestrator:
    """Wire a ConversionOrchestrator from a PipelineConfig."""
    config = config or get_active_config()
    clock = clock or SystemClock()
    dispatcher = InventorySyncDispatcher(
        collaborator=inventory_sync,
        timeout_seconds=config.inventory_sync.timeout_seconds,
        enabled=config.inventory_sync.enabled,
    )
    numbering = DocumentNumberService(
        session,
        clock,
        prefixes=config.numbering.prefixes,
        sequence_width=config.numbering.sequence_width,
    )
    delivery_days = {
        side: config.side_defaults(side.value).delivery_days for side in Side
    }
    return ConversionOrchestrator(
        session=session,
        tax_policy=build_tax_policy(config.tax),
        clock=clock,
        numbering=numbering,
        inventory_sync=dispatcher,
        can_convert=can_convert,
        delivery_days=delivery_days,
    )
