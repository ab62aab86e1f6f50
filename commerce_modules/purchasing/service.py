"""
Purchasing Pipeline Module Service (``commerce_modules.purchasing.service``).

Responsibility
--------------
Thin ERP glue for the procurement cycle: supplier quotation -> purchase
order -> goods receipt.  The receipt conversion signals the inventory
collaborator after commit; a failed signal is reported in
``conversion.inventory_sync`` and never undoes the receipt.

Architecture position
---------------------
**Modules layer**.  Delegates to ``commerce_kernel`` through the
ConversionOrchestrator built from configuration.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from commerce_config import PipelineConfig, get_active_config
from commerce_kernel.domain.clock import Clock
from commerce_kernel.domain.conversion import PURCHASE_QUOTATION_TO_ORDER
from commerce_kernel.domain.documents import Side
from commerce_kernel.exceptions import CommerceKernelError
from commerce_kernel.logging_config import get_logger
from commerce_kernel.services.conversion_orchestrator import (
    CanConvert,
    OrderOptions,
    PipelineOptions,
    PipelineRun,
    ReceiptOptions,
)
from commerce_kernel.services.inventory_sync import InventorySync
from commerce_modules._pipeline_helpers import (
    ConversionResult,
    build_orchestrator,
    run_conversion,
)

logger = get_logger("modules.purchasing.service")


class PurchasingPipelineService:
    """
    Purchase-side conversions for one session.

    Contract
    --------
    * Conversion methods return ``ConversionResult``.
    * ``inventory_sync`` is the collaborator notified of every committed
      goods receipt; ``NullInventorySync`` when omitted.
    """

    side = Side.PURCHASE

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: PipelineConfig | None = None,
        inventory_sync: InventorySync | None = None,
        can_convert: CanConvert | None = None,
    ):
        self._session = session
        self._config = config or get_active_config()
        self._defaults = self._config.side_defaults(self.side.value)
        self._orchestrator = build_orchestrator(
            session,
            config=self._config,
            clock=clock,
            inventory_sync=inventory_sync,
            can_convert=can_convert,
        )

    @property
    def orchestrator(self):
        return self._orchestrator

    def convert_quotation_to_order(
        self,
        tenant_id: UUID,
        quotation_id: UUID,
        actor_id: UUID,
        notes: str | None = None,
        requested_delivery_date: date | None = None,
    ) -> ConversionResult:
        options = OrderOptions(
            notes=notes,
            requested_delivery_date=requested_delivery_date,
            auto_confirm=self._defaults.auto_confirm_orders,
        )
        result = run_conversion(
            lambda: self._orchestrator.convert(
                PURCHASE_QUOTATION_TO_ORDER, tenant_id, quotation_id, actor_id, options,
            )
        )
        logger.info("purchase_quotation_conversion", extra={
            "quotation_id": str(quotation_id),
            "status": result.status.value,
        })
        return result

    def convert_order_to_receipt(
        self,
        tenant_id: UUID,
        order_id: UUID,
        actor_id: UUID,
        received_quantities: Mapping[str, int] | None = None,
        notes: str | None = None,
    ) -> ConversionResult:
        options = ReceiptOptions(received_quantities=received_quantities, notes=notes)
        result = run_conversion(
            lambda: self._orchestrator.convert_order_to_receipt(
                tenant_id, order_id, actor_id, options,
            )
        )
        extra = {"order_id": str(order_id), "status": result.status.value}
        if result.conversion is not None:
            extra["inventory_sync"] = result.conversion.inventory_sync.value
        logger.info("purchase_order_receipt", extra=extra)
        return result

    def run_full_pipeline(
        self,
        tenant_id: UUID,
        quotation_id: UUID,
        actor_id: UUID,
        auto_issue_terminal: bool = False,
        requested_delivery_date: date | None = None,
        received_quantities: Mapping[str, int] | None = None,
    ) -> PipelineRun:
        options = PipelineOptions(
            order=OrderOptions(
                requested_delivery_date=requested_delivery_date,
                auto_confirm=self._defaults.auto_confirm_orders,
            ),
            auto_issue_terminal=auto_issue_terminal,
            received_quantities=received_quantities,
        )
        try:
            return self._orchestrator.run_full_pipeline(
                tenant_id, quotation_id, actor_id, options, side=self.side,
            )
        except CommerceKernelError as exc:
            return PipelineRun(steps=(), failure=exc)
