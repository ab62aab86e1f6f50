"""
Sales Pipeline Module Service (``commerce_modules.sales.service``).

Responsibility
--------------
Thin ERP glue for the sales cycle: quotation -> order -> invoice.  Wires
the kernel ``ConversionOrchestrator`` from configuration and returns
``ConversionResult`` values instead of raising on business failures.

Architecture position
---------------------
**Modules layer**.  All state checks, amount computation and persistence
happen in ``commerce_kernel``; this service only chooses options and maps
typed errors to result statuses.

Failure modes
-------------
* Typed kernel errors (not found, invalid state, already converted, ...)
  -> ``ConversionResult`` with ``is_success == False`` and ``error_code``.
  The orchestrator has already rolled the session back.
* Unexpected exceptions propagate after rollback.

Usage::

    service = SalesPipelineService(session, clock=clock)
    result = service.convert_quotation_to_order(tenant_id, quotation_id, actor_id)
    if result.is_success:
        order = result.conversion.document
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from commerce_config import PipelineConfig, get_active_config
from commerce_kernel.domain.clock import Clock
from commerce_kernel.domain.conversion import SALES_QUOTATION_TO_ORDER
from commerce_kernel.domain.documents import Side
from commerce_kernel.exceptions import CommerceKernelError
from commerce_kernel.logging_config import get_logger
from commerce_kernel.services.conversion_orchestrator import (
    CanConvert,
    InvoiceOptions,
    OrderOptions,
    PipelineOptions,
    PipelineRun,
)
from commerce_modules._pipeline_helpers import (
    ConversionResult,
    build_orchestrator,
    run_conversion,
)

logger = get_logger("modules.sales.service")


class SalesPipelineService:
    """
    Sales conversions for one session.

    Contract
    --------
    * Conversion methods return ``ConversionResult``; callers inspect
      ``result.is_success``.
    * ``run_full_pipeline`` returns a ``PipelineRun``; a failed first step
      is reported in ``failure`` with no steps completed.

    Guarantees
    ----------
    * Each conversion is committed on success and rolled back on failure
      by the orchestrator (``auto_commit=True``).
    """

    side = Side.SALES

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: PipelineConfig | None = None,
        can_convert: CanConvert | None = None,
    ):
        self._session = session
        self._config = config or get_active_config()
        self._defaults = self._config.side_defaults(self.side.value)
        self._orchestrator = build_orchestrator(
            session,
            config=self._config,
            clock=clock,
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
                SALES_QUOTATION_TO_ORDER, tenant_id, quotation_id, actor_id, options,
            )
        )
        logger.info("sales_quotation_conversion", extra={
            "quotation_id": str(quotation_id),
            "status": result.status.value,
        })
        return result

    def convert_order_to_invoice(
        self,
        tenant_id: UUID,
        order_id: UUID,
        actor_id: UUID,
        notes: str | None = None,
    ) -> ConversionResult:
        result = run_conversion(
            lambda: self._orchestrator.convert_order_to_invoice(
                tenant_id, order_id, actor_id, InvoiceOptions(notes=notes),
            )
        )
        logger.info("sales_order_invoicing", extra={
            "order_id": str(order_id),
            "status": result.status.value,
        })
        return result

    def run_full_pipeline(
        self,
        tenant_id: UUID,
        quotation_id: UUID,
        actor_id: UUID,
        auto_issue_terminal: bool = False,
        requested_delivery_date: date | None = None,
    ) -> PipelineRun:
        options = PipelineOptions(
            order=OrderOptions(
                requested_delivery_date=requested_delivery_date,
                auto_confirm=self._defaults.auto_confirm_orders,
            ),
            auto_issue_terminal=auto_issue_terminal,
        )
        try:
            return self._orchestrator.run_full_pipeline(
                tenant_id, quotation_id, actor_id, options, side=self.side,
            )
        except CommerceKernelError as exc:
            return PipelineRun(steps=(), failure=exc)
