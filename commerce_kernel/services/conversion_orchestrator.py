"""
ConversionOrchestrator -- advances a commercial document to its next stage.

Responsibility:
    Runs the single conversion protocol for every ConversionRule: sales
    quotation -> order -> invoice and purchase quotation -> order -> goods
    receipt.  Owns the transaction boundary when ``auto_commit=True``.

Architecture position:
    Kernel > Services -- imperative shell.  Delegates amount computation to
    commerce_engines.tax, persistence to DocumentRepository, numbering to
    DocumentNumberService and the receipt signal to InventorySyncDispatcher.

Conversion flow:
    convert(rule, tenant_id, document_id, actor_id, options)
      0. Capability check (injected ``can_convert``)
      1. Fetch and lock the source by id + tenant (SELECT ... FOR UPDATE)
      2. Precondition: source status in rule.eligible_statuses
      3. Duplicate check: no successor may exist
      4. Recompute amounts with TaxCalculator over the source lines
      5. Atomic write in a SAVEPOINT: insert destination, mark source
      6. Commit (auto_commit), then post-commit inventory signal (receipts)

Invariants enforced:
    - One-to-one: at most one successor per source.  The duplicate check
      handles the sequential case; the UNIQUE constraint on predecessor_id
      handles the race, and its IntegrityError is translated to
      AlreadyConvertedError after one re-check.
    - Monetary conservation: destination amounts always equal
      TaxCalculator over the source lines under the configured policy.
    - Forward-only: the source moves only to the rule's converted status.
    - A failed inventory signal never unwinds a committed conversion.

Failure modes:
    - ConversionNotPermittedError: capability check refused.
    - DocumentNotFoundError: unknown id, other tenant, or wrong stage/side.
    - InvalidStateError: source status not eligible (names the expected).
    - AlreadyConvertedError: source already has a successor.
    - StorageConflictError: unique violation with no successor visible.
    - InvalidLineItemError: bad source lines or received quantities.

Audit relevance:
    conversion_started / conversion_completed / conversion_rejected /
    conversion_conflict log records carry tenant, actor, document and rule
    via LogContext.  Destination rows keep predecessor_id, tax_rate and
    currency so every amount can be reproduced.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from commerce_engines.tax import TaxCalculator, TaxRatePolicy
from commerce_kernel.domain.clock import Clock, SystemClock
from commerce_kernel.domain.conversion import (
    PURCHASE_ORDER_TO_RECEIPT,
    SALES_ORDER_TO_INVOICE,
    ConversionRule,
    rule_for,
)
from commerce_kernel.domain.documents import (
    DocumentAmounts,
    DocumentStatus,
    LineItem,
    Side,
    Stage,
    terminal_stage,
)
from commerce_kernel.exceptions import (
    AlreadyConvertedError,
    CommerceKernelError,
    ConversionNotPermittedError,
    DocumentNotFoundError,
    InvalidLineItemError,
    InvalidStateError,
    StorageConflictError,
)
from commerce_kernel.logging_config import LogContext, get_logger
from commerce_kernel.selectors.document_selector import DocumentDTO, to_document_dto
from commerce_kernel.services.document_repository import DocumentRepository
from commerce_kernel.services.inventory_sync import InventorySyncDispatcher, SyncStatus
from commerce_kernel.services.numbering_service import DocumentNumberService

logger = get_logger("services.conversion")

CanConvert = Callable[[UUID, UUID, UUID], bool]

DEFAULT_DELIVERY_DAYS: dict[Side, int] = {Side.SALES: 7, Side.PURCHASE: 15}


def allow_all(actor_id: UUID, tenant_id: UUID, document_id: UUID) -> bool:
    """Default capability check: every actor may convert."""
    return True


# =============================================================================
# Options and results
# =============================================================================


@dataclass(frozen=True)
class OrderOptions:
    """Quotation -> order options."""

    notes: str | None = None
    requested_delivery_date: date | None = None
    auto_confirm: bool = False


@dataclass(frozen=True)
class InvoiceOptions:
    """Order -> invoice options."""

    notes: str | None = None


@dataclass(frozen=True)
class ReceiptOptions:
    """Order -> goods receipt options.

    ``received_quantities`` maps product_id to the quantity actually
    received; products left out are received in full.
    """

    received_quantities: Mapping[str, int] | None = None
    notes: str | None = None


@dataclass(frozen=True)
class PipelineOptions:
    """Options for run_full_pipeline."""

    order: OrderOptions = field(default_factory=OrderOptions)
    auto_issue_terminal: bool = False
    terminal_notes: str | None = None
    received_quantities: Mapping[str, int] | None = None


ConversionOptions = OrderOptions | InvoiceOptions | ReceiptOptions


@dataclass(frozen=True)
class Conversion:
    """A committed (or, with auto_commit=False, flushed) conversion."""

    rule: str
    source_id: UUID
    source_status_before: DocumentStatus
    source_status_after: DocumentStatus
    document: DocumentDTO
    amounts: DocumentAmounts
    converted_at: datetime
    inventory_sync: SyncStatus = SyncStatus.NOT_REQUIRED

    @property
    def document_id(self) -> UUID:
        return self.document.id


@dataclass(frozen=True)
class PipelineRun:
    """Outcome of run_full_pipeline.

    ``failure`` is set when the terminal step was attempted and failed; the
    order conversion stays committed.
    """

    steps: tuple[str, ...]
    order_conversion: Conversion | None = None
    terminal_conversion: Conversion | None = None
    failure: CommerceKernelError | None = None

    @property
    def is_complete(self) -> bool:
        return self.failure is None

    @property
    def is_partial(self) -> bool:
        return self.failure is not None and self.order_conversion is not None


# =============================================================================
# Orchestrator
# =============================================================================


class ConversionOrchestrator:
    """
    Converts documents between stages.

    Contract:
        Public operations return ``Conversion`` values or raise a typed
        CommerceKernelError.  With ``auto_commit=True`` (default) a
        successful conversion is committed before return and any failure
        is rolled back before the exception propagates.

    Guarantees:
        - Same-source races yield exactly one success; every other attempt
          raises AlreadyConvertedError.
        - Calling a conversion again after success raises
          AlreadyConvertedError and creates nothing.

    Non-goals:
        - Does NOT evaluate permissions itself; ``can_convert`` is injected.
        - Does NOT mutate inventory; it only signals receipts.
    """

    def __init__(
        self,
        session: Session,
        tax_policy: TaxRatePolicy,
        clock: Clock | None = None,
        numbering: DocumentNumberService | None = None,
        inventory_sync: InventorySyncDispatcher | None = None,
        can_convert: CanConvert | None = None,
        delivery_days: Mapping[Side, int] | None = None,
        calculator: TaxCalculator | None = None,
        auto_commit: bool = True,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.repository = DocumentRepository(session)
        self._tax_policy = tax_policy
        self._numbering = numbering or DocumentNumberService(session, self.clock)
        self._inventory_sync = inventory_sync or InventorySyncDispatcher()
        self._can_convert = can_convert or allow_all
        self._delivery_days = dict(delivery_days or DEFAULT_DELIVERY_DAYS)
        self._calculator = calculator or TaxCalculator()
        self._auto_commit = auto_commit

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def convert_quotation_to_order(
        self,
        tenant_id: UUID,
        quotation_id: UUID,
        actor_id: UUID,
        options: OrderOptions | None = None,
    ) -> Conversion:
        """Quotation -> order; the rule follows the quotation's side."""
        quotation = self.repository.find_by_id(tenant_id, quotation_id)
        if quotation is None or quotation.stage != Stage.QUOTATION.value:
            self._rollback_if_owned()
            raise DocumentNotFoundError(
                str(quotation_id), str(tenant_id), Stage.QUOTATION.value,
            )
        rule = rule_for(Side(quotation.side), Stage.QUOTATION)
        return self.convert(rule, tenant_id, quotation_id, actor_id, options or OrderOptions())

    def convert_order_to_invoice(
        self,
        tenant_id: UUID,
        order_id: UUID,
        actor_id: UUID,
        options: InvoiceOptions | None = None,
    ) -> Conversion:
        """Sales order -> invoice."""
        return self.convert(
            SALES_ORDER_TO_INVOICE, tenant_id, order_id, actor_id,
            options or InvoiceOptions(),
        )

    def convert_order_to_receipt(
        self,
        tenant_id: UUID,
        order_id: UUID,
        actor_id: UUID,
        options: ReceiptOptions | None = None,
    ) -> Conversion:
        """Purchase order -> goods receipt, then signal inventory."""
        return self.convert(
            PURCHASE_ORDER_TO_RECEIPT, tenant_id, order_id, actor_id,
            options or ReceiptOptions(),
        )

    def run_full_pipeline(
        self,
        tenant_id: UUID,
        quotation_id: UUID,
        actor_id: UUID,
        options: PipelineOptions | None = None,
        side: Side | None = None,
    ) -> PipelineRun:
        """
        Quotation -> order, then optionally order -> invoice/receipt.

        With ``side`` set, a quotation of the other side is not found.

        The order is created confirmed when the terminal step will run, so
        it is immediately eligible.  A failure of the first step raises; a
        failure of the terminal step is returned in ``PipelineRun.failure``
        alongside the committed order conversion.
        """
        options = options or PipelineOptions()
        order_options = options.order
        if options.auto_issue_terminal and not order_options.auto_confirm:
            order_options = replace(order_options, auto_confirm=True)

        if side is None:
            order_conversion = self.convert_quotation_to_order(
                tenant_id, quotation_id, actor_id, order_options,
            )
        else:
            order_conversion = self.convert(
                rule_for(side, Stage.QUOTATION),
                tenant_id, quotation_id, actor_id, order_options,
            )
        steps = (order_conversion.rule,)
        if not options.auto_issue_terminal:
            return PipelineRun(steps=steps, order_conversion=order_conversion)

        side = order_conversion.document.side
        order_id = order_conversion.document_id
        try:
            if terminal_stage(side) == Stage.INVOICE:
                terminal = self.convert_order_to_invoice(
                    tenant_id, order_id, actor_id,
                    InvoiceOptions(notes=options.terminal_notes),
                )
            else:
                terminal = self.convert_order_to_receipt(
                    tenant_id, order_id, actor_id,
                    ReceiptOptions(
                        received_quantities=options.received_quantities,
                        notes=options.terminal_notes,
                    ),
                )
        except CommerceKernelError as exc:
            logger.warning("pipeline_partial", extra={
                "quotation_id": str(quotation_id),
                "order_id": str(order_id),
                "error_code": exc.code,
            })
            return PipelineRun(
                steps=steps, order_conversion=order_conversion, failure=exc,
            )

        return PipelineRun(
            steps=steps + (terminal.rule,),
            order_conversion=order_conversion,
            terminal_conversion=terminal,
        )

    def dispatch_inventory_signal(self, conversion: Conversion) -> Conversion:
        """
        Send the receipt signal for a conversion made with auto_commit=False.

        Call only after the caller has committed.
        """
        if conversion.inventory_sync != SyncStatus.PENDING:
            return conversion
        status = self._inventory_sync.dispatch(
            conversion.document_id, conversion.document.line_items,
        )
        return replace(conversion, inventory_sync=status)

    # -------------------------------------------------------------------------
    # Generic protocol
    # -------------------------------------------------------------------------

    def convert(
        self,
        rule: ConversionRule,
        tenant_id: UUID,
        document_id: UUID,
        actor_id: UUID,
        options: ConversionOptions,
    ) -> Conversion:
        """Run the conversion protocol for ``rule``."""
        correlation_id = LogContext.get_all().get("correlation_id") or str(uuid4())
        with LogContext.bind(
            correlation_id=correlation_id,
            tenant_id=str(tenant_id),
            actor_id=str(actor_id),
            document_id=str(document_id),
            rule=rule.name,
        ):
            logger.info("conversion_started")
            t0 = time.monotonic()

            try:
                conversion = self._do_convert(rule, tenant_id, document_id, actor_id, options)
                if self._auto_commit:
                    self.session.commit()
            except CommerceKernelError as exc:
                self._rollback_if_owned()
                logger.warning("conversion_rejected", extra={
                    "error_code": exc.code,
                    "reason": str(exc),
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                })
                raise
            except Exception:
                self._rollback_if_owned()
                logger.error(
                    "conversion_failed",
                    extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
                    exc_info=True,
                )
                raise

            if rule.signals_inventory:
                if self._auto_commit:
                    status = self._inventory_sync.dispatch(
                        conversion.document_id, conversion.document.line_items,
                    )
                else:
                    status = SyncStatus.PENDING
                conversion = replace(conversion, inventory_sync=status)

            logger.info("conversion_completed", extra={
                "destination_id": str(conversion.document_id),
                "document_number": conversion.document.document_number,
                "source_status_before": conversion.source_status_before.value,
                "source_status_after": conversion.source_status_after.value,
                "total": str(conversion.amounts.total),
                "inventory_sync": conversion.inventory_sync.value,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            })
            return conversion

    def _do_convert(
        self,
        rule: ConversionRule,
        tenant_id: UUID,
        document_id: UUID,
        actor_id: UUID,
        options: ConversionOptions,
    ) -> Conversion:
        if not self._can_convert(actor_id, tenant_id, document_id):
            raise ConversionNotPermittedError(str(document_id), str(actor_id))

        source = self.repository.find_by_id(tenant_id, document_id, lock=True)
        if (
            source is None
            or source.side != rule.side.value
            or source.stage != rule.source_stage.value
        ):
            raise DocumentNotFoundError(
                str(document_id), str(tenant_id), rule.source_stage.value,
            )

        status = DocumentStatus(source.status)
        if status not in rule.eligible_statuses:
            successor = self.repository.find_successor_of(source.id)
            if successor is not None:
                raise AlreadyConvertedError(str(document_id), status.value, str(successor.id))
            raise InvalidStateError(str(document_id), status.value, rule.expected_statuses())

        successor = self.repository.find_successor_of(source.id)
        if successor is not None:
            raise AlreadyConvertedError(str(document_id), status.value, str(successor.id))

        source_dto = to_document_dto(source)
        computation = self._calculator.compute(source_dto.line_items, self._tax_policy)
        amounts = computation.to_amounts()
        if not amounts.matches(source_dto.amounts):
            logger.warning("stored_totals_mismatch", extra={
                "stored_total": str(source_dto.amounts.total),
                "recomputed_total": str(amounts.total),
                "stored_tax": str(source_dto.amounts.tax),
                "recomputed_tax": str(amounts.tax),
            })

        line_items = source_dto.line_items
        if rule.target_stage == Stage.RECEIPT:
            line_items = self._apply_received_quantities(
                line_items, getattr(options, "received_quantities", None),
            )

        now = self.clock.now()
        target_status = rule.target_status
        requested_delivery = None
        if rule.target_stage == Stage.ORDER:
            if getattr(options, "auto_confirm", False):
                target_status = DocumentStatus.CONFIRMED
            requested_delivery = getattr(options, "requested_delivery_date", None) or (
                now.date() + timedelta(days=self._delivery_days[rule.side])
            )

        try:
            with self.repository.transaction():
                number = self._numbering.next_number(tenant_id, rule.series)
                destination = self.repository.create_document(
                    tenant_id=tenant_id,
                    side=rule.side,
                    stage=rule.target_stage,
                    status=target_status,
                    document_number=number,
                    counterparty_id=source.counterparty_id,
                    line_items=line_items,
                    amounts=amounts,
                    actor_id=actor_id,
                    created_at=now,
                    predecessor_id=source.id,
                    notes=getattr(options, "notes", None),
                    requested_delivery_date=requested_delivery,
                    issued_at=now if rule.target_status == DocumentStatus.ISSUED else None,
                )
                self.repository.update_status(source, rule.converted_status, actor_id)
        except IntegrityError as exc:
            self._raise_for_conflict(source.id, status, exc)

        return Conversion(
            rule=rule.name,
            source_id=source.id,
            source_status_before=status,
            source_status_after=rule.converted_status,
            document=to_document_dto(destination),
            amounts=amounts,
            converted_at=now,
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _raise_for_conflict(
        self,
        source_id: UUID,
        status: DocumentStatus,
        exc: IntegrityError,
    ) -> None:
        """Translate a unique violation into the typed error.  Always raises."""
        constraint = _constraint_name(exc)
        logger.warning("conversion_conflict", extra={"constraint": constraint})

        successor = self.repository.find_successor_of(source_id)
        if successor is not None:
            raise AlreadyConvertedError(
                str(source_id), status.value, str(successor.id),
            ) from exc
        raise StorageConflictError(str(source_id), constraint) from exc

    @staticmethod
    def _apply_received_quantities(
        line_items: tuple[LineItem, ...],
        received: Mapping[str, int] | None,
    ) -> tuple[LineItem, ...]:
        received = dict(received or {})
        known = {item.product_id for item in line_items}
        for product_id, quantity in received.items():
            if product_id not in known:
                raise InvalidLineItemError(
                    "received product is not on the order", product_id=product_id,
                )
            if isinstance(quantity, bool) or not isinstance(quantity, int):
                raise InvalidLineItemError(
                    "received quantity must be an integer", product_id=product_id,
                )
            if quantity < 0:
                raise InvalidLineItemError(
                    "received quantity cannot be negative", product_id=product_id,
                )
        return tuple(
            replace(item, received_quantity=received.get(item.product_id, item.quantity))
            for item in line_items
        )

    def _rollback_if_owned(self) -> None:
        if self._auto_commit:
            self.session.rollback()


def _constraint_name(exc: IntegrityError) -> str:
    """Best-effort constraint name from a driver error."""
    diag = getattr(exc.orig, "diag", None)
    name = getattr(diag, "constraint_name", None)
    if name:
        return name
    message = str(exc.orig)
    if "predecessor_id" in message:
        return "uq_document_predecessor"
    return message
