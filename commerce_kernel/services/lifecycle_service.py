"""
DocumentLifecycleService -- intake and manual status transitions.

Responsibility:
    Creates quotations (amounts derived by TaxCalculator, status pending)
    and moves documents through their forward-only lifecycle: accepting or
    rejecting quotations, confirming, starting, shipping and cancelling
    orders, cancelling invoices and receipts.

Architecture position:
    Kernel > Services.  Flush-only; the caller owns commit/rollback.

Invariants enforced:
    - Transitions follow ``commerce_kernel.domain.lifecycle``; conversion-
      only statuses (converted, invoiced, received) are refused here.
    - Amounts are never hand-set: they always come from TaxCalculator.

Failure modes:
    - DocumentNotFoundError: unknown id or another tenant's document.
    - InvalidTransitionError: illegal or conversion-only move.
    - InvalidLineItemError: bad line items on intake.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from commerce_engines.tax import TaxCalculator, TaxRatePolicy
from commerce_kernel.domain.clock import Clock
from commerce_kernel.domain.conversion import series_key
from commerce_kernel.domain.documents import DocumentStatus, LineItem, Side, Stage
from commerce_kernel.domain.lifecycle import INITIAL_STATUS, check_manual_transition
from commerce_kernel.exceptions import DocumentNotFoundError
from commerce_kernel.logging_config import get_logger
from commerce_kernel.selectors.document_selector import DocumentDTO, to_document_dto
from commerce_kernel.services.document_repository import DocumentRepository
from commerce_kernel.services.numbering_service import DocumentNumberService

logger = get_logger("services.lifecycle")


class DocumentLifecycleService:
    """
    Intake and manual transitions for commercial documents.

    Contract:
        Returns DocumentDTOs.  Never commits.

    Non-goals:
        - Does NOT convert documents between stages; that is the
          ConversionOrchestrator's job.
        - Does NOT evaluate approvals or permissions.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        tax_policy: TaxRatePolicy,
        numbering: DocumentNumberService | None = None,
        calculator: TaxCalculator | None = None,
    ):
        self._session = session
        self._clock = clock
        self._tax_policy = tax_policy
        self._numbering = numbering or DocumentNumberService(session, clock)
        self._calculator = calculator or TaxCalculator()
        self.repository = DocumentRepository(session)

    def create_quotation(
        self,
        tenant_id: UUID,
        side: Side,
        counterparty_id: UUID,
        line_items: Sequence[LineItem],
        actor_id: UUID,
        notes: str | None = None,
    ) -> DocumentDTO:
        """
        Register a new quotation in status ``pending``.

        Raises:
            InvalidLineItemError: If the line items fail validation.
        """
        computation = self._calculator.compute(line_items, self._tax_policy)
        number = self._numbering.next_number(
            tenant_id, series_key(side, Stage.QUOTATION),
        )
        document = self.repository.create_document(
            tenant_id=tenant_id,
            side=side,
            stage=Stage.QUOTATION,
            status=INITIAL_STATUS[Stage.QUOTATION],
            document_number=number,
            counterparty_id=counterparty_id,
            line_items=line_items,
            amounts=computation.to_amounts(),
            actor_id=actor_id,
            created_at=self._clock.now(),
            notes=notes,
        )

        logger.info("quotation_created", extra={
            "document_id": str(document.id),
            "document_number": number,
            "side": side.value,
            "total": str(computation.total),
            "line_count": len(line_items),
        })
        return to_document_dto(document)

    def transition(
        self,
        tenant_id: UUID,
        document_id: UUID,
        target_status: DocumentStatus,
        actor_id: UUID,
    ) -> DocumentDTO:
        """
        Apply a manual, forward-only status change.

        Raises:
            DocumentNotFoundError: If the document is not visible to the tenant.
            InvalidTransitionError: If the move is not allowed.
        """
        document = self.repository.find_by_id(tenant_id, document_id, lock=True)
        if document is None:
            raise DocumentNotFoundError(str(document_id), str(tenant_id))

        current = DocumentStatus(document.status)
        check_manual_transition(
            str(document_id), Stage(document.stage), current, target_status,
        )
        self.repository.update_status(document, target_status, actor_id)

        logger.info("document_transitioned", extra={
            "document_id": str(document_id),
            "stage": document.stage,
            "from_status": current.value,
            "to_status": target_status.value,
        })
        return to_document_dto(document)
