"""
DocumentRepository -- session-bound persistence for commercial documents.

Responsibility:
    Fetch (optionally row-locked), create and update documents and their
    lines.  Used by the lifecycle service and the conversion orchestrator.

Architecture position:
    Kernel > Services.  Flush-only; the caller owns commit/rollback.

Invariants enforced:
    - Every lookup is scoped by tenant_id; a document of another tenant is
      indistinguishable from a missing one.
    - ``transaction()`` wraps multi-row writes in a SAVEPOINT so a unique
      constraint violation undoes all of them and leaves the outer
      transaction usable.
    - Documents are never deleted.

Failure modes:
    - IntegrityError from flush() on the predecessor or document-number
      unique constraints (translated by the orchestrator).
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import select

from commerce_kernel.domain.documents import (
    DocumentAmounts,
    DocumentStatus,
    LineItem,
    Side,
    Stage,
)
from commerce_kernel.logging_config import get_logger
from commerce_kernel.models.document import CommercialDocument, CommercialDocumentLine
from commerce_kernel.services.base import BaseService

logger = get_logger("services.document_repository")


class DocumentRepository(BaseService[CommercialDocument]):
    """
    Persistence gateway for CommercialDocument rows.

    Guarantees:
        - ``find_by_id(..., lock=True)`` issues SELECT ... FOR UPDATE on
          dialects that support it and always refreshes the identity map,
          so a status committed by a concurrent transaction is seen.
        - Line order is preserved through ``line_no``.
    """

    def find_by_id(
        self,
        tenant_id: UUID,
        document_id: UUID,
        lock: bool = False,
    ) -> CommercialDocument | None:
        stmt = select(CommercialDocument).where(
            CommercialDocument.id == document_id,
            CommercialDocument.tenant_id == tenant_id,
        )
        if lock:
            stmt = stmt.with_for_update()
        return self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def find_successor_of(self, document_id: UUID) -> CommercialDocument | None:
        """The document whose predecessor is ``document_id``, if any."""
        return self.session.execute(
            select(CommercialDocument)
            .where(CommercialDocument.predecessor_id == document_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        SAVEPOINT scope for atomic multi-row writes.

        On exception the savepoint is rolled back and the exception
        propagates; the enclosing transaction stays usable.
        """
        with self.session.begin_nested():
            yield

    def create_document(
        self,
        *,
        tenant_id: UUID,
        side: Side,
        stage: Stage,
        status: DocumentStatus,
        document_number: str,
        counterparty_id: UUID,
        line_items: Sequence[LineItem],
        amounts: DocumentAmounts,
        actor_id: UUID,
        created_at: datetime,
        predecessor_id: UUID | None = None,
        notes: str | None = None,
        requested_delivery_date: date | None = None,
        issued_at: datetime | None = None,
    ) -> CommercialDocument:
        """Insert a document and its lines, then flush."""
        document = CommercialDocument(
            tenant_id=tenant_id,
            side=side.value,
            stage=stage.value,
            status=status.value,
            document_number=document_number,
            counterparty_id=counterparty_id,
            predecessor_id=predecessor_id,
            subtotal=amounts.subtotal,
            discount=amounts.discount,
            tax=amounts.tax,
            total=amounts.total,
            tax_rate=amounts.tax_rate,
            currency=amounts.currency,
            notes=notes,
            requested_delivery_date=requested_delivery_date,
            issued_at=issued_at,
            created_at=created_at,
            updated_at=created_at,
            created_by_id=actor_id,
        )
        document.lines = [
            CommercialDocumentLine(
                line_no=index + 1,
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_discount=item.line_discount,
                received_quantity=item.received_quantity,
                created_at=created_at,
                updated_at=created_at,
                created_by_id=actor_id,
            )
            for index, item in enumerate(line_items)
        ]
        self.session.add(document)
        self.session.flush()

        logger.debug("document_created", extra={
            "created_id": str(document.id),
            "document_number": document_number,
            "side": side.value,
            "stage": stage.value,
            "status": status.value,
            "predecessor_id": str(predecessor_id) if predecessor_id else None,
        })
        return document

    def update_status(
        self,
        document: CommercialDocument,
        status: DocumentStatus,
        actor_id: UUID,
    ) -> CommercialDocument:
        """Set a new status and flush.  Legality is checked by the caller."""
        previous = document.status
        document.status = status.value
        document.updated_by_id = actor_id
        self.session.flush()

        logger.debug("document_status_updated", extra={
            "document_id": str(document.id),
            "from_status": previous,
            "to_status": status.value,
        })
        return document
