"""
Module: commerce_kernel.selectors.document_selector
Responsibility: Read-only query access to commercial documents, their lines
    and their conversion links.  Converts ORM models to frozen DTOs.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only: No mutations performed on any queried data.
    - DTO convention: public methods return DocumentDTO / summary DTOs,
      never raw ORM models.
    - Every query is scoped by tenant_id.
    - Lines are ordered by line_no.

Failure modes:
    - Returns None or empty list when no matching documents exist (never
      raises on absence of data).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, aliased

from commerce_kernel.db.types import normalize_stored
from commerce_kernel.domain.documents import (
    DocumentAmounts,
    DocumentStatus,
    LineItem,
    Side,
    Stage,
)
from commerce_kernel.models.document import CommercialDocument
from commerce_kernel.selectors.base import BaseSelector, as_utc


@dataclass(frozen=True)
class DocumentDTO:
    """Data transfer object for a commercial document."""

    id: UUID
    tenant_id: UUID
    side: Side
    stage: Stage
    status: DocumentStatus
    document_number: str
    counterparty_id: UUID
    predecessor_id: UUID | None
    line_items: tuple[LineItem, ...]
    amounts: DocumentAmounts
    notes: str | None
    requested_delivery_date: date | None
    created_at: datetime
    issued_at: datetime | None
    created_by_id: UUID

    @property
    def total(self) -> Decimal:
        return self.amounts.total


@dataclass(frozen=True)
class DocumentSummary:
    """Header-only view used by analytics (no lines)."""

    id: UUID
    stage: Stage
    status: DocumentStatus
    total: Decimal
    created_at: datetime
    predecessor_id: UUID | None


@dataclass(frozen=True)
class ConversionLink:
    """A predecessor/successor pair with both creation times."""

    predecessor_id: UUID
    predecessor_created_at: datetime
    successor_id: UUID
    successor_created_at: datetime


@dataclass(frozen=True)
class ReceivedPurchaseLine:
    """One line of a received purchase order, for sourcing analysis."""

    order_id: UUID
    supplier_id: UUID
    product_id: str
    unit_price: Decimal
    quantity: int


def to_document_dto(model: CommercialDocument) -> DocumentDTO:
    """Convert ORM model to DTO."""
    lines = tuple(
        LineItem(
            product_id=line.product_id,
            quantity=line.quantity,
            unit_price=normalize_stored(line.unit_price),
            line_discount=normalize_stored(line.line_discount),
            received_quantity=line.received_quantity,
        )
        for line in sorted(model.lines, key=lambda x: x.line_no)
    )
    amounts = DocumentAmounts(
        subtotal=normalize_stored(model.subtotal),
        discount=normalize_stored(model.discount),
        tax=normalize_stored(model.tax),
        total=normalize_stored(model.total),
        tax_rate=normalize_stored(model.tax_rate),
        currency=model.currency,
    )
    return DocumentDTO(
        id=model.id,
        tenant_id=model.tenant_id,
        side=Side(model.side),
        stage=Stage(model.stage),
        status=DocumentStatus(model.status),
        document_number=model.document_number,
        counterparty_id=model.counterparty_id,
        predecessor_id=model.predecessor_id,
        line_items=lines,
        amounts=amounts,
        notes=model.notes,
        requested_delivery_date=model.requested_delivery_date,
        created_at=as_utc(model.created_at),
        issued_at=as_utc(model.issued_at),
        created_by_id=model.created_by_id,
    )


def _window(stmt, column, created_from: datetime | None, created_to: datetime | None):
    if created_from is not None:
        stmt = stmt.where(column >= as_utc(created_from))
    if created_to is not None:
        stmt = stmt.where(column <= as_utc(created_to))
    return stmt


class DocumentSelector(BaseSelector[CommercialDocument]):
    """
    Selector for commercial document queries.

    Guarantees:
        - Read-only.
        - Windows are on created_at with inclusive bounds; either bound
          may be omitted.
        - Multi-document results are ordered by created_at, then number.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def get(self, tenant_id: UUID, document_id: UUID) -> DocumentDTO | None:
        """Document by id within a tenant, or None."""
        model = self.session.execute(
            select(CommercialDocument).where(
                CommercialDocument.id == document_id,
                CommercialDocument.tenant_id == tenant_id,
            )
        ).scalar_one_or_none()
        return to_document_dto(model) if model is not None else None

    def get_successor(self, tenant_id: UUID, document_id: UUID) -> DocumentDTO | None:
        """The document converted from ``document_id``, if any."""
        model = self.session.execute(
            select(CommercialDocument).where(
                CommercialDocument.predecessor_id == document_id,
                CommercialDocument.tenant_id == tenant_id,
            )
        ).scalar_one_or_none()
        return to_document_dto(model) if model is not None else None

    def list_documents(
        self,
        tenant_id: UUID,
        side: Side | None = None,
        stage: Stage | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
    ) -> list[DocumentDTO]:
        """Full documents (with lines) matching the filters."""
        stmt = select(CommercialDocument).where(
            CommercialDocument.tenant_id == tenant_id,
        )
        if side is not None:
            stmt = stmt.where(CommercialDocument.side == side.value)
        if stage is not None:
            stmt = stmt.where(CommercialDocument.stage == stage.value)
        stmt = _window(stmt, CommercialDocument.created_at, created_from, created_to)
        stmt = stmt.order_by(
            CommercialDocument.created_at, CommercialDocument.document_number,
        )
        return [to_document_dto(m) for m in self.session.execute(stmt).scalars()]

    def summarize(
        self,
        tenant_id: UUID,
        side: Side,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
    ) -> list[DocumentSummary]:
        """Header rows for every document of a side created in the window."""
        stmt = select(
            CommercialDocument.id,
            CommercialDocument.stage,
            CommercialDocument.status,
            CommercialDocument.total,
            CommercialDocument.created_at,
            CommercialDocument.predecessor_id,
        ).where(
            CommercialDocument.tenant_id == tenant_id,
            CommercialDocument.side == side.value,
        )
        stmt = _window(stmt, CommercialDocument.created_at, created_from, created_to)
        stmt = stmt.order_by(CommercialDocument.created_at)
        return [
            DocumentSummary(
                id=row.id,
                stage=Stage(row.stage),
                status=DocumentStatus(row.status),
                total=normalize_stored(row.total),
                created_at=as_utc(row.created_at),
                predecessor_id=row.predecessor_id,
            )
            for row in self.session.execute(stmt)
        ]

    def conversion_links(
        self,
        tenant_id: UUID,
        side: Side,
        source_stage: Stage,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
    ) -> list[ConversionLink]:
        """
        Links whose predecessor is a ``source_stage`` document created in
        the window.  The successor may have been created after the window.
        """
        pred = aliased(CommercialDocument)
        succ = aliased(CommercialDocument)
        stmt = (
            select(pred.id, pred.created_at, succ.id, succ.created_at)
            .join(succ, succ.predecessor_id == pred.id)
            .where(
                pred.tenant_id == tenant_id,
                pred.side == side.value,
                pred.stage == source_stage.value,
            )
        )
        stmt = _window(stmt, pred.created_at, created_from, created_to)
        return [
            ConversionLink(
                predecessor_id=pred_id,
                predecessor_created_at=as_utc(pred_created),
                successor_id=succ_id,
                successor_created_at=as_utc(succ_created),
            )
            for pred_id, pred_created, succ_id, succ_created in self.session.execute(stmt)
        ]

    def received_purchase_lines(
        self,
        tenant_id: UUID,
        since: datetime,
    ) -> list[ReceivedPurchaseLine]:
        """Lines of purchase orders in status ``received`` created on or after ``since``."""
        stmt = (
            select(CommercialDocument)
            .where(
                CommercialDocument.tenant_id == tenant_id,
                CommercialDocument.side == Side.PURCHASE.value,
                CommercialDocument.stage == Stage.ORDER.value,
                CommercialDocument.status == DocumentStatus.RECEIVED.value,
                CommercialDocument.created_at >= as_utc(since),
            )
            .order_by(CommercialDocument.created_at)
        )
        result: list[ReceivedPurchaseLine] = []
        for order in self.session.execute(stmt).scalars():
            for line in sorted(order.lines, key=lambda x: x.line_no):
                result.append(
                    ReceivedPurchaseLine(
                        order_id=order.id,
                        supplier_id=order.counterparty_id,
                        product_id=line.product_id,
                        unit_price=normalize_stored(line.unit_price),
                        quantity=line.quantity,
                    )
                )
        return result
