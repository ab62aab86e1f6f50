"""
Module: commerce_kernel.models.document
Responsibility: ORM persistence for commercial documents (quotations,
    orders, invoices, goods receipts) and their line items.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - At most one successor per predecessor (UNIQUE constraint on
      predecessor_id, ``uq_document_predecessor``).  This is the storage
      backstop that makes concurrent conversions of one source one-to-one.
    - document_number unique per (tenant, side, stage).
    - Documents are never deleted; cancellation is a status change.

Failure modes:
    - IntegrityError on a second row with the same predecessor_id.
    - IntegrityError on a duplicate document number.

Audit relevance:
    predecessor_id links every order to its quotation and every invoice or
    receipt to its order, so the whole chain of a transaction is traceable.
    tax_rate and currency record the policy used for the amounts.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from commerce_kernel.db.base import TrackedBase, UUIDString


class CommercialDocument(TrackedBase):
    """
    Header row for one document at one stage.

    Contract:
        ``side``, ``stage`` and ``status`` hold the string values of the
        domain enums.  Amounts are written only from a TaxCalculator result.

    Guarantees:
        - ``predecessor_id`` is unique when set.
        - ``lines`` are loaded in ``line_no`` order.
    """

    __tablename__ = "commercial_documents"

    __table_args__ = (
        UniqueConstraint("predecessor_id", name="uq_document_predecessor"),
        UniqueConstraint(
            "tenant_id", "side", "stage", "document_number",
            name="uq_document_number",
        ),
        Index("idx_document_tenant_stage", "tenant_id", "side", "stage"),
        Index("idx_document_created", "tenant_id", "created_at"),
        Index("idx_document_status", "status"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    side: Mapped[str] = mapped_column(String(10), nullable=False)

    stage: Mapped[str] = mapped_column(String(10), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False)

    document_number: Mapped[str] = mapped_column(String(40), nullable=False)

    # Customer (sales) or supplier (purchase)
    counterparty_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # Source document this one was converted from
    predecessor_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("commercial_documents.id"),
        nullable=True,
    )

    subtotal: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    discount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    tax: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    # Policy used for the amounts
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(12, 6), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    requested_delivery_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )

    # When an invoice or receipt was issued
    issued_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    lines: Mapped[list["CommercialDocumentLine"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="CommercialDocumentLine.line_no",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<CommercialDocument {self.document_number} "
            f"{self.side}/{self.stage} status={self.status}>"
        )


class CommercialDocumentLine(TrackedBase):
    """
    One line item of a commercial document.

    Contract:
        Lines are copied verbatim (product, quantity, price, discount) from
        source to destination on conversion.  ``received_quantity`` is only
        set on goods receipts.
    """

    __tablename__ = "commercial_document_lines"

    __table_args__ = (
        UniqueConstraint("document_id", "line_no", name="uq_document_line_no"),
        Index("idx_line_document", "document_id"),
        Index("idx_line_product", "product_id"),
    )

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("commercial_documents.id"),
        nullable=False,
    )

    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    product_id: Mapped[str] = mapped_column(String(100), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    line_discount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    received_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)

    document: Mapped["CommercialDocument"] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<CommercialDocumentLine #{self.line_no} {self.product_id} x{self.quantity}>"
