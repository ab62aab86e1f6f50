"""
Module: commerce_kernel.models.counter
Responsibility: Locked counter rows backing document numbers.
Architecture position: Kernel > Models.

Invariants enforced:
    - One row per (tenant, series name); UNIQUE constraint makes first use
      race-safe.
    - Values only increase; allocation goes through DocumentNumberService,
      which locks the row (never aggregate max + 1).
"""

from uuid import UUID

from sqlalchemy import BigInteger, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from commerce_kernel.db.base import Base, UUIDString


class DocumentCounter(Base):
    """
    Counter table for document number series.

    ``name`` combines the series and period, e.g. ``sales_invoice:202401``,
    so numbering restarts every month.
    """

    __tablename__ = "document_counters"

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_document_counter"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    name: Mapped[str] = mapped_column(String(150), nullable=False)

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )
