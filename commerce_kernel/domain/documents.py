"""
Documents -- Pure domain types for commercial documents.

Responsibility:
    Defines the enumerations (Side, Stage, DocumentStatus) and the immutable
    value objects that flow through the conversion pipeline: LineItem (input
    to the tax calculation and the unit copied between documents) and
    DocumentAmounts (the derived monetary summary).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies.  Models store ``.value`` of these enums in
    plain String columns.

Invariants enforced:
    - Quantities are positive integers; unit prices and discounts are
      non-negative Decimals (validated by TaxCalculator, not here, so that
      the calculation can report the offending line index).
    - total == subtotal - discount + tax for every DocumentAmounts built by
      TaxCalculator.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class Side(str, Enum):
    """Which half of the business a document belongs to."""

    SALES = "sales"
    PURCHASE = "purchase"


class Stage(str, Enum):
    """
    Document stage within the pipeline.

    Contract:
        Sales: QUOTATION -> ORDER -> INVOICE.
        Purchase: QUOTATION -> ORDER -> RECEIPT.
    """

    QUOTATION = "quotation"
    ORDER = "order"
    INVOICE = "invoice"
    RECEIPT = "receipt"


class DocumentStatus(str, Enum):
    """
    Status of a commercial document.

    One enumeration covers every stage; ``STAGE_STATUSES`` restricts which
    values a given stage may hold.
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    CONVERTED = "converted"
    REJECTED = "rejected"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    SHIPPED = "shipped"
    INVOICED = "invoiced"
    RECEIVED = "received"
    CANCELLED = "cancelled"
    ISSUED = "issued"


STAGE_STATUSES: dict[Stage, frozenset[DocumentStatus]] = {
    Stage.QUOTATION: frozenset({
        DocumentStatus.PENDING,
        DocumentStatus.ACCEPTED,
        DocumentStatus.CONVERTED,
        DocumentStatus.REJECTED,
    }),
    Stage.ORDER: frozenset({
        DocumentStatus.PENDING,
        DocumentStatus.CONFIRMED,
        DocumentStatus.IN_PROGRESS,
        DocumentStatus.SHIPPED,
        DocumentStatus.INVOICED,
        DocumentStatus.RECEIVED,
        DocumentStatus.CANCELLED,
    }),
    Stage.INVOICE: frozenset({DocumentStatus.ISSUED, DocumentStatus.CANCELLED}),
    Stage.RECEIPT: frozenset({DocumentStatus.ISSUED, DocumentStatus.CANCELLED}),
}

SIDE_STAGES: dict[Side, tuple[Stage, ...]] = {
    Side.SALES: (Stage.QUOTATION, Stage.ORDER, Stage.INVOICE),
    Side.PURCHASE: (Stage.QUOTATION, Stage.ORDER, Stage.RECEIPT),
}


def terminal_stage(side: Side) -> Stage:
    """Last stage of the side's pipeline (invoice or receipt)."""
    return SIDE_STAGES[side][-1]


@dataclass(frozen=True)
class LineItem:
    """
    One line of a commercial document.

    Contract:
        Immutable.  ``line_discount`` is an absolute amount, not a percentage.
        ``received_quantity`` is only meaningful on goods receipts.
    """

    product_id: str
    quantity: int
    unit_price: Decimal
    line_discount: Decimal = Decimal("0")
    received_quantity: int | None = None

    @property
    def gross_amount(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class DocumentAmounts:
    """
    Derived monetary summary of a document.

    Guarantees:
        - total == subtotal - discount + tax.
        - All amounts are quantized to the currency minor unit.
    """

    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    tax_rate: Decimal
    currency: str

    @property
    def taxable_base(self) -> Decimal:
        return self.subtotal - self.discount

    def matches(self, other: DocumentAmounts) -> bool:
        """True when the four monetary fields agree."""
        return (
            self.subtotal == other.subtotal
            and self.discount == other.discount
            and self.tax == other.tax
            and self.total == other.total
        )
