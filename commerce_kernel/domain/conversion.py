"""
Conversion rules -- declarative description of every stage conversion.

Responsibility:
    One frozen ConversionRule per (side, source stage) pair.  The
    orchestrator runs a single generic protocol driven by these values, so a
    sales quotation->order and a purchase order->receipt differ only in data.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.

Invariants enforced:
    - Each rule's eligible statuses, converted status and target status are
      members of STAGE_STATUSES for the respective stage.
    - Each rule's source -> converted move is a ``via_conversion``
      transition in the lifecycle table.
"""

from __future__ import annotations

from dataclasses import dataclass

from commerce_kernel.domain.documents import DocumentStatus, Side, Stage

S = DocumentStatus


def series_key(side: Side, stage: Stage) -> str:
    """Number series name for a document kind, e.g. ``sales_invoice``."""
    return f"{side.value}_{stage.value}"


@dataclass(frozen=True)
class ConversionRule:
    """
    One legal conversion.

    Contract:
        ``eligible_statuses`` are the only source statuses the conversion
        accepts.  After success the source holds ``converted_status`` and the
        destination starts in ``target_status`` (orders may be created
        already confirmed when the caller asks for it).

    Guarantees:
        - ``signals_inventory`` is True only for goods receipts.
    """

    name: str
    side: Side
    source_stage: Stage
    target_stage: Stage
    eligible_statuses: frozenset[DocumentStatus]
    converted_status: DocumentStatus
    target_status: DocumentStatus
    signals_inventory: bool = False

    @property
    def series(self) -> str:
        return series_key(self.side, self.target_stage)

    def expected_statuses(self) -> tuple[str, ...]:
        """Eligible statuses as sorted strings, for error reporting."""
        return tuple(sorted(s.value for s in self.eligible_statuses))


_ORDER_IN_FLIGHT = frozenset({S.CONFIRMED, S.IN_PROGRESS, S.SHIPPED})

SALES_QUOTATION_TO_ORDER = ConversionRule(
    name="sales.quotation_to_order",
    side=Side.SALES,
    source_stage=Stage.QUOTATION,
    target_stage=Stage.ORDER,
    eligible_statuses=frozenset({S.ACCEPTED}),
    converted_status=S.CONVERTED,
    target_status=S.PENDING,
)

SALES_ORDER_TO_INVOICE = ConversionRule(
    name="sales.order_to_invoice",
    side=Side.SALES,
    source_stage=Stage.ORDER,
    target_stage=Stage.INVOICE,
    eligible_statuses=_ORDER_IN_FLIGHT,
    converted_status=S.INVOICED,
    target_status=S.ISSUED,
)

PURCHASE_QUOTATION_TO_ORDER = ConversionRule(
    name="purchase.quotation_to_order",
    side=Side.PURCHASE,
    source_stage=Stage.QUOTATION,
    target_stage=Stage.ORDER,
    eligible_statuses=frozenset({S.ACCEPTED}),
    converted_status=S.CONVERTED,
    target_status=S.PENDING,
)

PURCHASE_ORDER_TO_RECEIPT = ConversionRule(
    name="purchase.order_to_receipt",
    side=Side.PURCHASE,
    source_stage=Stage.ORDER,
    target_stage=Stage.RECEIPT,
    eligible_statuses=_ORDER_IN_FLIGHT,
    converted_status=S.RECEIVED,
    target_status=S.ISSUED,
    signals_inventory=True,
)

RULE_REGISTRY: dict[str, ConversionRule] = {
    rule.name: rule
    for rule in (
        SALES_QUOTATION_TO_ORDER,
        SALES_ORDER_TO_INVOICE,
        PURCHASE_QUOTATION_TO_ORDER,
        PURCHASE_ORDER_TO_RECEIPT,
    )
}


def rule_for(side: Side, source_stage: Stage) -> ConversionRule:
    """
    Look up the rule converting ``source_stage`` documents on ``side``.

    Raises:
        KeyError: No conversion leaves that stage (invoices, receipts).
    """
    for rule in RULE_REGISTRY.values():
        if rule.side == side and rule.source_stage == source_stage:
            return rule
    raise KeyError(f"No conversion from {side.value} {source_stage.value}")
