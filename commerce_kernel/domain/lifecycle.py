"""
Canonical document lifecycle (``commerce_kernel.domain.lifecycle``).

Responsibility
--------------
Pure state-machine tables for commercial documents: which status changes
are legal per stage, and which of them may only happen as a side effect of
a conversion.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Forward-only: no transition returns a document to an earlier status.
* Order progress is one step at a time (pending -> confirmed ->
  in_progress -> shipped); skipping a step is illegal.
* ``converted``, ``invoiced`` and ``received`` are reachable only through
  the conversion orchestrator, never through a manual transition.
* Cancellation is a status change; documents are never deleted.  Converted
  documents cannot be cancelled.
"""

from __future__ import annotations

from dataclasses import dataclass

from commerce_kernel.domain.documents import DocumentStatus, Stage
from commerce_kernel.exceptions import InvalidTransitionError

S = DocumentStatus


@dataclass(frozen=True)
class Transition:
    """A valid status change for one stage.

    ``via_conversion=True`` marks a transition that only the conversion
    orchestrator may fire.
    """

    stage: Stage
    from_status: DocumentStatus
    to_status: DocumentStatus
    via_conversion: bool = False


TRANSITIONS: tuple[Transition, ...] = (
    # Quotation
    Transition(Stage.QUOTATION, S.PENDING, S.ACCEPTED),
    Transition(Stage.QUOTATION, S.PENDING, S.REJECTED),
    Transition(Stage.QUOTATION, S.ACCEPTED, S.REJECTED),
    Transition(Stage.QUOTATION, S.ACCEPTED, S.CONVERTED, via_conversion=True),
    # Order
    Transition(Stage.ORDER, S.PENDING, S.CONFIRMED),
    Transition(Stage.ORDER, S.CONFIRMED, S.IN_PROGRESS),
    Transition(Stage.ORDER, S.IN_PROGRESS, S.SHIPPED),
    Transition(Stage.ORDER, S.PENDING, S.CANCELLED),
    Transition(Stage.ORDER, S.CONFIRMED, S.CANCELLED),
    Transition(Stage.ORDER, S.IN_PROGRESS, S.CANCELLED),
    Transition(Stage.ORDER, S.SHIPPED, S.CANCELLED),
    Transition(Stage.ORDER, S.CONFIRMED, S.INVOICED, via_conversion=True),
    Transition(Stage.ORDER, S.IN_PROGRESS, S.INVOICED, via_conversion=True),
    Transition(Stage.ORDER, S.SHIPPED, S.INVOICED, via_conversion=True),
    Transition(Stage.ORDER, S.CONFIRMED, S.RECEIVED, via_conversion=True),
    Transition(Stage.ORDER, S.IN_PROGRESS, S.RECEIVED, via_conversion=True),
    Transition(Stage.ORDER, S.SHIPPED, S.RECEIVED, via_conversion=True),
    # Invoice / receipt
    Transition(Stage.INVOICE, S.ISSUED, S.CANCELLED),
    Transition(Stage.RECEIPT, S.ISSUED, S.CANCELLED),
)

INITIAL_STATUS: dict[Stage, DocumentStatus] = {
    Stage.QUOTATION: S.PENDING,
    Stage.ORDER: S.PENDING,
    Stage.INVOICE: S.ISSUED,
    Stage.RECEIPT: S.ISSUED,
}


def allowed_transitions(
    stage: Stage,
    current: DocumentStatus,
    *,
    include_conversion: bool = False,
) -> tuple[DocumentStatus, ...]:
    """Statuses reachable from ``current`` in one step, in table order."""
    return tuple(
        t.to_status
        for t in TRANSITIONS
        if t.stage == stage
        and t.from_status == current
        and (include_conversion or not t.via_conversion)
    )


def is_terminal(stage: Stage, status: DocumentStatus) -> bool:
    return not allowed_transitions(stage, status, include_conversion=True)


def check_manual_transition(
    document_id: str,
    stage: Stage,
    current: DocumentStatus,
    target: DocumentStatus,
) -> None:
    """
    Validate a status change requested outside a conversion.

    Raises:
        InvalidTransitionError: ``target`` is not a manual successor of
            ``current`` (backward move, skipped step, conversion-only status,
            or any move out of a terminal status).
    """
    allowed = allowed_transitions(stage, current)
    if target not in allowed:
        raise InvalidTransitionError(
            document_id=document_id,
            actual=current.value,
            requested=target.value,
            expected=[s.value for s in allowed],
        )
