"""
DocumentNumberService -- human-facing document numbers.

Responsibility:
    Allocates per-tenant, per-series, per-month document numbers such as
    ``F202401-0007`` from a locked counter row.

Architecture position:
    Kernel > Services.  Flush-only.

Invariants enforced:
    - Strictly increasing within a (tenant, series, month) via a locked
      counter row.  The aggregate max + 1 anti-pattern is NEVER used.
    - Allocation is transactional: a rolled-back conversion returns its
      number.

Failure modes:
    - KeyError if the series has no configured prefix.
"""

from __future__ import annotations

from collections.abc import Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from commerce_kernel.domain.clock import Clock
from commerce_kernel.logging_config import get_logger
from commerce_kernel.models.counter import DocumentCounter

logger = get_logger("services.numbering")

DEFAULT_PREFIXES: dict[str, str] = {
    "sales_quotation": "COT",
    "sales_order": "OV",
    "sales_invoice": "F",
    "purchase_quotation": "CP",
    "purchase_order": "OC",
    "purchase_receipt": "RC",
}


class DocumentNumberService:
    """
    Service for allocating document numbers.

    Contract:
        ``next_number(tenant_id, series)`` returns
        ``{prefix}{YYYY}{MM}-{seq}`` with ``seq`` zero-padded to
        ``sequence_width`` digits; the month comes from the injected clock.

    Guarantees:
        - SELECT ... FOR UPDATE serializes concurrent allocations for the
          same counter.
        - First use of a counter is race-safe: a concurrent insert is
          caught in a savepoint and the existing row is re-read.

    Non-goals:
        - Does NOT call ``session.commit()``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        prefixes: Mapping[str, str] | None = None,
        sequence_width: int = 4,
    ):
        self._session = session
        self._clock = clock
        self._prefixes = dict(prefixes if prefixes is not None else DEFAULT_PREFIXES)
        self._width = sequence_width

    def next_number(self, tenant_id: UUID, series: str) -> str:
        """Allocate the next number of ``series`` for the current month."""
        try:
            prefix = self._prefixes[series]
        except KeyError:
            raise KeyError(f"No document number prefix configured for series {series!r}")

        now = self._clock.now()
        period = f"{now.year:04d}{now.month:02d}"
        value = self._next_value(tenant_id, f"{series}:{period}")
        return f"{prefix}{period}-{value:0{self._width}d}"

    def current_value(self, tenant_id: UUID, counter_name: str) -> int | None:
        """Current counter value without incrementing, or None."""
        counter = self._session.execute(
            select(DocumentCounter).where(
                DocumentCounter.tenant_id == tenant_id,
                DocumentCounter.name == counter_name,
            )
        ).scalar_one_or_none()
        return counter.current_value if counter else None

    def _lock_counter(self, tenant_id: UUID, name: str) -> DocumentCounter | None:
        return self._session.execute(
            select(DocumentCounter)
            .where(
                DocumentCounter.tenant_id == tenant_id,
                DocumentCounter.name == name,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _next_value(self, tenant_id: UUID, name: str) -> int:
        counter = self._lock_counter(tenant_id, name)

        if counter is None:
            savepoint = self._session.begin_nested()
            try:
                counter = DocumentCounter(tenant_id=tenant_id, name=name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug("document_number_allocated", extra={
                    "counter": name,
                    "value": 1,
                })
                return 1
            except IntegrityError:
                logger.debug("document_counter_race_retry", extra={"counter": name})
                savepoint.rollback()
                counter = self._lock_counter(tenant_id, name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug("document_number_allocated", extra={
            "counter": name,
            "value": counter.current_value,
        })
        return counter.current_value
