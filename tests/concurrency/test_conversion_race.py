"""
Concurrent conversion of the same source document.

Every worker gets its own session (and so its own connection) and starts
the conversion at the same moment.  Exactly one may create the successor;
all others must see AlreadyConvertedError, never a raw IntegrityError and
never a second order.

On SQLite writers are serialized by BEGIN IMMEDIATE; on PostgreSQL
(DATABASE_URL) by SELECT ... FOR UPDATE with the unique predecessor
constraint as the backstop.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from commerce_kernel.domain.clock import DeterministicClock
from commerce_kernel.domain.documents import DocumentStatus, Side
from commerce_kernel.exceptions import AlreadyConvertedError
from commerce_kernel.models.document import CommercialDocument
from commerce_kernel.services.conversion_orchestrator import ConversionOrchestrator
from commerce_kernel.services.lifecycle_service import DocumentLifecycleService
from commerce_kernel.services.numbering_service import DocumentNumberService
from tests.conftest import STANDARD_LINES, TEST_ACTOR_ID

pytestmark = pytest.mark.slow_locks

WORKERS = 6


def _accepted_quotation(session_factory, tax_policy, tenant_id):
    session = session_factory()
    service = DocumentLifecycleService(session, DeterministicClock(), tax_policy)
    quotation = service.create_quotation(
        tenant_id, Side.SALES, uuid4(), STANDARD_LINES, TEST_ACTOR_ID,
    )
    service.transition(tenant_id, quotation.id, DocumentStatus.ACCEPTED, TEST_ACTOR_ID)
    session.commit()
    return quotation.id


class TestConcurrentConversion:
    def test_exactly_one_conversion_wins(self, committing_session_factory, tax_policy):
        tenant_id = uuid4()
        quotation_id = _accepted_quotation(committing_session_factory, tax_policy, tenant_id)
        barrier = threading.Barrier(WORKERS)

        def worker(_):
            session = committing_session_factory()
            orchestrator = ConversionOrchestrator(
                session, tax_policy, clock=DeterministicClock(),
            )
            barrier.wait()
            try:
                conversion = orchestrator.convert_quotation_to_order(
                    tenant_id, quotation_id, TEST_ACTOR_ID,
                )
                return ("converted", conversion.document_id)
            except AlreadyConvertedError as exc:
                return ("already_converted", exc.successor_id)
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            outcomes = list(pool.map(worker, range(WORKERS)))

        winners = [ref for kind, ref in outcomes if kind == "converted"]
        losers = [ref for kind, ref in outcomes if kind == "already_converted"]
        assert len(winners) == 1
        assert len(losers) == WORKERS - 1
        assert all(ref == str(winners[0]) for ref in losers)

        check = committing_session_factory()
        orders = check.execute(
            select(func.count()).select_from(CommercialDocument).where(
                CommercialDocument.predecessor_id == quotation_id,
            )
        ).scalar_one()
        status = check.execute(
            select(CommercialDocument.status).where(CommercialDocument.id == quotation_id)
        ).scalar_one()
        assert orders == 1
        assert status == DocumentStatus.CONVERTED.value

    def test_concurrent_numbers_are_unique(self, committing_session_factory):
        tenant_id = uuid4()
        barrier = threading.Barrier(WORKERS)

        def worker(_):
            session = committing_session_factory()
            numbering = DocumentNumberService(session, DeterministicClock())
            barrier.wait()
            try:
                number = numbering.next_number(tenant_id, "sales_order")
                session.commit()
                return number
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            numbers = list(pool.map(worker, range(WORKERS)))

        assert sorted(numbers) == [f"OV202401-{n:04d}" for n in range(1, WORKERS + 1)]
