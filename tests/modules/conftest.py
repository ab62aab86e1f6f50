"""
Shared fixtures for module tests.

Provides the configured pipeline facades and the analytics engine on the
rollback session, plus deterministic supplier ids for sourcing scenarios.
"""

from uuid import UUID

import pytest

from commerce_modules.analytics import PipelineAnalyticsEngine
from commerce_modules.purchasing import PurchasingPipelineService
from commerce_modules.sales import SalesPipelineService

TEST_SUPPLIER_A_ID = UUID("00000000-0000-4000-a000-000000000001")
TEST_SUPPLIER_B_ID = UUID("00000000-0000-4000-a000-000000000002")


class RecordingInventory:
    """Inventory collaborator that remembers every receipt signal."""

    def __init__(self):
        self.receipts = []

    def notify_receipt(self, receipt_id, line_items):
        self.receipts.append((receipt_id, tuple(line_items)))


@pytest.fixture
def inventory():
    return RecordingInventory()


@pytest.fixture
def sales_service(session, deterministic_clock, pipeline_config):
    return SalesPipelineService(session, clock=deterministic_clock, config=pipeline_config)


@pytest.fixture
def purchasing_service(session, deterministic_clock, pipeline_config, inventory):
    return PurchasingPipelineService(
        session,
        clock=deterministic_clock,
        config=pipeline_config,
        inventory_sync=inventory,
    )


@pytest.fixture
def analytics(session, deterministic_clock, pipeline_config):
    return PipelineAnalyticsEngine(session, clock=deterministic_clock, config=pipeline_config)
