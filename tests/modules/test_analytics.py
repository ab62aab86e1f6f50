"""
Tests for PipelineAnalyticsEngine.

Scenario (sales, one tenant, clock starts 2024-01-15 12:00 UTC):
    day 0: four quotations; three accepted, one left pending
    day 2: two accepted quotations converted to confirmed orders
    day 5: the first order invoiced

Verifies counts, cohort conversion rates, cycle times, open values, the
funnel, configured and injected bottleneck rules, and supplier savings.
"""

import json
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from commerce_engines.funnel import BottleneckRule, Comparison
from commerce_kernel.domain.documents import DocumentStatus, LineItem, Side
from commerce_kernel.services.conversion_orchestrator import OrderOptions, PipelineOptions
from commerce_modules.analytics import PipelineAnalyticsEngine, ReportingWindow
from scripts.pipeline_report import build_report
from tests.modules.conftest import TEST_SUPPLIER_A_ID, TEST_SUPPLIER_B_ID


@pytest.fixture
def sales_scenario(make_quotation, orchestrator, deterministic_clock, tenant_id, test_actor_id):
    q1, q2, q3 = (make_quotation() for _ in range(3))
    make_quotation(status=None)

    deterministic_clock.advance_days(2)
    confirmed = OrderOptions(auto_confirm=True)
    order1 = orchestrator.convert_quotation_to_order(tenant_id, q1.id, test_actor_id, confirmed)
    orchestrator.convert_quotation_to_order(tenant_id, q2.id, test_actor_id, confirmed)

    deterministic_clock.advance_days(3)
    orchestrator.convert_order_to_invoice(tenant_id, order1.document_id, test_actor_id)
    return q3


class TestPipelineStats:
    def test_counts(self, analytics, sales_scenario, tenant_id):
        stats = analytics.stats(tenant_id)

        assert stats.counts_by_stage == {"quotation": 4, "order": 2, "invoice": 1}
        assert stats.counts_by_status["quotation"] == {
            "accepted": 1, "converted": 2, "pending": 1, "rejected": 0,
        }
        assert stats.counts_by_status["order"]["invoiced"] == 1
        assert stats.counts_by_status["order"]["confirmed"] == 1
        assert "received" not in stats.counts_by_status["order"]

    def test_rates_and_cycle_days(self, analytics, sales_scenario, tenant_id):
        stats = analytics.stats(tenant_id)

        assert stats.quotation_to_order_rate == Decimal("50.00")
        assert stats.order_to_terminal_rate == Decimal("50.00")
        assert stats.avg_cycle_days == {
            "quotation_to_order": Decimal("2.00"),
            "order_to_terminal": Decimal("3.00"),
            "quotation_to_terminal": Decimal("5.00"),
        }

    def test_open_values(self, analytics, sales_scenario, tenant_id):
        stats = analytics.stats(tenant_id)

        assert stats.pipeline_value == Decimal("2784.80")
        assert stats.open_order_value == Decimal("1392.40")

    def test_metrics_are_flat(self, analytics, sales_scenario, tenant_id):
        metrics = analytics.stats(tenant_id).metrics()

        assert metrics["quotations.total"] == 4
        assert metrics["quotations.pending"] == 1
        assert metrics["orders.in_transit"] == 0
        assert metrics["cycle_days.quotation_to_terminal"] == Decimal("5.00")

    def test_empty_tenant(self, analytics, tenant_id):
        stats = analytics.stats(tenant_id)

        assert stats.counts_by_stage == {"quotation": 0, "order": 0, "invoice": 0}
        assert stats.quotation_to_order_rate == Decimal("0.00")
        assert stats.avg_cycle_days["quotation_to_terminal"] == Decimal("0.00")
        assert stats.pipeline_value == Decimal("0.00")

    def test_date_window_is_inclusive_whole_days(self, analytics, sales_scenario, tenant_id):
        later = analytics.get_pipeline_stats(tenant_id, date(2024, 1, 16), date(2024, 1, 20))
        same_day = analytics.get_pipeline_stats(tenant_id, date(2024, 1, 15), date(2024, 1, 15))

        assert later.counts_by_stage == {"quotation": 0, "order": 2, "invoice": 1}
        assert later.quotation_to_order_rate == Decimal("0.00")
        assert later.order_to_terminal_rate == Decimal("50.00")
        assert same_day.counts_by_stage == {"quotation": 4, "order": 0, "invoice": 0}
        # Cohort rate: the orders were created after the window
        assert same_day.quotation_to_order_rate == Decimal("50.00")
        assert same_day.avg_cycle_days["quotation_to_terminal"] == Decimal("5.00")

    def test_other_tenant_sees_nothing(self, analytics, sales_scenario):
        assert analytics.stats(uuid4()).counts_by_stage["quotation"] == 0

    def test_window_validation(self):
        with pytest.raises(ValueError):
            ReportingWindow.from_dates(date(2024, 2, 1), date(2024, 1, 1))


class TestFunnel:
    def test_sales_funnel(self, analytics, sales_scenario, tenant_id):
        funnel = analytics.get_funnel(tenant_id)

        assert [(s.stage, s.count) for s in funnel] == [
            ("quotation", 4), ("order", 2), ("invoice", 1),
        ]
        assert [s.drop_off_percentage for s in funnel] == [
            Decimal("0.00"), Decimal("50.00"), Decimal("50.00"),
        ]
        assert funnel[0].monetary_total == Decimal("5569.60")
        assert funnel[0].avg_days_in_previous_stage is None
        assert funnel[1].avg_days_in_previous_stage == Decimal("2.00")
        assert funnel[2].avg_days_in_previous_stage == Decimal("3.00")

    def test_purchase_funnel_ends_with_receipt(self, analytics, tenant_id):
        funnel = analytics.funnel(tenant_id, side=Side.PURCHASE)
        assert [s.stage for s in funnel] == ["quotation", "order", "receipt"]


class TestBottlenecks:
    def test_configured_sales_rules(self, analytics, sales_scenario, tenant_id, captured_logs):
        messages = analytics.get_bottlenecks(tenant_id)

        assert messages == ["Low order to invoice conversion rate (50.00% < 70%)"]
        record = next(
            r for r in captured_logs() if r["message"] == "pipeline_bottlenecks_detected"
        )
        assert record["rules"] == ["low_order_invoicing"]

    def test_report_carries_recommendations(self, analytics, sales_scenario, tenant_id):
        report = analytics.bottleneck_report(tenant_id)

        assert report.recommendations == ["Streamline billing and delivery flow"]
        assert report.metrics["order_to_terminal_rate"] == Decimal("50.00")

    def test_empty_purchase_pipeline(self, analytics, tenant_id):
        assert analytics.get_bottlenecks(tenant_id, Side.PURCHASE) == [
            "Low supplier quotation conversion rate (0.00% < 60%)",
            "Low purchase order receipt rate (0.00% < 85%)",
        ]

    def test_injected_rules(
        self, session, deterministic_clock, pipeline_config, sales_scenario, tenant_id,
    ):
        engine = PipelineAnalyticsEngine(
            session,
            clock=deterministic_clock,
            config=pipeline_config,
            bottleneck_rules={
                Side.SALES: [
                    BottleneckRule(
                        name="too_many_quotations",
                        metric="quotations.total",
                        comparison=Comparison.GREATER_THAN,
                        threshold=Decimal("3"),
                        finding="{value} quotations open",
                    ),
                ],
            },
        )

        assert engine.bottlenecks(tenant_id) == ["4 quotations open"]
        assert engine.bottlenecks(tenant_id, Side.PURCHASE) == []


class TestSavingsOpportunities:
    def _receive(self, lifecycle_service, orchestrator, tenant_id, actor_id, supplier_id, price, qty):
        quotation = lifecycle_service.create_quotation(
            tenant_id, Side.PURCHASE, supplier_id,
            [LineItem("P-1", qty, Decimal(price))], actor_id,
        )
        lifecycle_service.transition(tenant_id, quotation.id, DocumentStatus.ACCEPTED, actor_id)
        orchestrator.run_full_pipeline(
            tenant_id, quotation.id, actor_id, PipelineOptions(auto_issue_terminal=True),
        )

    def test_price_spread(self, analytics, lifecycle_service, orchestrator, tenant_id, test_actor_id):
        self._receive(
            lifecycle_service, orchestrator, tenant_id, test_actor_id,
            TEST_SUPPLIER_A_ID, "12.00", 10,
        )
        self._receive(
            lifecycle_service, orchestrator, tenant_id, test_actor_id,
            TEST_SUPPLIER_B_ID, "10.00", 5,
        )

        [op] = analytics.savings_opportunities(tenant_id)

        assert op.product_id == "P-1"
        assert op.current_supplier_id == TEST_SUPPLIER_A_ID
        assert op.alternative_supplier_id == TEST_SUPPLIER_B_ID
        assert op.annual_saving == Decimal("120.00")

    def test_outside_window_is_ignored(
        self, analytics, lifecycle_service, orchestrator, deterministic_clock,
        tenant_id, test_actor_id,
    ):
        self._receive(
            lifecycle_service, orchestrator, tenant_id, test_actor_id,
            TEST_SUPPLIER_A_ID, "12.00", 10,
        )
        self._receive(
            lifecycle_service, orchestrator, tenant_id, test_actor_id,
            TEST_SUPPLIER_B_ID, "10.00", 5,
        )
        deterministic_clock.advance_days(91)

        assert analytics.savings_opportunities(tenant_id) == []

    def test_sales_side_has_none(self, analytics, tenant_id):
        assert analytics.savings_opportunities(tenant_id, Side.SALES) == []


class TestPipelineReport:
    def test_sales_report_is_json(self, session, pipeline_config, sales_scenario, tenant_id):
        payload = build_report(session, tenant_id, Side.SALES, None, None, pipeline_config)

        json.dumps(payload)
        assert payload["tenant_id"] == str(tenant_id)
        assert payload["stats"]["counts_by_stage"]["quotation"] == 4
        assert [row["stage"] for row in payload["funnel"]] == ["quotation", "order", "invoice"]
        assert payload["bottlenecks"][0]["rule"] == "low_order_invoicing"
        assert "savings_opportunities" not in payload

    def test_purchase_report_includes_savings(self, session, pipeline_config, tenant_id):
        payload = build_report(
            session, tenant_id, Side.PURCHASE, date(2024, 1, 1), date(2024, 1, 31),
            pipeline_config,
        )

        assert payload["stats"]["window"]["start"] == "2024-01-01T00:00:00+00:00"
        assert payload["savings_opportunities"] == []
