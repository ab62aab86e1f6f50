"""
Tests for Funnel Engine.

Covers:
- Percentages and drop-off with zero denominators
- Average elapsed days
- Funnel construction
- Bottleneck rules (threshold and metric comparison)
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from commerce_engines.funnel import (
    BottleneckRule,
    Comparison,
    StageVolume,
    average_days,
    build_funnel,
    drop_off_percentage,
    elapsed_days,
    evaluate_bottlenecks,
    percentage,
)

T0 = datetime(2024, 1, 1, tzinfo=UTC)


class TestPercentages:
    def test_percentage_rounds_half_up(self):
        assert percentage(1, 3) == Decimal("33.33")
        assert percentage(2, 3) == Decimal("66.67")
        assert percentage(1, 8) == Decimal("12.50")

    def test_zero_denominator_is_zero(self):
        assert percentage(5, 0) == Decimal("0.00")
        assert drop_off_percentage(0, 0) == Decimal("0.00")

    def test_drop_off(self):
        assert drop_off_percentage(10, 4) == Decimal("60.00")
        assert drop_off_percentage(4, 3) == Decimal("25.00")
        assert drop_off_percentage(4, 4) == Decimal("0.00")


class TestAverageDays:
    def test_elapsed_days_is_exact(self):
        assert elapsed_days(T0, T0 + timedelta(hours=36)) == Decimal("1.5")

    def test_average_over_intervals(self):
        intervals = [
            (T0, T0 + timedelta(days=2)),
            (T0, T0 + timedelta(days=5)),
        ]
        assert average_days(intervals) == Decimal("3.50")

    def test_average_rounds_to_cents(self):
        intervals = [(T0, T0 + timedelta(hours=8))]
        assert average_days(intervals) == Decimal("0.33")

    def test_empty_is_zero(self):
        assert average_days([]) == Decimal("0.00")


class TestBuildFunnel:
    def test_reference_funnel(self):
        stages = build_funnel([
            StageVolume("quotation", 10, Decimal("1000.00")),
            StageVolume("order", 4, Decimal("400.00"), Decimal("2.50")),
            StageVolume("invoice", 3, Decimal("300.00"), Decimal("4.00")),
        ])

        assert [s.stage for s in stages] == ["quotation", "order", "invoice"]
        assert [s.drop_off_percentage for s in stages] == [
            Decimal("0.00"), Decimal("60.00"), Decimal("25.00"),
        ]
        assert stages[0].avg_days_in_previous_stage is None
        assert stages[1].avg_days_in_previous_stage == Decimal("2.50")
        assert stages[2].monetary_total == Decimal("300.00")

    def test_empty_previous_stage(self):
        stages = build_funnel([
            StageVolume("quotation", 0, Decimal("0")),
            StageVolume("order", 0, Decimal("0")),
        ])
        assert stages[1].drop_off_percentage == Decimal("0.00")

    def test_no_stages(self):
        assert build_funnel([]) == []


class TestBottleneckRules:
    def test_threshold_rule_fires(self):
        rule = BottleneckRule(
            name="low_conversion",
            metric="quotation_to_order_rate",
            comparison=Comparison.LESS_THAN,
            threshold=Decimal("30"),
            finding="Conversion rate is {value}%",
            recommendation="Follow up within {threshold} days",
        )

        findings = evaluate_bottlenecks({"quotation_to_order_rate": Decimal("20.00")}, [rule])

        assert len(findings) == 1
        assert findings[0].rule == "low_conversion"
        assert findings[0].message == "Conversion rate is 20.00%"
        assert findings[0].recommendation == "Follow up within 30 days"

    def test_threshold_rule_quiet(self):
        rule = BottleneckRule(
            name="low_conversion",
            metric="rate",
            comparison=Comparison.LESS_THAN,
            threshold=Decimal("30"),
            finding="low",
        )
        assert evaluate_bottlenecks({"rate": Decimal("30")}, [rule]) == []

    def test_compare_to_other_metric(self):
        rule = BottleneckRule(
            name="stuck_orders",
            metric="orders.in_transit",
            comparison=Comparison.GREATER_THAN,
            compare_to="orders.total",
            factor=Decimal("0.5"),
            finding="{value} orders in transit (limit {threshold})",
        )

        fired = evaluate_bottlenecks({"orders.in_transit": 6, "orders.total": 10}, [rule])
        quiet = evaluate_bottlenecks({"orders.in_transit": 5, "orders.total": 10}, [rule])

        assert fired[0].value == Decimal("6")
        assert fired[0].threshold == Decimal("5.0")
        assert quiet == []

    def test_rules_with_missing_metrics_are_skipped(self):
        rules = [
            BottleneckRule("a", "missing", Comparison.GREATER_THAN, "x", threshold=Decimal("0")),
            BottleneckRule("b", "present", Comparison.GREATER_THAN, "x", compare_to="missing"),
            BottleneckRule("c", "present", Comparison.GREATER_THAN, "fired", threshold=Decimal("0")),
        ]

        findings = evaluate_bottlenecks({"present": 1}, rules)
        assert [f.rule for f in findings] == ["c"]

    def test_findings_keep_rule_order(self):
        rules = [
            BottleneckRule("second", "m", Comparison.GREATER_THAN, "2", threshold=Decimal("0")),
            BottleneckRule("first", "m", Comparison.GREATER_THAN, "1", threshold=Decimal("0")),
        ]
        assert [f.rule for f in evaluate_bottlenecks({"m": 1}, rules)] == ["second", "first"]

    @pytest.mark.parametrize("kwargs", [
        {},
        {"threshold": Decimal("1"), "compare_to": "other"},
    ])
    def test_rule_needs_exactly_one_reference(self, kwargs):
        with pytest.raises(ValueError, match="exactly one of"):
            BottleneckRule("bad", "m", Comparison.LESS_THAN, "msg", **kwargs)
