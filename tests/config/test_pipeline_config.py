"""Tests for pipeline configuration loading, validation and bridges.

Covers get_active_config() with the bundled defaults and with an override
file, parse-time validation, and the translation of config definitions into
engine inputs (TaxRatePolicy, BottleneckRule).
"""
from __future__ import annotations

import copy
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal

import pytest
import yaml

from commerce_config import DEFAULT_CONFIG_PATH, get_active_config
from commerce_config.bridges import build_bottleneck_rules, build_tax_policy
from commerce_config.loader import (
    compute_checksum,
    load_yaml_file,
    parse_pipeline_config,
)
from commerce_engines.funnel import Comparison


@pytest.fixture
def raw_defaults() -> dict:
    return load_yaml_file(DEFAULT_CONFIG_PATH)


def _write(tmp_path, data) -> object:
    path = tmp_path / "pipeline.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaults:
    """The bundled configuration."""

    def test_tax_and_numbering(self, pipeline_config):
        assert pipeline_config.config_id == "commerce-pipeline-default"
        assert pipeline_config.tax.rate == Decimal("0.18")
        assert pipeline_config.tax.currency == "PEN"
        assert pipeline_config.numbering.prefix_for("sales_invoice") == "F"
        assert pipeline_config.numbering.prefix_for("purchase_receipt") == "RC"

    def test_side_defaults(self, pipeline_config):
        assert pipeline_config.side_defaults("sales").delivery_days == 7
        assert pipeline_config.side_defaults("purchase").delivery_days == 15
        with pytest.raises(KeyError):
            pipeline_config.side_defaults("consignment")

    def test_rules_per_side(self, pipeline_config):
        sales = [r.name for r in pipeline_config.rules_for("sales")]
        purchase = [r.name for r in pipeline_config.rules_for("purchase")]
        assert sales[0] == "low_quotation_conversion"
        assert "pending_quotation_backlog" in sales
        assert "pending_order_backlog" in purchase
        assert len(sales) == 4
        assert len(purchase) == 4

    def test_checksum_is_deterministic(self, pipeline_config, raw_defaults):
        assert pipeline_config.checksum == compute_checksum(raw_defaults)
        assert get_active_config().checksum == pipeline_config.checksum

    def test_load_is_logged(self, captured_logs):
        get_active_config()
        record = next(r for r in captured_logs() if r["message"] == "pipeline_config_loaded")
        assert record["config_id"] == "commerce-pipeline-default"
        assert record["tax_rate"] == "0.18"


class TestOverrideFile:
    def test_override_path(self, tmp_path, raw_defaults):
        data = copy.deepcopy(raw_defaults)
        data["tax"]["rate"] = "0.16"
        data["tax"]["rounding"] = "ROUND_HALF_EVEN"

        config = get_active_config(_write(tmp_path, data))

        assert config.tax.rate == Decimal("0.16")
        assert config.tax.rounding == "ROUND_HALF_EVEN"
        assert config.checksum != compute_checksum(raw_defaults)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestValidation:
    def test_unknown_rounding(self, raw_defaults):
        raw_defaults["tax"]["rounding"] = "ROUND_NEAREST"
        with pytest.raises(ValueError, match="rounding"):
            parse_pipeline_config(raw_defaults)

    def test_non_numeric_rate(self, raw_defaults):
        raw_defaults["tax"]["rate"] = "eighteen"
        with pytest.raises(ValueError, match="tax.rate"):
            parse_pipeline_config(raw_defaults)

    def test_negative_rate(self, raw_defaults):
        raw_defaults["tax"]["rate"] = "-0.01"
        with pytest.raises(ValueError):
            parse_pipeline_config(raw_defaults)

    def test_unknown_comparison(self, raw_defaults):
        raw_defaults["bottlenecks"]["sales"][0]["comparison"] = "eq"
        with pytest.raises(ValueError, match="comparison"):
            parse_pipeline_config(raw_defaults)

    def test_rule_with_threshold_and_compare_to(self, raw_defaults):
        raw_defaults["bottlenecks"]["sales"][0]["compare_to"] = "quotations.accepted"
        with pytest.raises(ValueError, match="exactly one"):
            parse_pipeline_config(raw_defaults)

    def test_non_positive_timeout(self, raw_defaults):
        raw_defaults["inventory_sync"]["timeout_seconds"] = 0
        with pytest.raises(ValueError, match="timeout_seconds"):
            parse_pipeline_config(raw_defaults)

    def test_empty_prefixes(self, raw_defaults):
        raw_defaults["numbering"]["prefixes"] = {}
        with pytest.raises(ValueError, match="prefixes"):
            parse_pipeline_config(raw_defaults)

    def test_missing_required_key(self, raw_defaults):
        del raw_defaults["tax"]
        with pytest.raises(KeyError):
            parse_pipeline_config(raw_defaults)

    def test_optional_sections_default(self, raw_defaults):
        for key in ("sourcing", "inventory_sync", "bottlenecks"):
            del raw_defaults[key]

        config = parse_pipeline_config(raw_defaults)

        assert config.sourcing.window_days == 90
        assert config.inventory_sync.timeout_seconds == 5.0
        assert config.bottleneck_rules == ()


class TestBridges:
    def test_tax_policy(self, pipeline_config):
        policy = build_tax_policy(pipeline_config.tax)
        assert policy.rate == Decimal("0.18")
        assert policy.currency == "PEN"
        assert policy.rounding == ROUND_HALF_UP
        assert policy.name == "IGV"

    def test_tax_policy_rounding_mode(self, raw_defaults):
        raw_defaults["tax"]["rounding"] = "ROUND_HALF_EVEN"
        policy = build_tax_policy(parse_pipeline_config(raw_defaults).tax)
        assert policy.rounding == ROUND_HALF_EVEN

    def test_bottleneck_rules(self, pipeline_config):
        rules = build_bottleneck_rules(pipeline_config, "purchase")
        backlog = next(r for r in rules if r.name == "pending_order_backlog")

        assert backlog.comparison == Comparison.GREATER_THAN
        assert backlog.threshold is None
        assert backlog.compare_to == "orders.in_transit"
        assert backlog.factor == Decimal("3")
        assert rules[0].threshold == Decimal("60")
