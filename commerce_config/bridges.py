"""
Bridges from configuration definitions to engine inputs.

The engines know nothing about YAML; these functions translate the frozen
config dataclasses into TaxRatePolicy and BottleneckRule values.
"""

from __future__ import annotations

import decimal

from commerce_config.schema import BottleneckRuleDef, PipelineConfig, TaxPolicyDef
from commerce_engines.funnel import BottleneckRule, Comparison
from commerce_engines.tax import TaxRatePolicy


def build_tax_policy(tax: TaxPolicyDef) -> TaxRatePolicy:
    return TaxRatePolicy(
        rate=tax.rate,
        currency=tax.currency,
        decimal_places=tax.decimal_places,
        rounding=getattr(decimal, tax.rounding),
        name=tax.name,
    )


def build_bottleneck_rule(rule: BottleneckRuleDef) -> BottleneckRule:
    return BottleneckRule(
        name=rule.name,
        metric=rule.metric,
        comparison=Comparison(rule.comparison),
        finding=rule.finding,
        recommendation=rule.recommendation,
        threshold=rule.threshold,
        compare_to=rule.compare_to,
        factor=rule.factor,
    )


def build_bottleneck_rules(config: PipelineConfig, side: str) -> list[BottleneckRule]:
    """Engine rules for one side, in configuration order."""
    return [build_bottleneck_rule(r) for r in config.rules_for(side)]
