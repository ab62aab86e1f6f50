"""
Funnel Engine - Conversion rates, funnel drop-off, cycle time and bottleneck rules.

Pure functions over counts and timestamps.  The analytics module queries
the documents and hands plain values to this engine; nothing here touches
the database or the clock.

Usage:
    from commerce_engines.funnel import build_funnel, StageVolume

    stages = build_funnel([
        StageVolume("quotation", 10, Decimal("1000.00")),
        StageVolume("order", 4, Decimal("400.00")),
        StageVolume("invoice", 3, Decimal("300.00")),
    ])
    print([s.drop_off_percentage for s in stages])  # [0.00, 60.00, 25.00]

Conventions:
    - Percentages are Decimal with two decimal places, rounded half-up.
    - A ratio with a zero denominator is 0, never an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Iterable, Mapping, Sequence

from commerce_kernel.logging_config import get_logger

logger = get_logger("engines.funnel")

HUNDRED = Decimal("100")
_CENT = Decimal("0.01")
_MICROSECONDS_PER_DAY = Decimal(86_400_000_000)


def percentage(part: int | Decimal, whole: int | Decimal) -> Decimal:
    """part / whole * 100 at two decimals; 0 when whole is 0."""
    if not whole:
        return Decimal("0.00")
    value = Decimal(part) * HUNDRED / Decimal(whole)
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def drop_off_percentage(previous: int, current: int) -> Decimal:
    """Share of the previous stage that did not reach the current one."""
    return percentage(previous - current, previous)


def elapsed_days(start: datetime, end: datetime) -> Decimal:
    """Exact elapsed days between two timestamps (unrounded)."""
    return Decimal((end - start) // timedelta(microseconds=1)) / _MICROSECONDS_PER_DAY


def average_days(intervals: Iterable[tuple[datetime, datetime]]) -> Decimal:
    """Mean elapsed days over (start, end) pairs, two decimals; 0 when empty."""
    spans = [elapsed_days(start, end) for start, end in intervals]
    if not spans:
        return Decimal("0.00")
    return (sum(spans, Decimal("0")) / len(spans)).quantize(
        _CENT, rounding=ROUND_HALF_UP,
    )


# =============================================================================
# Funnel
# =============================================================================


@dataclass(frozen=True)
class StageVolume:
    """Input to build_funnel: how many documents reached a stage."""

    stage: str
    count: int
    monetary_total: Decimal
    avg_days_in_previous_stage: Decimal | None = None


@dataclass(frozen=True)
class FunnelStage:
    """One ordered step of the pipeline funnel."""

    stage: str
    count: int
    monetary_total: Decimal
    drop_off_percentage: Decimal
    avg_days_in_previous_stage: Decimal | None


def build_funnel(volumes: Sequence[StageVolume]) -> list[FunnelStage]:
    """
    Turn ordered stage volumes into funnel stages.

    drop-off at stage N = (count[N-1] - count[N]) / count[N-1] * 100, and 0
    for the first stage or when count[N-1] is 0.
    """
    stages: list[FunnelStage] = []
    previous: int | None = None
    for volume in volumes:
        drop = (
            Decimal("0.00") if previous is None
            else drop_off_percentage(previous, volume.count)
        )
        stages.append(
            FunnelStage(
                stage=volume.stage,
                count=volume.count,
                monetary_total=volume.monetary_total,
                drop_off_percentage=drop,
                avg_days_in_previous_stage=volume.avg_days_in_previous_stage,
            )
        )
        previous = volume.count
    return stages


# =============================================================================
# Bottleneck rules
# =============================================================================


class Comparison(str, Enum):
    """How a rule compares its metric."""

    LESS_THAN = "lt"
    GREATER_THAN = "gt"


@dataclass(frozen=True)
class BottleneckRule:
    """
    Threshold rule over a named metric.

    Contract:
        Either ``threshold`` is set (metric vs constant) or ``compare_to`` is
        set (metric vs ``factor`` x another metric).  ``finding`` and
        ``recommendation`` are format strings receiving ``value`` and
        ``threshold``.
    """

    name: str
    metric: str
    comparison: Comparison
    finding: str
    recommendation: str = ""
    threshold: Decimal | None = None
    compare_to: str | None = None
    factor: Decimal = Decimal("1")

    def __post_init__(self) -> None:
        if (self.threshold is None) == (self.compare_to is None):
            raise ValueError(
                f"Bottleneck rule {self.name!r} needs exactly one of "
                "threshold or compare_to"
            )


@dataclass(frozen=True)
class BottleneckFinding:
    """A rule that fired."""

    rule: str
    metric: str
    value: Decimal
    threshold: Decimal
    message: str
    recommendation: str


def evaluate_bottlenecks(
    metrics: Mapping[str, Decimal | int],
    rules: Sequence[BottleneckRule],
) -> list[BottleneckFinding]:
    """
    Evaluate rules in order against a metrics mapping.

    Rules naming a metric that is absent are skipped (and logged) so a rule
    set written for one side can be shared with the other.
    """
    findings: list[BottleneckFinding] = []
    for rule in rules:
        if rule.metric not in metrics or (
            rule.compare_to is not None and rule.compare_to not in metrics
        ):
            logger.debug("bottleneck_rule_skipped", extra={
                "rule": rule.name,
                "metric": rule.metric,
            })
            continue

        value = Decimal(metrics[rule.metric])
        if rule.compare_to is not None:
            threshold = Decimal(metrics[rule.compare_to]) * rule.factor
        else:
            threshold = rule.threshold

        if rule.comparison == Comparison.LESS_THAN:
            fired = value < threshold
        else:
            fired = value > threshold

        if fired:
            findings.append(
                BottleneckFinding(
                    rule=rule.name,
                    metric=rule.metric,
                    value=value,
                    threshold=threshold,
                    message=rule.finding.format(value=value, threshold=threshold),
                    recommendation=rule.recommendation.format(
                        value=value, threshold=threshold,
                    ),
                )
            )
    return findings
