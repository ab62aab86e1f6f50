"""
Pipeline Analytics Module Service (``commerce_modules.analytics.service``).

Responsibility
--------------
Read-only analytics over persisted commercial documents: stage and status
counts, conversion rates, cycle times, the funnel, bottleneck findings and
supplier savings opportunities.  Everything is recomputed on each call.

Architecture position
---------------------
**Modules layer**.  Queries go through ``DocumentSelector``; the
arithmetic lives in ``commerce_engines.funnel`` and
``commerce_engines.sourcing``.  Bottleneck thresholds come from
configuration and can be replaced by passing rules explicitly.

Conventions
-----------
* Windows filter on ``created_at`` with inclusive bounds.  Date inputs
  cover whole UTC days.
* Rates are cohort based: of the predecessors created in the window, the
  share that has a successor (created at any time).
* Percentages and day averages are Decimals with two places.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from commerce_config import PipelineConfig, get_active_config
from commerce_config.bridges import build_bottleneck_rules
from commerce_engines.funnel import (
    BottleneckFinding,
    BottleneckRule,
    FunnelStage,
    StageVolume,
    average_days,
    build_funnel,
    evaluate_bottlenecks,
    percentage,
)
from commerce_engines.sourcing import (
    PurchaseRecord,
    SavingsOpportunity,
    find_savings_opportunities,
)
from commerce_kernel.domain.clock import Clock, SystemClock
from commerce_kernel.domain.documents import (
    SIDE_STAGES,
    STAGE_STATUSES,
    DocumentStatus,
    Side,
    Stage,
)
from commerce_kernel.logging_config import get_logger
from commerce_kernel.selectors.document_selector import (
    ConversionLink,
    DocumentSelector,
    DocumentSummary,
)

logger = get_logger("modules.analytics.service")

_ZERO = Decimal("0.00")

OPEN_QUOTATION_STATUSES = frozenset({DocumentStatus.PENDING, DocumentStatus.ACCEPTED})
OPEN_ORDER_STATUSES = frozenset({
    DocumentStatus.PENDING,
    DocumentStatus.CONFIRMED,
    DocumentStatus.IN_PROGRESS,
    DocumentStatus.SHIPPED,
})
IN_TRANSIT_STATUSES = frozenset({DocumentStatus.IN_PROGRESS, DocumentStatus.SHIPPED})


@dataclass(frozen=True)
class ReportingWindow:
    """Inclusive created_at bounds; either may be None (unbounded)."""

    start: datetime | None = None
    end: datetime | None = None

    def __post_init__(self) -> None:
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError(f"Window start {self.start} is after end {self.end}")

    @classmethod
    def from_dates(cls, date_from: date | None, date_to: date | None) -> ReportingWindow:
        """Whole UTC days from ``date_from`` through ``date_to``."""
        start = (
            datetime.combine(date_from, time.min, tzinfo=timezone.utc)
            if date_from is not None else None
        )
        end = (
            datetime.combine(date_to, time.max, tzinfo=timezone.utc)
            if date_to is not None else None
        )
        return cls(start, end)

    def as_dict(self) -> dict[str, str | None]:
        return {
            "start": self.start.isoformat() if self.start else None,
            "end": self.end.isoformat() if self.end else None,
        }


UNBOUNDED = ReportingWindow()


@dataclass(frozen=True)
class PipelineStats:
    """Aggregate pipeline statistics for one tenant, side and window."""

    side: Side
    window: ReportingWindow
    counts_by_stage: dict[str, int]
    counts_by_status: dict[str, dict[str, int]]
    quotation_to_order_rate: Decimal
    order_to_terminal_rate: Decimal
    avg_cycle_days: dict[str, Decimal]
    pipeline_value: Decimal
    open_order_value: Decimal

    def metrics(self) -> dict[str, Decimal | int]:
        """Flat metric names used by bottleneck rules."""
        values: dict[str, Decimal | int] = {
            "quotation_to_order_rate": self.quotation_to_order_rate,
            "order_to_terminal_rate": self.order_to_terminal_rate,
            "pipeline_value": self.pipeline_value,
            "open_order_value": self.open_order_value,
        }
        for name, days in self.avg_cycle_days.items():
            values[f"cycle_days.{name}"] = days
        for stage, count in self.counts_by_stage.items():
            values[f"{stage}s.total"] = count
        for stage, statuses in self.counts_by_status.items():
            for status, count in statuses.items():
                values[f"{stage}s.{status}"] = count
        order_statuses = self.counts_by_status.get(Stage.ORDER.value, {})
        values["orders.in_transit"] = sum(
            order_statuses.get(s.value, 0) for s in IN_TRANSIT_STATUSES
        )
        return values

    def as_dict(self) -> dict:
        return {
            "side": self.side.value,
            "window": self.window.as_dict(),
            "counts_by_stage": dict(self.counts_by_stage),
            "counts_by_status": {k: dict(v) for k, v in self.counts_by_status.items()},
            "quotation_to_order_rate": str(self.quotation_to_order_rate),
            "order_to_terminal_rate": str(self.order_to_terminal_rate),
            "avg_cycle_days": {k: str(v) for k, v in self.avg_cycle_days.items()},
            "pipeline_value": str(self.pipeline_value),
            "open_order_value": str(self.open_order_value),
        }


@dataclass(frozen=True)
class BottleneckReport:
    """Findings with their recommendations and the stats they came from."""

    side: Side
    findings: tuple[BottleneckFinding, ...]
    stats: PipelineStats
    metrics: dict[str, Decimal | int] = field(default_factory=dict)

    @property
    def messages(self) -> list[str]:
        return [f.message for f in self.findings]

    @property
    def recommendations(self) -> list[str]:
        return [f.recommendation for f in self.findings if f.recommendation]


class PipelineAnalyticsEngine:
    """
    Read-only pipeline analytics.

    Contract
    --------
    * Never writes.  Results reflect committed data visible to the session.
    * ``bottleneck_rules`` overrides the configured rules per side.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: PipelineConfig | None = None,
        bottleneck_rules: Mapping[Side, Sequence[BottleneckRule]] | None = None,
    ):
        self._selector = DocumentSelector(session)
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._rules = dict(bottleneck_rules) if bottleneck_rules is not None else None

    # -------------------------------------------------------------------------
    # Stats
    # -------------------------------------------------------------------------

    def stats(
        self,
        tenant_id: UUID,
        window: ReportingWindow | None = None,
        side: Side = Side.SALES,
    ) -> PipelineStats:
        window = window or UNBOUNDED
        summaries = self._selector.summarize(tenant_id, side, window.start, window.end)
        stages = SIDE_STAGES[side]
        terminal = stages[-1]

        by_stage: dict[Stage, list[DocumentSummary]] = {stage: [] for stage in stages}
        for summary in summaries:
            by_stage.setdefault(summary.stage, []).append(summary)

        counts_by_stage = {stage.value: len(by_stage[stage]) for stage in stages}
        counts_by_status = {
            stage.value: _status_counts(stage, by_stage[stage], side)
            for stage in stages
        }

        quotation_links = self._selector.conversion_links(
            tenant_id, side, Stage.QUOTATION, window.start, window.end,
        )
        order_links = self._selector.conversion_links(
            tenant_id, side, Stage.ORDER, window.start, window.end,
        )

        quotation_count = counts_by_stage[Stage.QUOTATION.value]
        order_count = counts_by_stage[Stage.ORDER.value]

        stats = PipelineStats(
            side=side,
            window=window,
            counts_by_stage=counts_by_stage,
            counts_by_status=counts_by_status,
            quotation_to_order_rate=percentage(len(quotation_links), quotation_count),
            order_to_terminal_rate=percentage(len(order_links), order_count),
            avg_cycle_days={
                "quotation_to_order": _average_link_days(quotation_links),
                "order_to_terminal": _average_link_days(order_links),
                "quotation_to_terminal": self._quotation_to_terminal_days(
                    tenant_id, side, window, quotation_links,
                ),
            },
            pipeline_value=_sum_totals(
                s for s in by_stage[Stage.QUOTATION] if s.status in OPEN_QUOTATION_STATUSES
            ),
            open_order_value=_sum_totals(
                s for s in by_stage[Stage.ORDER] if s.status in OPEN_ORDER_STATUSES
            ),
        )

        logger.info("pipeline_stats_computed", extra={
            "tenant_id": str(tenant_id),
            "side": side.value,
            "quotations": quotation_count,
            "orders": order_count,
            f"{terminal.value}s": counts_by_stage[terminal.value],
        })
        return stats

    def _quotation_to_terminal_days(
        self,
        tenant_id: UUID,
        side: Side,
        window: ReportingWindow,
        quotation_links: list[ConversionLink],
    ) -> Decimal:
        if not quotation_links:
            return _ZERO
        # Orders of in-window quotations may be created after the window ends
        chain_links = self._selector.conversion_links(
            tenant_id, side, Stage.ORDER, window.start, None,
        )
        terminal_at = {link.predecessor_id: link.successor_created_at for link in chain_links}
        return average_days(
            (link.predecessor_created_at, terminal_at[link.successor_id])
            for link in quotation_links
            if link.successor_id in terminal_at
        )

    # -------------------------------------------------------------------------
    # Funnel
    # -------------------------------------------------------------------------

    def funnel(
        self,
        tenant_id: UUID,
        window: ReportingWindow | None = None,
        side: Side = Side.SALES,
    ) -> list[FunnelStage]:
        """Ordered stages with counts, values, drop-off and time in the previous stage."""
        window = window or UNBOUNDED
        summaries = self._selector.summarize(tenant_id, side, window.start, window.end)
        stats = self.stats(tenant_id, window, side)
        days_before = {
            Stage.ORDER: stats.avg_cycle_days["quotation_to_order"],
            SIDE_STAGES[side][-1]: stats.avg_cycle_days["order_to_terminal"],
        }

        volumes = []
        for stage in SIDE_STAGES[side]:
            at_stage = [s for s in summaries if s.stage == stage]
            volumes.append(
                StageVolume(
                    stage=stage.value,
                    count=len(at_stage),
                    monetary_total=_sum_totals(at_stage),
                    avg_days_in_previous_stage=days_before.get(stage),
                )
            )
        return build_funnel(volumes)

    # -------------------------------------------------------------------------
    # Bottlenecks
    # -------------------------------------------------------------------------

    def rules_for(self, side: Side) -> list[BottleneckRule]:
        if self._rules is not None:
            return list(self._rules.get(side, ()))
        return build_bottleneck_rules(self._config, side.value)

    def bottleneck_report(
        self,
        tenant_id: UUID,
        side: Side = Side.SALES,
        window: ReportingWindow | None = None,
    ) -> BottleneckReport:
        stats = self.stats(tenant_id, window, side)
        metrics = stats.metrics()
        findings = evaluate_bottlenecks(metrics, self.rules_for(side))

        if findings:
            logger.warning("pipeline_bottlenecks_detected", extra={
                "tenant_id": str(tenant_id),
                "side": side.value,
                "rules": [f.rule for f in findings],
            })
        return BottleneckReport(
            side=side, findings=tuple(findings), stats=stats, metrics=metrics,
        )

    def bottlenecks(
        self,
        tenant_id: UUID,
        side: Side = Side.SALES,
        window: ReportingWindow | None = None,
    ) -> list[str]:
        """Textual findings, in rule order."""
        return self.bottleneck_report(tenant_id, side, window).messages

    # -------------------------------------------------------------------------
    # Sourcing
    # -------------------------------------------------------------------------

    def savings_opportunities(
        self,
        tenant_id: UUID,
        side: Side = Side.PURCHASE,
    ) -> list[SavingsOpportunity]:
        """Supplier price spreads over recently received purchase orders."""
        if side != Side.PURCHASE:
            return []
        sourcing = self._config.sourcing
        since = self._clock.now() - timedelta(days=sourcing.window_days)
        records = [
            PurchaseRecord(
                product_id=line.product_id,
                supplier_id=line.supplier_id,
                unit_price=line.unit_price,
                quantity=line.quantity,
            )
            for line in self._selector.received_purchase_lines(tenant_id, since)
        ]
        return find_savings_opportunities(
            records,
            min_spread=sourcing.min_spread,
            annualization_factor=sourcing.annualization_factor,
        )

    # -------------------------------------------------------------------------
    # Date-based helpers
    # -------------------------------------------------------------------------

    def get_pipeline_stats(
        self,
        tenant_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
        side: Side = Side.SALES,
    ) -> PipelineStats:
        return self.stats(tenant_id, ReportingWindow.from_dates(date_from, date_to), side)

    def get_funnel(
        self,
        tenant_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
        side: Side = Side.SALES,
    ) -> list[FunnelStage]:
        return self.funnel(tenant_id, ReportingWindow.from_dates(date_from, date_to), side)

    def get_bottlenecks(self, tenant_id: UUID, side: Side = Side.SALES) -> list[str]:
        return self.bottlenecks(tenant_id, side)


def _status_counts(stage: Stage, summaries: list[DocumentSummary], side: Side) -> dict[str, int]:
    statuses = set(STAGE_STATUSES[stage])
    if stage == Stage.ORDER:
        # The other side's terminal status never occurs
        statuses.discard(
            DocumentStatus.RECEIVED if side == Side.SALES else DocumentStatus.INVOICED
        )
    counts = {status.value: 0 for status in sorted(statuses, key=lambda s: s.value)}
    for summary in summaries:
        counts[summary.status.value] = counts.get(summary.status.value, 0) + 1
    return counts


def _average_link_days(links: list[ConversionLink]) -> Decimal:
    return average_days(
        (link.predecessor_created_at, link.successor_created_at) for link in links
    )


def _sum_totals(summaries) -> Decimal:
    return sum((s.total for s in summaries), _ZERO)
