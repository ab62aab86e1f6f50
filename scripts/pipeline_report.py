#!/usr/bin/env python3
"""
Print pipeline statistics, funnel and bottlenecks for one tenant as JSON.

Connects to an existing database (tables and documents must already exist)
and runs the read-only analytics engine.

Usage:
    python -m scripts.pipeline_report --database-url sqlite:///pipeline.db --tenant <uuid>
    python -m scripts.pipeline_report --database-url postgresql://... --tenant <uuid> \\
        --side purchase --from 2024-01-01 --to 2024-03-31
"""

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from uuid import UUID

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Commercial pipeline report (JSON)")
    p.add_argument("--database-url", required=True, help="SQLAlchemy database URL")
    p.add_argument("--tenant", required=True, type=UUID, help="Tenant id")
    p.add_argument(
        "--side",
        choices=("sales", "purchase"),
        default="sales",
        help="Pipeline side (default: sales)",
    )
    p.add_argument("--from", dest="date_from", type=date.fromisoformat, help="First day (YYYY-MM-DD)")
    p.add_argument("--to", dest="date_to", type=date.fromisoformat, help="Last day (YYYY-MM-DD)")
    p.add_argument("--config", type=Path, help="Pipeline YAML (default: bundled defaults)")
    p.add_argument("--verbose", action="store_true", help="Emit JSON logs to stderr")
    return p.parse_args(argv)


def build_report(session, tenant_id: UUID, side, date_from, date_to, config=None) -> dict:
    """Stats, funnel, bottlenecks and (purchase side) savings as plain JSON values."""
    from commerce_kernel.domain.documents import Side
    from commerce_modules.analytics import PipelineAnalyticsEngine, ReportingWindow

    engine = PipelineAnalyticsEngine(session, config=config)
    window = ReportingWindow.from_dates(date_from, date_to)

    stats = engine.stats(tenant_id, window, side)
    funnel = engine.funnel(tenant_id, window, side)
    report = engine.bottleneck_report(tenant_id, side, window)

    payload = {
        "tenant_id": str(tenant_id),
        "stats": stats.as_dict(),
        "funnel": [
            {
                "stage": stage.stage,
                "count": stage.count,
                "monetary_total": str(stage.monetary_total),
                "drop_off_percentage": str(stage.drop_off_percentage),
                "avg_days_in_previous_stage": (
                    str(stage.avg_days_in_previous_stage)
                    if stage.avg_days_in_previous_stage is not None else None
                ),
            }
            for stage in funnel
        ],
        "bottlenecks": [
            {
                "rule": f.rule,
                "finding": f.message,
                "recommendation": f.recommendation,
            }
            for f in report.findings
        ],
    }
    if side == Side.PURCHASE:
        payload["savings_opportunities"] = [
            {
                "product_id": op.product_id,
                "current_supplier_id": str(op.current_supplier_id),
                "current_price": str(op.current_price),
                "alternative_supplier_id": str(op.alternative_supplier_id),
                "alternative_price": str(op.alternative_price),
                "annual_saving": str(op.annual_saving),
                "saving_percentage": str(op.saving_percentage),
            }
            for op in engine.savings_opportunities(tenant_id)
        ]
    return payload


def main(argv=None) -> int:
    args = _parse_args(argv)
    if not args.verbose:
        logging.disable(logging.CRITICAL)

    from commerce_config import get_active_config
    from commerce_kernel.db.engine import get_session, init_engine_from_url
    from commerce_kernel.domain.documents import Side

    try:
        init_engine_from_url(args.database_url, echo=False)
    except Exception as exc:
        print(f"ERROR: Could not connect: {exc}", file=sys.stderr)
        return 1

    config = get_active_config(args.config)
    session = get_session()
    try:
        payload = build_report(
            session, args.tenant, Side(args.side), args.date_from, args.date_to, config,
        )
    finally:
        session.close()

    json.dump(payload, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
