"""
Module: commerce_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines used by the
    kernel services and the ERP modules.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import commerce_kernel domain types, db/types helpers,
    exceptions and logging.  MUST NOT import commerce_modules.

Invariants enforced:
    - Purity: engines never read the clock; timestamps are passed in.
    - Decimal-only arithmetic: floats are rejected for money.
    - Determinism: identical inputs always produce identical outputs.
"""

from commerce_engines.funnel import (
    BottleneckFinding,
    BottleneckRule,
    Comparison,
    FunnelStage,
    StageVolume,
    average_days,
    build_funnel,
    drop_off_percentage,
    evaluate_bottlenecks,
    percentage,
)
from commerce_engines.sourcing import (
    PurchaseRecord,
    SavingsOpportunity,
    find_savings_opportunities,
)
from commerce_engines.tax import (
    LineComputation,
    TaxCalculator,
    TaxComputation,
    TaxRatePolicy,
)

__all__ = [
    # Tax
    "TaxCalculator",
    "TaxRatePolicy",
    "TaxComputation",
    "LineComputation",
    # Funnel
    "FunnelStage",
    "StageVolume",
    "build_funnel",
    "percentage",
    "drop_off_percentage",
    "average_days",
    "BottleneckRule",
    "BottleneckFinding",
    "Comparison",
    "evaluate_bottlenecks",
    # Sourcing
    "PurchaseRecord",
    "SavingsOpportunity",
    "find_savings_opportunities",
]
