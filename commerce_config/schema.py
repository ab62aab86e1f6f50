"""
PipelineConfig schema.

Frozen dataclasses for the pipeline configuration.  YAML files are parsed
into these types by the loader; bridges turn them into engine inputs
(TaxRatePolicy, BottleneckRule).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Tax
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaxPolicyDef:
    """Regional tax rate and currency."""

    name: str
    rate: Decimal  # fraction, 0.18 for 18%
    currency: str
    decimal_places: int = 2
    rounding: str = "ROUND_HALF_UP"


# ---------------------------------------------------------------------------
# Numbering
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NumberingDef:
    """Document number prefixes per series (e.g. ``sales_invoice`` -> ``F``)."""

    prefixes: dict[str, str]
    sequence_width: int = 4

    def prefix_for(self, series: str) -> str:
        try:
            return self.prefixes[series]
        except KeyError:
            raise KeyError(f"No document number prefix configured for series {series!r}")


# ---------------------------------------------------------------------------
# Per-side defaults
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SideDefaults:
    """Defaults applied to conversions on one side."""

    side: str
    delivery_days: int
    auto_confirm_orders: bool = False


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BottleneckRuleDef:
    """Declarative bottleneck threshold (see commerce_engines.funnel)."""

    side: str
    name: str
    metric: str
    comparison: str  # "lt" | "gt"
    finding: str
    recommendation: str = ""
    threshold: Decimal | None = None
    compare_to: str | None = None
    factor: Decimal = Decimal("1")


@dataclass(frozen=True)
class SourcingDef:
    """Supplier price-spread analysis parameters."""

    window_days: int = 90
    min_spread: Decimal = Decimal("0.10")
    annualization_factor: int = 4


# ---------------------------------------------------------------------------
# Integration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InventorySyncDef:
    """Post-commit inventory notification settings."""

    enabled: bool = True
    timeout_seconds: float = 5.0


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PipelineConfig:
    """Root configuration object returned by ``get_active_config()``."""

    config_id: str
    version: int
    tax: TaxPolicyDef
    numbering: NumberingDef
    sides: dict[str, SideDefaults]
    bottleneck_rules: tuple[BottleneckRuleDef, ...] = ()
    sourcing: SourcingDef = field(default_factory=SourcingDef)
    inventory_sync: InventorySyncDef = field(default_factory=InventorySyncDef)
    checksum: str = ""

    def side_defaults(self, side: str) -> SideDefaults:
        try:
            return self.sides[side]
        except KeyError:
            raise KeyError(f"No defaults configured for side {side!r}")

    def rules_for(self, side: str) -> tuple[BottleneckRuleDef, ...]:
        return tuple(r for r in self.bottleneck_rules if r.side == side)
