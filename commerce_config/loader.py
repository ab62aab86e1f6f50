"""
Configuration Loader (``commerce_config.loader``).

Responsibility
--------------
Loads the pipeline YAML file and parses it into typed
``commerce_config.schema`` dataclass instances.  Services do not call this
directly; the runtime entry point is ``commerce_config.get_active_config()``.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  configuration for identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Non-numeric rate or threshold  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from commerce_config.schema import (
    BottleneckRuleDef,
    InventorySyncDef,
    NumberingDef,
    PipelineConfig,
    SideDefaults,
    SourcingDef,
    TaxPolicyDef,
)

_COMPARISONS = frozenset({"lt", "gt"})
_ROUNDING_MODES = frozenset({
    "ROUND_HALF_UP",
    "ROUND_HALF_EVEN",
    "ROUND_HALF_DOWN",
    "ROUND_UP",
    "ROUND_DOWN",
    "ROUND_CEILING",
    "ROUND_FLOOR",
})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse a Decimal from a YAML scalar (quoted string, int or float)."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field_name}: expected a number, got {value!r}")
    try:
        # str() first so 0.18 stays 0.18 rather than its binary expansion
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field_name}: not a number: {value!r}") from exc


def parse_tax(data: dict[str, Any]) -> TaxPolicyDef:
    """Parse the ``tax`` section."""
    rounding = data.get("rounding", "ROUND_HALF_UP")
    if rounding not in _ROUNDING_MODES:
        raise ValueError(f"tax.rounding: unknown rounding mode {rounding!r}")
    rate = parse_decimal(data["rate"], "tax.rate")
    if rate < 0:
        raise ValueError(f"tax.rate cannot be negative: {rate}")
    return TaxPolicyDef(
        name=data["name"],
        rate=rate,
        currency=data["currency"],
        decimal_places=int(data.get("decimal_places", 2)),
        rounding=rounding,
    )


def parse_numbering(data: dict[str, Any]) -> NumberingDef:
    """Parse the ``numbering`` section."""
    prefixes = data["prefixes"]
    if not isinstance(prefixes, dict) or not prefixes:
        raise ValueError("numbering.prefixes must be a non-empty mapping")
    return NumberingDef(
        prefixes={str(k): str(v) for k, v in prefixes.items()},
        sequence_width=int(data.get("sequence_width", 4)),
    )


def parse_side(side: str, data: dict[str, Any]) -> SideDefaults:
    """Parse one entry of the ``sides`` section."""
    return SideDefaults(
        side=side,
        delivery_days=int(data["delivery_days"]),
        auto_confirm_orders=bool(data.get("auto_confirm_orders", False)),
    )


def parse_bottleneck_rule(side: str, data: dict[str, Any]) -> BottleneckRuleDef:
    """
    Parse one bottleneck rule.

    Raises:
        KeyError: if name, metric, comparison or finding is missing.
        ValueError: if the comparison is unknown or neither/both of
            threshold and compare_to are given.
    """
    comparison = data["comparison"]
    if comparison not in _COMPARISONS:
        raise ValueError(
            f"bottleneck rule {data.get('name')!r}: comparison must be one of "
            f"{sorted(_COMPARISONS)}, got {comparison!r}"
        )
    has_threshold = data.get("threshold") is not None
    has_compare_to = data.get("compare_to") is not None
    if has_threshold == has_compare_to:
        raise ValueError(
            f"bottleneck rule {data.get('name')!r}: exactly one of "
            "threshold and compare_to is required"
        )
    return BottleneckRuleDef(
        side=side,
        name=data["name"],
        metric=data["metric"],
        comparison=comparison,
        finding=data["finding"],
        recommendation=data.get("recommendation", ""),
        threshold=(
            parse_decimal(data["threshold"], f"{data['name']}.threshold")
            if has_threshold else None
        ),
        compare_to=data.get("compare_to"),
        factor=parse_decimal(data.get("factor", 1), f"{data['name']}.factor"),
    )


def parse_sourcing(data: dict[str, Any]) -> SourcingDef:
    """Parse the ``sourcing`` section (all keys optional)."""
    return SourcingDef(
        window_days=int(data.get("window_days", 90)),
        min_spread=parse_decimal(data.get("min_spread", "0.10"), "sourcing.min_spread"),
        annualization_factor=int(data.get("annualization_factor", 4)),
    )


def parse_inventory_sync(data: dict[str, Any]) -> InventorySyncDef:
    """Parse the ``inventory_sync`` section (all keys optional)."""
    timeout = float(data.get("timeout_seconds", 5.0))
    if timeout <= 0:
        raise ValueError(f"inventory_sync.timeout_seconds must be positive: {timeout}")
    return InventorySyncDef(
        enabled=bool(data.get("enabled", True)),
        timeout_seconds=timeout,
    )


def parse_pipeline_config(data: dict[str, Any]) -> PipelineConfig:
    """
    Parse a complete configuration dict.

    Postconditions:
        - Returns a ``PipelineConfig`` whose ``checksum`` is the SHA-256 of
          the input dict.
    """
    sides = {
        side: parse_side(side, side_data)
        for side, side_data in data["sides"].items()
    }
    rules = tuple(
        parse_bottleneck_rule(side, rule)
        for side, side_rules in (data.get("bottlenecks") or {}).items()
        for rule in side_rules
    )
    return PipelineConfig(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        tax=parse_tax(data["tax"]),
        numbering=parse_numbering(data["numbering"]),
        sides=sides,
        bottleneck_rules=rules,
        sourcing=parse_sourcing(data.get("sourcing") or {}),
        inventory_sync=parse_inventory_sync(data.get("inventory_sync") or {}),
        checksum=compute_checksum(data),
    )


def load_pipeline_config(path: Path) -> PipelineConfig:
    """Load and parse a pipeline configuration YAML file."""
    return parse_pipeline_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization (sorted keys)."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
