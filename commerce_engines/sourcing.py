"""
Sourcing Engine - Supplier price-spread savings analysis.

Pure computation over purchase history.  For each product bought from more
than one supplier, compares the highest and lowest unit price paid; when
the spread exceeds the configured share of the highest price, the product
is reported as a savings opportunity.

Usage:
    from commerce_engines.sourcing import PurchaseRecord, find_savings_opportunities

    history = [
        PurchaseRecord("P-1", supplier_a, Decimal("12.00"), 10),
        PurchaseRecord("P-1", supplier_b, Decimal("10.00"), 5),
    ]
    for op in find_savings_opportunities(history):
        print(op.product_id, op.annual_saving)  # P-1 120.00
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Hashable, Iterable

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class PurchaseRecord:
    """One received purchase line."""

    product_id: str
    supplier_id: Hashable
    unit_price: Decimal
    quantity: int


@dataclass(frozen=True)
class SavingsOpportunity:
    """Cheaper supplier found for a product."""

    product_id: str
    current_supplier_id: Hashable
    current_price: Decimal
    alternative_supplier_id: Hashable
    alternative_price: Decimal
    unit_saving: Decimal
    annual_volume: int
    annual_saving: Decimal
    saving_percentage: Decimal


def find_savings_opportunities(
    records: Iterable[PurchaseRecord],
    *,
    min_spread: Decimal = Decimal("0.10"),
    annualization_factor: int = 4,
) -> list[SavingsOpportunity]:
    """
    Scan purchase history for supplier price spreads.

    Args:
        records: Received purchase lines, in any order.  The first record
            seen at the highest (lowest) price names the current
            (alternative) supplier.
        min_spread: (max - min) / max must exceed this fraction.
        annualization_factor: Purchased quantity in the window times this
            factor estimates annual volume (4 for a 90-day window).

    Returns:
        Opportunities sorted by annual saving, largest first.
    """
    by_product: dict[str, list[PurchaseRecord]] = defaultdict(list)
    for record in records:
        by_product[record.product_id].append(record)

    opportunities: list[SavingsOpportunity] = []
    for product_id, purchases in by_product.items():
        if len({p.supplier_id for p in purchases}) < 2:
            continue

        highest = max(purchases, key=lambda p: p.unit_price)
        lowest = min(purchases, key=lambda p: p.unit_price)
        if highest.unit_price <= 0:
            continue

        spread = highest.unit_price - lowest.unit_price
        if spread / highest.unit_price <= min_spread:
            continue

        volume = sum(p.quantity for p in purchases) * annualization_factor
        opportunities.append(
            SavingsOpportunity(
                product_id=product_id,
                current_supplier_id=highest.supplier_id,
                current_price=highest.unit_price,
                alternative_supplier_id=lowest.supplier_id,
                alternative_price=lowest.unit_price,
                unit_saving=spread,
                annual_volume=volume,
                annual_saving=(spread * volume).quantize(_CENT, rounding=ROUND_HALF_UP),
                saving_percentage=(spread * 100 / highest.unit_price).quantize(
                    _CENT, rounding=ROUND_HALF_UP,
                ),
            )
        )

    opportunities.sort(key=lambda op: op.annual_saving, reverse=True)
    return opportunities
