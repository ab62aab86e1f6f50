"""
Domain layer - pure logic, no I/O.

Enumerations, value objects, lifecycle tables and conversion rules.
Nothing here touches the database.
"""

from commerce_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from commerce_kernel.domain.conversion import RULE_REGISTRY, ConversionRule, rule_for
from commerce_kernel.domain.documents import (
    DocumentAmounts,
    DocumentStatus,
    LineItem,
    Side,
    Stage,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "ConversionRule",
    "RULE_REGISTRY",
    "rule_for",
    "DocumentAmounts",
    "DocumentStatus",
    "LineItem",
    "Side",
    "Stage",
]
