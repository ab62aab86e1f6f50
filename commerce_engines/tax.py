"""
Tax Engine - Derive document amounts from line items.

Single regional rate, tax-exclusive, rounded half-up at the currency minor
unit.  Pure functions with no I/O - the rate policy is passed in.

Usage:
    from commerce_engines.tax import TaxCalculator, TaxRatePolicy
    from commerce_kernel.domain.documents import LineItem
    from decimal import Decimal

    policy = TaxRatePolicy(rate=Decimal("0.18"), currency="PEN", name="IGV")
    result = TaxCalculator().compute(
        [
            LineItem("P-1", 2, Decimal("500.00")),
            LineItem("P-2", 1, Decimal("180.00")),
        ],
        policy,
    )
    print(result.subtotal)  # 1180.00
    print(result.tax)       # 212.40
    print(result.total)     # 1392.40

Formula:
    subtotal      = round(sum(quantity * unit_price))
    discount      = round(sum(line_discount))
    taxable_base  = subtotal - discount
    tax           = round_half_up(taxable_base * rate)
    total         = subtotal - discount + tax
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Sequence

from commerce_kernel.db.types import ZERO, round_money
from commerce_kernel.domain.documents import DocumentAmounts, LineItem
from commerce_kernel.exceptions import InvalidLineItemError
from commerce_kernel.logging_config import get_logger

logger = get_logger("engines.tax")


@dataclass(frozen=True)
class TaxRatePolicy:
    """
    Regional tax policy.

    Immutable value object; ``rate`` is a fraction (0.18 for 18%).
    """

    rate: Decimal
    currency: str
    decimal_places: int = 2
    rounding: str = ROUND_HALF_UP
    name: str = "VAT"

    def __post_init__(self) -> None:
        if self.rate < Decimal("0"):
            raise ValueError("Tax rate cannot be negative")
        if len(self.currency) != 3:
            raise ValueError(f"Currency must be a 3-letter code: {self.currency!r}")
        if self.decimal_places < 0:
            raise ValueError("decimal_places cannot be negative")

    @property
    def rate_percent(self) -> Decimal:
        """Rate as percentage (e.g., 18 for 18%)."""
        return self.rate * Decimal("100")


@dataclass(frozen=True)
class LineComputation:
    """Amounts for one line item."""

    line_index: int
    product_id: str
    gross_amount: Decimal
    discount: Decimal

    @property
    def net_amount(self) -> Decimal:
        return self.gross_amount - self.discount


@dataclass(frozen=True)
class TaxComputation:
    """
    Complete result of a document calculation.

    Guarantees:
        - total == subtotal - discount + tax
        - taxable_base == subtotal - discount
    """

    subtotal: Decimal
    discount: Decimal
    taxable_base: Decimal
    tax: Decimal
    total: Decimal
    lines: tuple[LineComputation, ...]
    policy: TaxRatePolicy

    def to_amounts(self) -> DocumentAmounts:
        return DocumentAmounts(
            subtotal=self.subtotal,
            discount=self.discount,
            tax=self.tax,
            total=self.total,
            tax_rate=self.policy.rate,
            currency=self.policy.currency,
        )


class TaxCalculator:
    """
    Compute subtotal, discount, tax and total for a list of line items.

    Pure - no I/O, no database access.  Deterministic: identical inputs
    always produce identical outputs.
    """

    def compute(
        self,
        line_items: Sequence[LineItem],
        policy: TaxRatePolicy,
    ) -> TaxComputation:
        """
        Calculate document amounts.

        Args:
            line_items: Ordered line items; must be non-empty.
            policy: Rate, currency and rounding to apply.

        Returns:
            TaxComputation with per-line and document totals.

        Raises:
            InvalidLineItemError: Empty input, non-positive or non-integer
                quantity, negative unit price, negative discount, or a
                discount larger than its line subtotal.
        """
        if not line_items:
            raise InvalidLineItemError("document has no line items")

        lines: list[LineComputation] = []
        for index, item in enumerate(line_items):
            self._validate(index, item)
            lines.append(
                LineComputation(
                    line_index=index,
                    product_id=item.product_id,
                    gross_amount=item.gross_amount,
                    discount=item.line_discount,
                )
            )

        places = policy.decimal_places
        subtotal = round_money(
            sum((line.gross_amount for line in lines), ZERO), places, policy.rounding,
        )
        discount = round_money(
            sum((line.discount for line in lines), ZERO), places, policy.rounding,
        )
        taxable_base = subtotal - discount
        tax = round_money(taxable_base * policy.rate, places, policy.rounding)
        total = subtotal - discount + tax

        logger.debug("tax_computed", extra={
            "line_count": len(lines),
            "subtotal": str(subtotal),
            "discount": str(discount),
            "tax": str(tax),
            "total": str(total),
            "tax_rate": str(policy.rate),
            "currency": policy.currency,
        })

        return TaxComputation(
            subtotal=subtotal,
            discount=discount,
            taxable_base=taxable_base,
            tax=tax,
            total=total,
            lines=tuple(lines),
            policy=policy,
        )

    @staticmethod
    def _validate(index: int, item: LineItem) -> None:
        if isinstance(item.quantity, bool) or not isinstance(item.quantity, int):
            raise InvalidLineItemError(
                "quantity must be an integer", index, item.product_id,
            )
        if item.quantity <= 0:
            raise InvalidLineItemError(
                "quantity must be positive", index, item.product_id,
            )
        if not isinstance(item.unit_price, Decimal) or not isinstance(
            item.line_discount, Decimal
        ):
            raise InvalidLineItemError(
                "unit price and discount must be Decimal", index, item.product_id,
            )
        if not item.unit_price.is_finite() or not item.line_discount.is_finite():
            raise InvalidLineItemError(
                "unit price and discount must be finite", index, item.product_id,
            )
        if item.unit_price < ZERO:
            raise InvalidLineItemError(
                "unit price cannot be negative", index, item.product_id,
            )
        if item.line_discount < ZERO:
            raise InvalidLineItemError(
                "line discount cannot be negative", index, item.product_id,
            )
        if item.line_discount > item.gross_amount:
            raise InvalidLineItemError(
                "line discount exceeds line subtotal", index, item.product_id,
            )
