# Overview: Order/pricing calculator; turns product price, daily quantity and duration into an amount owed.

"""
Subscription Pricing

A term is billed on a fixed 30-days-per-month approximation:

    total = price_per_unit * daily_quantity * (duration_months * 30)

The result is converted to the gateway's minor currency unit (paise) and
rounded half-up to the nearest integer. This is a business rule, not a
calendar calculation; do not replace it with real month lengths.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from ..validation import MAX_DURATION_MONTHS, NotFoundError, ValidationError
from .interfaces import ProductDirectory


DAYS_PER_MONTH = 30
MINOR_UNITS_PER_MAJOR = 100


@dataclass(frozen=True)
class Quote:
    product_id: int
    amount_minor: int
    currency: str
    billed_days: int


def billed_days(duration_months: int) -> int:
    return duration_months * DAYS_PER_MONTH


def compute_amount(price_per_unit, daily_quantity, duration_months: int) -> int:
    """
    Amount owed for a term, in minor currency units.

    Inputs may be Decimal, int, str or float; floats are read through str()
    so 0.1 stays 0.1.

    Raises:
        ValidationError: If quantity or duration is not strictly positive,
            a value is not a finite number, or duration exceeds MAX_DURATION_MONTHS
    """
    price = _to_decimal(price_per_unit, "price_per_unit")
    qty = _to_decimal(daily_quantity, "daily_quantity")

    if qty <= 0:
        raise ValidationError("daily_quantity must be > 0")
    if isinstance(duration_months, bool) or not isinstance(duration_months, int) or duration_months <= 0:
        raise ValidationError("duration_months must be a positive integer")
    if duration_months > MAX_DURATION_MONTHS:
        raise ValidationError(f"duration_months cannot exceed {MAX_DURATION_MONTHS}")
    if price < 0:
        raise ValidationError("price_per_unit must be >= 0")

    total = price * qty * billed_days(duration_months) * MINOR_UNITS_PER_MAJOR
    return int(total.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _to_decimal(value, name: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{name} must be a number")
    if isinstance(value, Decimal):
        dec = value
    else:
        try:
            dec = Decimal(str(value))
        except ArithmeticError:
            raise ValidationError(f"{name} must be a number")
    # NaN and Infinity parse but cannot be compared or quantized
    if not dec.is_finite():
        raise ValidationError(f"{name} must be a number")
    return dec


class PricingCalculator:
    """Looks the product up and prices a subscription term. No side effects."""

    def __init__(self, products: ProductDirectory, currency: str = "INR"):
        self.products = products
        self.currency = currency

    def quote(self, product_id: int, daily_quantity, duration_months: int) -> Quote:
        """
        Raises:
            NotFoundError: Product does not exist
            ValidationError: Product inactive, or non-positive quantity/duration
        """
        product = self.products.get_product(product_id)
        if product is None:
            raise NotFoundError("Product")
        if not product.is_active:
            raise ValidationError("Product is not available")

        amount = compute_amount(product.price_per_unit, daily_quantity, duration_months)
        return Quote(
            product_id=product.id,
            amount_minor=amount,
            currency=self.currency,
            billed_days=billed_days(duration_months),
        )
