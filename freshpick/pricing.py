"""Order pricing.

``calculate`` is pure: the same inputs always give the same breakdown, and
amounts keep full Decimal precision. Rounding to cents happens only in
``format_money`` / ``display``.
"""
from __future__ import annotations
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from .schemas import FulfillmentMethod, PriceBreakdown

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
ONE = Decimal("1")
CENT = Decimal("0.01")

SERVICE_FEE = Decimal("2.50")
DELIVERY_FEE = Decimal("5.99")
SMALL_ORDER_FEE = Decimal("1.99")
SMALL_ORDER_THRESHOLD = Decimal("15.00")
DEFAULT_TAX_RATE = Decimal("0.08")


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() first so 0.1 becomes Decimal("0.1"), not its binary expansion
    return Decimal(str(value))


def _clamp(value: Decimal, low: Decimal, high: Decimal | None = None) -> Decimal:
    if value < low:
        return low
    if high is not None and value > high:
        return high
    return value


def calculate(
    items_total: Number,
    fulfillment: FulfillmentMethod,
    tip_percent: Number = ZERO,
    tax_rate: Number = DEFAULT_TAX_RATE,
) -> PriceBreakdown:
    # Out-of-range inputs are clamped: negative totals and rates to 0, tip into [0, 1]
    items_total = _clamp(to_decimal(items_total), ZERO)
    tip_percent = _clamp(to_decimal(tip_percent), ZERO, ONE)
    tax_rate = _clamp(to_decimal(tax_rate), ZERO)

    service_fee = SERVICE_FEE if items_total > 0 else ZERO
    delivery_fee = DELIVERY_FEE if FulfillmentMethod(fulfillment) is FulfillmentMethod.delivery else ZERO
    small_order_fee = SMALL_ORDER_FEE if ZERO < items_total < SMALL_ORDER_THRESHOLD else ZERO
    tax = tax_rate * items_total
    tip = tip_percent * items_total
    grand_total = items_total + delivery_fee + service_fee + small_order_fee + tax + tip

    return PriceBreakdown(
        items_total=items_total,
        delivery_fee=delivery_fee,
        service_fee=service_fee,
        small_order_fee=small_order_fee,
        tax=tax,
        tip=tip,
        grand_total=grand_total,
    )


def round_money(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Number) -> str:
    return f"${round_money(value)}"


def display(breakdown: PriceBreakdown) -> dict[str, str]:
    """Formatted amounts keyed like the stored breakdown (``itemsTotal``, ...)."""
    dumped = breakdown.model_dump(by_alias=True)
    return {key: format_money(value) for key, value in dumped.items()}
