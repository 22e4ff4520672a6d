"""
Delivery charge policy.

Orders whose subtotal reaches the free delivery threshold ship for free;
otherwise the customer pays the sum of the per-line delivery charges of
the products in the order. All functions are pure and take an optional
threshold, falling back to the configured one.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from storefront.core.config import get_settings

Number = Union[Decimal, int, float, str]


@dataclass(frozen=True)
class DeliveryStatus:
    """Delivery charge breakdown shown at checkout."""

    is_free: bool
    amount_needed: Decimal
    final_charge: Decimal
    original_charge: Decimal
    threshold: Decimal
    message: str


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _threshold(threshold: Optional[Number]) -> Decimal:
    if threshold is None:
        return get_settings().free_delivery_threshold
    return _to_decimal(threshold)


def format_currency(amount: Number) -> str:
    """
    Format an amount as whole rupees with Indian digit grouping.

    The last three digits form one group and the rest are grouped in
    pairs, e.g. ``₹1,500`` and ``₹12,34,567``.
    """
    rounded = _to_decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    digits = str(abs(rounded))
    head, groups = digits[:-3], [digits[-3:]]
    while head:
        groups.insert(0, head[-2:])
        head = head[:-2]
    return f"{sign}₹{','.join(groups)}"


def qualifies_for_free_delivery(
    subtotal: Number,
    threshold: Optional[Number] = None,
) -> bool:
    """Check if the subtotal reaches the free delivery threshold."""
    return _to_decimal(subtotal) >= _threshold(threshold)


def calculate_delivery_charge(
    subtotal: Number,
    original_charge: Number,
    threshold: Optional[Number] = None,
) -> Decimal:
    """
    Calculate the delivery charge payable for an order.

    Args:
        subtotal: Order amount before delivery charges
        original_charge: Sum of per-line product delivery charges
        threshold: Free delivery threshold override

    Returns:
        Zero when the subtotal qualifies for free delivery, otherwise the
        original charge
    """
    if qualifies_for_free_delivery(subtotal, threshold):
        return Decimal("0")
    return _to_decimal(original_charge)


def amount_needed_for_free_delivery(
    subtotal: Number,
    threshold: Optional[Number] = None,
) -> Decimal:
    """How much more the customer must add to qualify, zero once qualified."""
    limit = _threshold(threshold)
    value = _to_decimal(subtotal)
    if value >= limit:
        return Decimal("0")
    return limit - value


def get_delivery_status(
    subtotal: Number,
    original_charge: Number,
    threshold: Optional[Number] = None,
) -> DeliveryStatus:
    """Build the delivery status summary for the given cart subtotal."""
    limit = _threshold(threshold)
    is_free = qualifies_for_free_delivery(subtotal, limit)
    amount_needed = amount_needed_for_free_delivery(subtotal, limit)

    if is_free:
        message = "🎉 You qualify for FREE delivery!"
    else:
        message = f"Add {format_currency(amount_needed)} more for FREE delivery!"

    return DeliveryStatus(
        is_free=is_free,
        amount_needed=amount_needed,
        final_charge=calculate_delivery_charge(subtotal, original_charge, limit),
        original_charge=_to_decimal(original_charge),
        threshold=limit,
        message=message,
    )
