"""Delivery charge policy."""

from storefront.services.delivery.policy import (
    DeliveryStatus,
    amount_needed_for_free_delivery,
    calculate_delivery_charge,
    format_currency,
    get_delivery_status,
    qualifies_for_free_delivery,
)

__all__ = [
    "DeliveryStatus",
    "amount_needed_for_free_delivery",
    "calculate_delivery_charge",
    "format_currency",
    "get_delivery_status",
    "qualifies_for_free_delivery",
]
