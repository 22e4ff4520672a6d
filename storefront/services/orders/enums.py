"""Order status, payment and shipping enums for order lifecycle management.

This module defines the core enums for order management together with the
status transition table guarding automated and customer status changes and
the fixed lookup that maps shipping aggregator statuses onto order
statuses.
"""

from enum import Enum
from typing import Dict, Optional, Set


class OrderStatus(str, Enum):
    """Order lifecycle status.

    Valid transitions for webhook, scheduler and customer changes (admins
    may set any status):
    - CONFIRMED -> PROCESSING, SHIPPED, DELIVERED, CANCELLED
    - PROCESSING -> SHIPPED, DELIVERED, CANCELLED, RETURNED
    - SHIPPED -> DELIVERED, CANCELLED, RETURNED
    - DELIVERED -> RETURNED
    - CANCELLED -> (terminal state)
    - RETURNED -> (terminal state)
    """

    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"

    @classmethod
    def from_string(cls, value: str) -> "OrderStatus":
        """Convert string to OrderStatus enum.

        Args:
            value: String representation of status

        Returns:
            OrderStatus enum value

        Raises:
            ValueError: If value is not a valid status
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid_values = ", ".join([s.value for s in cls])
            raise ValueError(
                f"Invalid order status: {value}. "
                f"Valid values are: {valid_values}"
            )

    def is_terminal(self) -> bool:
        """Check if status is a terminal state."""
        return self in {OrderStatus.CANCELLED, OrderStatus.RETURNED}

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


class PaymentStatus(str, Enum):
    """Payment state reported by the payment gateway."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentOption(str, Enum):
    """How the customer pays for the order."""

    CASH_ON_DELIVERY = "cash-on-delivery"
    ONLINE = "online"


class StatusChangeSource(str, Enum):
    """Origin of an order status change, kept in the status history."""

    CHECKOUT = "checkout"
    ADMIN = "admin"
    CUSTOMER = "customer"
    SHIPPING_WEBHOOK = "shipping_webhook"
    SCHEDULER = "scheduler"
    PAYMENT = "payment"


ORDER_STATUS_TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
    OrderStatus.CONFIRMED: {
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.PROCESSING: {
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
        OrderStatus.RETURNED,
    },
    OrderStatus.SHIPPED: {
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
        OrderStatus.RETURNED,
    },
    OrderStatus.DELIVERED: {
        OrderStatus.RETURNED,
    },
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.RETURNED: set(),  # Terminal
}

# Statuses a customer may no longer cancel from, with the message shown
CUSTOMER_CANCEL_BLOCKED: Dict[OrderStatus, str] = {
    OrderStatus.SHIPPED: "Order has already been shipped and cannot be cancelled",
    OrderStatus.DELIVERED: "Order has already been delivered and cannot be cancelled",
    OrderStatus.CANCELLED: "Order is already cancelled",
    OrderStatus.RETURNED: "Order has been returned and cannot be cancelled",
}

SHIPPING_STATUS_MAP: Dict[str, OrderStatus] = {
    "NEW": OrderStatus.PROCESSING,
    "PICKUP_SCHEDULED": OrderStatus.PROCESSING,
    "PICKUP_GENERATED": OrderStatus.PROCESSING,
    "PICKED_UP": OrderStatus.SHIPPED,
    "IN_TRANSIT": OrderStatus.SHIPPED,
    "OUT_FOR_DELIVERY": OrderStatus.SHIPPED,
    "DELIVERED": OrderStatus.DELIVERED,
    "CANCELLED": OrderStatus.CANCELLED,
    "LOST": OrderStatus.CANCELLED,
    "DAMAGED": OrderStatus.RETURNED,
    "RETURNED": OrderStatus.RETURNED,
    "RTO_INITIATED": OrderStatus.RETURNED,
    "RTO_DELIVERED": OrderStatus.RETURNED,
}


def validate_order_status_transition(
    current: OrderStatus,
    new: OrderStatus
) -> bool:
    """Validate if order status transition is allowed.

    Args:
        current: Current order status
        new: Desired new status

    Returns:
        True if transition is valid
    """
    return new in ORDER_STATUS_TRANSITIONS.get(current, set())


def get_allowed_order_transitions(
    current: OrderStatus
) -> Set[OrderStatus]:
    """Get all allowed transitions from current order status."""
    return ORDER_STATUS_TRANSITIONS.get(current, set()).copy()


def map_shipping_status(aggregator_status: Optional[str]) -> OrderStatus:
    """Map a shipping aggregator status onto an order status.

    Unknown or missing statuses fall back to PROCESSING.
    """
    if not aggregator_status:
        return OrderStatus.PROCESSING
    key = aggregator_status.strip().upper().replace(" ", "_").replace("-", "_")
    return SHIPPING_STATUS_MAP.get(key, OrderStatus.PROCESSING)
