"""Order state machine implementation with transition validation.

This module implements the OrderStateMachine class for moving orders
through their lifecycle. Transitions from the shipping webhook, the
scheduler and customers are validated against the transition table;
admins may write any status. Every applied transition stamps the
matching timestamp column and appends a status history entry.
Persistence is left to the caller so a transition can share a
transaction with other changes.
"""

from typing import Any, Callable, Dict, Optional, Set
from uuid import UUID

from storefront.core.errors import BusinessRuleError
from storefront.core.logging import get_logger
from storefront.database.base import utcnow
from storefront.database.models.order import Order, OrderStatusHistory
from storefront.services.orders.enums import (
    OrderStatus,
    StatusChangeSource,
    get_allowed_order_transitions,
    validate_order_status_transition,
)

logger = get_logger(__name__)

# Sources that may write any status directly, e.g. to correct a mistaken update
OVERRIDE_SOURCES = frozenset({StatusChangeSource.ADMIN})


class StateTransitionError(BusinessRuleError):
    """Raised when an invalid state transition is attempted."""

    def __init__(
        self,
        message: str,
        current_state: OrderStatus,
        target_state: OrderStatus,
        **context: Any
    ):
        super().__init__(message, **context)
        self.current_state = current_state
        self.target_state = target_state


class OrderStateMachine:
    """State machine for managing order lifecycle transitions."""

    def __init__(self) -> None:
        self._side_effects: Dict[OrderStatus, Callable[[Order], None]] = {
            OrderStatus.PROCESSING: self._effect_processing,
            OrderStatus.SHIPPED: self._effect_shipped,
            OrderStatus.DELIVERED: self._effect_delivered,
            OrderStatus.CANCELLED: self._effect_cancelled,
            OrderStatus.RETURNED: self._effect_returned,
        }

    def can_transition(self, order: Order, target_status: OrderStatus) -> bool:
        return validate_order_status_transition(order.status, target_status)

    def get_allowed_transitions(self, order: Order) -> Set[OrderStatus]:
        return get_allowed_order_transitions(order.status)

    def validate_transition(self, order: Order, target_status: OrderStatus) -> None:
        """Validate if transition to target status is allowed.

        Raises:
            StateTransitionError: If transition is invalid
        """
        current_status = order.status

        if not validate_order_status_transition(current_status, target_status):
            allowed = get_allowed_order_transitions(current_status)
            raise StateTransitionError(
                f"Invalid status transition from {current_status.value} to "
                f"{target_status.value}",
                current_state=current_status,
                target_state=target_status,
                order_id=str(order.id),
                allowed_transitions=sorted(s.value for s in allowed),
            )

    def apply_transition(
        self,
        order: Order,
        target_status: OrderStatus,
        source: StatusChangeSource,
        changed_by: Optional[UUID] = None,
        reason: Optional[str] = None,
    ) -> bool:
        """Apply state transition to order with side effects.

        Re-applying the current status is a no-op. Changes from an
        ``OVERRIDE_SOURCES`` source skip the transition table.

        Args:
            order: Order instance to transition
            target_status: Target status to transition to
            source: Where the change originated
            changed_by: User initiating the transition
            reason: Optional reason for transition

        Returns:
            True if the status changed, False for a no-op

        Raises:
            StateTransitionError: If a guarded transition is invalid
        """
        old_status = order.status
        if old_status == target_status:
            logger.debug(
                "Status unchanged, transition skipped",
                order_id=str(order.id),
                status=old_status.value,
            )
            return False

        if source not in OVERRIDE_SOURCES:
            self.validate_transition(order, target_status)

        order.status = target_status
        side_effect = self._side_effects.get(target_status)
        if side_effect is not None:
            side_effect(order)

        self.record_status_change(order, old_status, target_status, source, changed_by, reason)

        logger.info(
            "State transition applied",
            order_id=str(order.id),
            transition=f"{old_status.value}->{target_status.value}",
            source=source.value,
            changed_by=str(changed_by) if changed_by else None,
        )
        return True

    def record_status_change(
        self,
        order: Order,
        old_status: Optional[OrderStatus],
        new_status: OrderStatus,
        source: StatusChangeSource,
        changed_by: Optional[UUID] = None,
        reason: Optional[str] = None,
    ) -> OrderStatusHistory:
        """Append a status history entry to the order."""
        entry = OrderStatusHistory(
            from_status=old_status.value if old_status else None,
            to_status=new_status.value,
            source=source.value,
            reason=reason,
            changed_by=changed_by,
            created_at=utcnow(),
        )
        order.status_history.append(entry)
        return entry

    # Side effects

    def _effect_processing(self, order: Order) -> None:
        order.processing_at = utcnow()

    def _effect_shipped(self, order: Order) -> None:
        order.shipped_at = utcnow()

    def _effect_delivered(self, order: Order) -> None:
        order.delivered_at = utcnow()

    def _effect_cancelled(self, order: Order) -> None:
        order.cancelled_at = utcnow()

    def _effect_returned(self, order: Order) -> None:
        order.returned_at = utcnow()


def get_order_state_machine() -> OrderStateMachine:
    """Factory function to create OrderStateMachine instance."""
    return OrderStateMachine()
