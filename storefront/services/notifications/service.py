"""
Order notification service.

Renders order emails with the template engine and delivers them through
SES. Delivery is blocking, so it runs in a worker thread. Failures are
raised as NotificationServiceError; callers treat email as best-effort.
"""

import asyncio
from typing import Any, Optional

from storefront.core.config import get_settings
from storefront.core.logging import get_logger
from storefront.database.models.order import Order
from storefront.services.notifications.aws_clients import (
    SESClient,
    SESClientError,
    get_ses_client,
)
from storefront.services.notifications.templates import (
    TemplateEngine,
    TemplateEngineError,
    get_template_engine,
)

logger = get_logger(__name__)


class NotificationServiceError(Exception):
    """Base exception for notification service errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.context = context


class NotificationDeliveryError(NotificationServiceError):
    """Exception for notification delivery failures."""


class NotificationService:
    """Sends order lifecycle emails to customers."""

    def __init__(
        self,
        ses_client: Optional[SESClient] = None,
        template_engine: Optional[TemplateEngine] = None,
    ) -> None:
        self._ses_client = ses_client
        self.template_engine = template_engine or get_template_engine()

    @property
    def ses_client(self) -> SESClient:
        if self._ses_client is None:
            self._ses_client = get_ses_client()
        return self._ses_client

    async def send_order_confirmation(self, order: Order) -> Optional[str]:
        return await self._send_order_email("order_confirmation", order)

    async def send_order_cancellation(self, order: Order) -> Optional[str]:
        return await self._send_order_email("order_cancellation", order)

    async def send_order_shipped(self, order: Order) -> Optional[str]:
        return await self._send_order_email("order_shipped", order)

    async def send_payment_failure(self, order: Order) -> Optional[str]:
        return await self._send_order_email("payment_failure", order)

    async def _send_order_email(self, template_name: str, order: Order) -> Optional[str]:
        """
        Render and send one order email.

        Returns:
            SES message id, or None when notifications are disabled

        Raises:
            NotificationDeliveryError: If rendering or delivery fails
        """
        if not get_settings().notifications_enabled:
            logger.debug(
                "Notifications disabled, email skipped",
                template_name=template_name,
                order_id=str(order.id),
            )
            return None

        user = order.user
        if user is None or not user.email:
            raise NotificationDeliveryError(
                "Order has no recipient email address",
                order_id=str(order.id),
            )

        context = build_order_context(order)

        try:
            rendered = self.template_engine.render_email(template_name, context)
            message_id = await asyncio.to_thread(
                self.ses_client.send_email,
                [user.email],
                rendered["subject"],
                rendered["text_body"],
                rendered["html_body"],
            )
        except (TemplateEngineError, SESClientError) as e:
            raise NotificationDeliveryError(
                f"Failed to send {template_name} email: {e}",
                order_id=str(order.id),
                template_name=template_name,
            ) from e

        logger.info(
            "Order email sent",
            template_name=template_name,
            order_id=str(order.id),
            message_id=message_id,
        )
        return message_id


def build_order_context(order: Order) -> dict[str, Any]:
    """Template context describing an order."""
    return {
        "customer_name": order.user.name if order.user else "Customer",
        "order_number": order.order_number,
        "status": order.status.value,
        "payment_option": order.payment_option.value,
        "items": [
            {
                "name": item.product_name,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "line_total": item.line_total,
            }
            for item in order.items
        ],
        "subtotal": order.subtotal,
        "delivery_charge": order.delivery_charge,
        "discount_code": order.discount_code,
        "discount_amount": order.discount_amount,
        "reward_discount_amount": order.reward_discount_amount,
        "total": order.total,
        "cancellation_reason": order.cancellation_reason,
        "courier_name": order.courier_name,
        "awb_code": order.awb_code,
        "created_at": order.created_at,
    }


def get_notification_service() -> NotificationService:
    """Factory function to create NotificationService instance."""
    return NotificationService()
