"""
Tests for order email rendering and delivery.
"""

import uuid
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from storefront.core.config import get_settings
from storefront.database.models import Order, OrderItem, User
from storefront.services.notifications.aws_clients import SESClient, SESClientError
from storefront.services.notifications.service import (
    NotificationDeliveryError,
    NotificationService,
    build_order_context,
)
from storefront.services.notifications.templates import (
    TemplateEngine,
    TemplateNotFoundError,
)
from storefront.services.orders.enums import OrderStatus, PaymentOption, PaymentStatus


def client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "SendEmail")


def make_order(email: str = "asha@example.com") -> Order:
    """Transient order with one line and a customer attached."""
    return Order(
        id=uuid.uuid4(),
        order_number="ORD-20261016-ABC123",
        status=OrderStatus.CONFIRMED,
        payment_status=PaymentStatus.PENDING,
        payment_option=PaymentOption.CASH_ON_DELIVERY,
        subtotal=Decimal("1050"),
        delivery_charge=Decimal("0"),
        discount_code="SAVE10",
        discount_amount=Decimal("100"),
        reward_points_redeemed=0,
        reward_discount_amount=Decimal("0"),
        total=Decimal("950"),
        courier_name="Delhivery",
        awb_code="AWB123",
        user=User(email=email, name="Asha"),
        items=[
            OrderItem(
                product_name="Runner",
                unit_price=Decimal("525"),
                quantity=2,
            )
        ],
    )


@pytest.fixture
def notifications_enabled(monkeypatch):
    monkeypatch.setattr(get_settings(), "notifications_enabled", True)


# ============================================================================
# SES Client
# ============================================================================


class TestSESClient:
    def test_send_email(self):
        boto_client = MagicMock()
        boto_client.send_email.return_value = {"MessageId": "msg-1"}
        client = SESClient(client=boto_client, retry_backoff=0)

        message_id = client.send_email(["asha@example.com"], "Hello", "Body", "<p>Body</p>")

        assert message_id == "msg-1"
        params = boto_client.send_email.call_args.kwargs
        assert params["Destination"] == {"ToAddresses": ["asha@example.com"]}
        assert params["Message"]["Subject"]["Data"] == "Hello"
        assert params["Message"]["Body"]["Html"]["Data"] == "<p>Body</p>"

    def test_rejected_email_not_retried(self):
        boto_client = MagicMock()
        boto_client.send_email.side_effect = client_error("MessageRejected")
        client = SESClient(client=boto_client, retry_backoff=0)

        with pytest.raises(SESClientError) as exc_info:
            client.send_email(["asha@example.com"], "Hello", "Body")

        assert exc_info.value.context["error_code"] == "MessageRejected"
        assert boto_client.send_email.call_count == 1

    def test_transient_errors_retried(self):
        boto_client = MagicMock()
        boto_client.send_email.side_effect = [
            client_error("Throttling"),
            EndpointConnectionError(endpoint_url="https://email.example"),
            {"MessageId": "msg-3"},
        ]
        client = SESClient(client=boto_client, max_retries=3, retry_backoff=0)

        assert client.send_email(["asha@example.com"], "Hello", "Body") == "msg-3"
        assert boto_client.send_email.call_count == 3

    def test_retries_exhausted(self):
        boto_client = MagicMock()
        boto_client.send_email.side_effect = client_error("Throttling")
        client = SESClient(client=boto_client, max_retries=2, retry_backoff=0)

        with pytest.raises(SESClientError, match="after 2 attempts"):
            client.send_email(["asha@example.com"], "Hello", "Body")

        assert boto_client.send_email.call_count == 2

    def test_recipient_required(self):
        client = SESClient(client=MagicMock(), retry_backoff=0)

        with pytest.raises(SESClientError):
            client.send_email([], "Hello", "Body")


# ============================================================================
# Templates
# ============================================================================


class TestTemplateEngine:
    def test_render_confirmation(self):
        rendered = TemplateEngine().render_email(
            "order_confirmation", build_order_context(make_order())
        )

        assert rendered["subject"] == "Order ORD-20261016-ABC123 confirmed"
        assert "Hi Asha," in rendered["text_body"]
        assert "Runner x 2: ₹1,050" in rendered["text_body"]
        assert "Discount (SAVE10): -₹100" in rendered["text_body"]
        assert "Delivery: FREE" in rendered["text_body"]
        assert "Total: ₹950" in rendered["text_body"]
        assert "ORD-20261016-ABC123" in rendered["html_body"]

    def test_render_shipped_includes_tracking(self):
        rendered = TemplateEngine().render_email(
            "order_shipped", build_order_context(make_order())
        )

        assert "Courier: Delhivery" in rendered["text_body"]
        assert "Tracking number: AWB123" in rendered["text_body"]

    def test_html_is_escaped(self):
        order = make_order()
        order.user.name = "<b>Asha</b>"

        rendered = TemplateEngine().render_email(
            "order_confirmation", build_order_context(order)
        )

        assert "&lt;b&gt;Asha&lt;/b&gt;" in rendered["html_body"]

    def test_missing_template(self):
        with pytest.raises(TemplateNotFoundError):
            TemplateEngine().render_email("does_not_exist", {})


# ============================================================================
# Notification Service
# ============================================================================


class TestNotificationService:
    @pytest.mark.asyncio
    async def test_disabled_notifications_skip_sending(self):
        ses_client = MagicMock(spec=SESClient)
        service = NotificationService(ses_client=ses_client)

        assert await service.send_order_confirmation(make_order()) is None
        ses_client.send_email.assert_not_called()

    @pytest.mark.asyncio
    async def test_sends_rendered_email(self, notifications_enabled):
        ses_client = MagicMock(spec=SESClient)
        ses_client.send_email.return_value = "msg-9"
        service = NotificationService(ses_client=ses_client)

        message_id = await service.send_order_cancellation(make_order())

        assert message_id == "msg-9"
        to_addresses, subject, text_body, html_body = ses_client.send_email.call_args.args
        assert to_addresses == ["asha@example.com"]
        assert "ORD-20261016-ABC123" in subject
        assert text_body
        assert html_body

    @pytest.mark.asyncio
    async def test_missing_email_raises(self, notifications_enabled):
        service = NotificationService(ses_client=MagicMock(spec=SESClient))

        with pytest.raises(NotificationDeliveryError, match="no recipient"):
            await service.send_order_shipped(make_order(email=""))

    @pytest.mark.asyncio
    async def test_ses_failure_wrapped(self, notifications_enabled):
        ses_client = MagicMock(spec=SESClient)
        ses_client.send_email.side_effect = SESClientError("SES rejected email")
        service = NotificationService(ses_client=ses_client)

        with pytest.raises(NotificationDeliveryError) as exc_info:
            await service.send_payment_failure(make_order())

        assert exc_info.value.context["template_name"] == "payment_failure"
