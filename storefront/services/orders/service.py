"""
Order service orchestrating checkout and the order lifecycle.

This module implements the OrderService class. Checkout validates stock,
prices the order from product snapshots, settles the discount code and
reward points, then writes the order, its items, the stock decrements
and the cart cleanup in a single transaction. Lifecycle operations move
orders through the state machine for admins, customers, the payment
gateway and the shipping aggregator webhook. Emails are sent after the
transaction commits and never affect its outcome.
"""

import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.errors import (
    AuthorizationError,
    BusinessRuleError,
    NotFoundError,
    StorefrontError,
    ValidationFailedError,
)
from storefront.core.logging import get_logger, log_performance
from storefront.core.security import Principal
from storefront.database.base import utcnow
from storefront.database.models.order import Order, OrderItem
from storefront.database.models.product import Product
from storefront.database.models.user import User
from storefront.services.delivery.policy import calculate_delivery_charge
from storefront.services.discounts.evaluator import (
    ALREADY_USED_MESSAGE,
    DiscountAlreadyUsedError,
    DiscountEvaluator,
    lines_from_products,
)
from storefront.services.notifications.service import (
    NotificationService,
    NotificationServiceError,
)
from storefront.services.orders.enums import (
    CUSTOMER_CANCEL_BLOCKED,
    OrderStatus,
    PaymentOption,
    PaymentStatus,
    StatusChangeSource,
    map_shipping_status,
)
from storefront.services.orders.repository import OrderPersistenceError, OrderRepository
from storefront.services.orders.scheduler import OrderAutoProcessor
from storefront.services.orders.state_machine import OrderStateMachine
from storefront.services.rewards.ledger import RewardLedger

logger = get_logger(__name__)


class OrderServiceError(StorefrontError):
    """Base exception for order service errors."""


class OrderValidationError(ValidationFailedError):
    """Raised when order input is malformed."""


class OutOfStockError(BusinessRuleError):
    """Raised when a product cannot cover the requested quantity."""


@dataclass(frozen=True)
class OrderLine:
    """Requested product and quantity."""

    product_id: uuid.UUID
    quantity: int


@dataclass
class ShippingUpdate:
    """Status event pushed by the shipping aggregator."""

    shipment_order_ref: str
    status: str
    shipment_id: Optional[str] = None
    awb_code: Optional[str] = None
    courier_name: Optional[str] = None
    pickup_date: Optional[datetime] = None
    delivered_date: Optional[datetime] = None
    event_time: Optional[datetime] = None
    scans: list[dict[str, Any]] = field(default_factory=list)


def out_of_stock_message(product_name: str, available: int) -> str:
    return f'Product "{product_name}" is out of stock or only {available} available.'


class OrderService:
    """
    Order service orchestrating business logic and integrations.

    Attributes:
        repository: Order repository for data access
        state_machine: State machine for order lifecycle management
        discounts: Discount evaluator for checkout settlement
        rewards: Reward ledger for point redemption
        notification_service: Optional customer email sender
        auto_processor: Optional delayed confirmed -> processing scheduler
    """

    def __init__(
        self,
        session: AsyncSession,
        notification_service: Optional[NotificationService] = None,
        auto_processor: Optional[OrderAutoProcessor] = None,
    ):
        self.session = session
        self.repository = OrderRepository(session)
        self.state_machine = OrderStateMachine()
        self.discounts = DiscountEvaluator(session)
        self.rewards = RewardLedger(session)
        self.notification_service = notification_service
        self.auto_processor = auto_processor

    # ====================================================================
    # Checkout
    # ====================================================================

    async def create_order(
        self,
        principal: Principal,
        items: Sequence[OrderLine],
        payment_option: PaymentOption = PaymentOption.CASH_ON_DELIVERY,
        address_id: Optional[str] = None,
        order_number: Optional[str] = None,
        discount_code: Optional[str] = None,
        reward_points: Optional[int] = None,
    ) -> tuple[Order, bool]:
        """
        Place an order for the principal.

        Args:
            principal: Customer placing the order
            items: Requested products and quantities
            payment_option: Cash on delivery or online
            address_id: Delivery address reference
            order_number: Client supplied order number for idempotent replays
            discount_code: Discount code to settle against the order
            reward_points: Reward points to redeem against the order

        Returns:
            Tuple of the order and whether it was created by this call

        Raises:
            OrderValidationError: If the request is malformed
            NotFoundError: If a product or the user does not exist
            OutOfStockError: If any line exceeds available stock
            BusinessRuleError: If the discount or reward settlement is rejected
        """
        self._validate_lines(items)

        if order_number:
            existing = await self.repository.get_by_number(order_number)
            if existing is not None:
                if existing.user_id != principal.user_id:
                    raise BusinessRuleError(
                        "Order number is already in use",
                        order_number=order_number,
                    )
                logger.info(
                    "Order replay returned existing order",
                    order_id=str(existing.id),
                    order_number=order_number,
                )
                return existing, False
        else:
            order_number = self._generate_order_number()

        user = await self.session.get(User, principal.user_id)
        if user is None:
            raise NotFoundError("User not found", user_id=str(principal.user_id))

        products = await self.repository.load_products(line.product_id for line in items)
        self._check_stock(items, products)

        subtotal = sum(
            (products[line.product_id].price * line.quantity for line in items),
            Decimal("0"),
        )
        original_delivery = sum(
            (products[line.product_id].delivery_charge for line in items),
            Decimal("0"),
        )
        delivery_charge = calculate_delivery_charge(subtotal, original_delivery)

        with log_performance(logger, "create_order", order_number=order_number):
            try:
                order = await self._settle_and_persist(
                    principal=principal,
                    user=user,
                    items=items,
                    products=products,
                    order_number=order_number,
                    payment_option=payment_option,
                    address_id=address_id,
                    subtotal=subtotal,
                    delivery_charge=delivery_charge,
                    discount_code=discount_code,
                    reward_points=reward_points,
                )
            except StorefrontError:
                await self.session.rollback()
                raise
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.error(
                    "Order creation failed",
                    order_number=order_number,
                    error=str(e),
                    exc_info=True,
                )
                raise OrderPersistenceError(
                    "Failed to create order",
                    order_number=order_number,
                ) from e

        logger.info(
            "Order created",
            order_id=str(order.id),
            order_number=order.order_number,
            user_id=str(principal.user_id),
            subtotal=str(order.subtotal),
            delivery_charge=str(order.delivery_charge),
            discount_amount=str(order.discount_amount),
            reward_discount_amount=str(order.reward_discount_amount),
            total=str(order.total),
        )

        if self.auto_processor is not None:
            self.auto_processor.schedule(order.id)
        await self._notify("send_order_confirmation", order)

        return order, True

    async def _settle_and_persist(
        self,
        principal: Principal,
        user: User,
        items: Sequence[OrderLine],
        products: dict[uuid.UUID, Product],
        order_number: str,
        payment_option: PaymentOption,
        address_id: Optional[str],
        subtotal: Decimal,
        delivery_charge: Decimal,
        discount_code: Optional[str],
        reward_points: Optional[int],
    ) -> Order:
        discount_amount = Decimal("0")
        usage = None
        if discount_code and discount_code.strip():
            lines = lines_from_products(
                products, ((line.product_id, line.quantity) for line in items)
            )
            try:
                calculation, usage = await self.discounts.settle_for_order(
                    principal.user_id, discount_code, lines
                )
            except IntegrityError as e:
                raise DiscountAlreadyUsedError(ALREADY_USED_MESSAGE, code=discount_code) from e
            discount_code = calculation.discount.code
            discount_amount = calculation.discount_amount
        else:
            discount_code = None

        payable = subtotal + delivery_charge - discount_amount

        reward_discount = Decimal("0")
        points_redeemed = 0
        if reward_points:
            redemption = await self.rewards.redeem(
                principal.user_id,
                reward_points,
                order_total=payable,
                commit=False,
            )
            reward_discount = redemption.discount_amount
            points_redeemed = redemption.points_redeemed

        order = Order(
            order_number=order_number,
            user=user,
            status=OrderStatus.CONFIRMED,
            payment_status=PaymentStatus.PENDING,
            payment_option=payment_option,
            address_id=address_id,
            subtotal=subtotal,
            delivery_charge=delivery_charge,
            discount_code=discount_code,
            discount_amount=discount_amount,
            reward_points_redeemed=points_redeemed,
            reward_discount_amount=reward_discount,
            total=payable - reward_discount,
            items=[
                OrderItem(
                    product_id=line.product_id,
                    vendor_id=products[line.product_id].vendor_id,
                    product_name=products[line.product_id].name,
                    unit_price=products[line.product_id].price,
                    quantity=line.quantity,
                )
                for line in items
            ],
        )
        self.state_machine.record_status_change(
            order,
            None,
            OrderStatus.CONFIRMED,
            StatusChangeSource.CHECKOUT,
            changed_by=principal.user_id,
            reason="Order placed",
        )

        try:
            await self.repository.add(order)
        except IntegrityError as e:
            raise BusinessRuleError(
                "Order number is already in use",
                order_number=order_number,
            ) from e

        if usage is not None:
            usage.order_id = order.id

        for line in items:
            product = products[line.product_id]
            if not await self.repository.decrement_stock(product.id, line.quantity):
                available = await self.session.scalar(
                    select(Product.stock).where(Product.id == product.id)
                )
                raise OutOfStockError(
                    out_of_stock_message(product.name, available or 0),
                    product_id=str(product.id),
                )

        await self.repository.clear_cart(principal.user_id)
        await self.session.commit()
        return order

    def _validate_lines(self, items: Sequence[OrderLine]) -> None:
        if not items:
            raise OrderValidationError("Order must contain at least one item")

        seen: set[uuid.UUID] = set()
        for line in items:
            if line.quantity <= 0:
                raise OrderValidationError(
                    "Quantity must be greater than zero",
                    product_id=str(line.product_id),
                )
            if line.product_id in seen:
                raise OrderValidationError(
                    "Each product may only appear once in an order",
                    product_id=str(line.product_id),
                )
            seen.add(line.product_id)

    def _check_stock(
        self,
        items: Sequence[OrderLine],
        products: dict[uuid.UUID, Product],
    ) -> None:
        """Reject the order before any write if a line cannot be covered."""
        for line in items:
            product = products.get(line.product_id)
            if product is None:
                raise NotFoundError(
                    f"Product not found: {line.product_id}",
                    product_id=str(line.product_id),
                )
            if not product.is_active:
                raise BusinessRuleError(
                    f'Product "{product.name}" is no longer available',
                    product_id=str(product.id),
                )
            if product.stock <= 0 or product.stock < line.quantity:
                raise OutOfStockError(
                    out_of_stock_message(product.name, product.stock),
                    product_id=str(product.id),
                    requested=line.quantity,
                )

    # ====================================================================
    # Lifecycle
    # ====================================================================

    async def update_order_status(
        self,
        principal: Principal,
        order_id: uuid.UUID,
        status: OrderStatus,
        reason: Optional[str] = None,
    ) -> Order:
        """
        Admin status change.

        Admins may set any status, including moving an order out of a
        terminal state to correct a mistaken update.

        Raises:
            AuthorizationError: If the principal is not an admin
            OrderNotFoundError: If the order does not exist
        """
        self._require_admin(principal)
        order = await self.repository.get_or_raise(order_id)

        changed = self.state_machine.apply_transition(
            order,
            status,
            source=StatusChangeSource.ADMIN,
            changed_by=principal.user_id,
            reason=reason,
        )
        if changed and status == OrderStatus.CANCELLED and reason:
            order.cancellation_reason = reason

        await self.session.commit()

        if changed:
            await self._notify_status_change(order)
        return order

    async def cancel_order(
        self,
        principal: Principal,
        order_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> Order:
        """
        Customer cancellation of their own order.

        Raises:
            OrderNotFoundError: If the order does not exist
            AuthorizationError: If the order belongs to someone else
            BusinessRuleError: If the order can no longer be cancelled
        """
        order = await self.repository.get_or_raise(order_id)
        if not principal.owns(order.user_id):
            raise AuthorizationError(
                "You are not allowed to cancel this order",
                order_id=str(order_id),
            )

        blocked = CUSTOMER_CANCEL_BLOCKED.get(order.status)
        if blocked is not None:
            raise BusinessRuleError(blocked, order_id=str(order_id), status=order.status.value)

        reason = reason or "Cancelled by customer"
        self.state_machine.apply_transition(
            order,
            OrderStatus.CANCELLED,
            source=StatusChangeSource.CUSTOMER,
            changed_by=principal.user_id,
            reason=reason,
        )
        order.cancellation_reason = reason
        await self.session.commit()

        if self.auto_processor is not None:
            self.auto_processor.cancel(order.id)
        await self._notify("send_order_cancellation", order)
        return order

    async def record_payment_outcome(
        self,
        principal: Principal,
        order_id: uuid.UUID,
        success: bool,
        reference: Optional[str] = None,
    ) -> Order:
        """Apply a payment gateway success or failure event to the order."""
        self._require_admin(principal)
        order = await self.repository.get_or_raise(order_id)

        if order.payment_option != PaymentOption.ONLINE:
            raise BusinessRuleError(
                "Payment events only apply to online orders",
                order_id=str(order_id),
            )
        if order.payment_status == PaymentStatus.PAID and not success:
            raise BusinessRuleError("Order has already been paid", order_id=str(order_id))

        order.payment_status = PaymentStatus.PAID if success else PaymentStatus.FAILED
        if reference:
            order.payment_reference = reference
        await self.session.commit()

        logger.info(
            "Payment outcome recorded",
            order_id=str(order.id),
            payment_status=order.payment_status.value,
            payment_reference=reference,
        )

        if not success:
            await self._notify("send_payment_failure", order)
        return order

    async def attach_shipment(
        self,
        principal: Principal,
        order_id: uuid.UUID,
        shipment_order_ref: str,
        shipment_id: Optional[str] = None,
        awb_code: Optional[str] = None,
        courier_name: Optional[str] = None,
    ) -> Order:
        """Link the order to its shipment at the shipping aggregator."""
        self._require_admin(principal)
        order = await self.repository.get_or_raise(order_id)

        order.shipment_order_ref = shipment_order_ref
        order.shipment_id = shipment_id or order.shipment_id
        order.awb_code = awb_code or order.awb_code
        order.courier_name = courier_name or order.courier_name
        order.shipping_updated_at = utcnow()

        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise BusinessRuleError(
                "Shipment is already attached to another order",
                shipment_order_ref=shipment_order_ref,
            ) from e

        logger.info(
            "Shipment attached",
            order_id=str(order.id),
            shipment_order_ref=shipment_order_ref,
        )
        return order

    async def apply_shipping_update(self, update: ShippingUpdate) -> tuple[Order, bool]:
        """
        Apply a shipping aggregator status event.

        Shipping details are always recorded. The mapped order status is
        applied only when it is a valid transition from the current one.

        Returns:
            Tuple of the order and whether its status changed
        """
        order = await self.repository.get_by_shipment_ref(update.shipment_order_ref)
        if order is None:
            raise NotFoundError(
                "Order not found for shipment",
                shipment_order_ref=update.shipment_order_ref,
            )

        now = utcnow()
        event = {
            "status": update.status,
            "awb_code": update.awb_code,
            "courier_name": update.courier_name,
            "event_time": (update.event_time or now).isoformat(),
        }
        if update.scans:
            event["scans"] = update.scans
        order.shipping_history = [*(order.shipping_history or []), event]
        order.shipping_status = update.status
        order.shipping_updated_at = now
        if update.shipment_id:
            order.shipment_id = update.shipment_id
        if update.awb_code:
            order.awb_code = update.awb_code
        if update.courier_name:
            order.courier_name = update.courier_name
        if update.pickup_date:
            order.pickup_date = update.pickup_date
        if update.delivered_date:
            order.delivered_date = update.delivered_date

        target = map_shipping_status(update.status)
        changed = False
        if target != order.status:
            if self.state_machine.can_transition(order, target):
                changed = self.state_machine.apply_transition(
                    order,
                    target,
                    source=StatusChangeSource.SHIPPING_WEBHOOK,
                    reason=f"Shipping status {update.status}",
                )
            else:
                logger.warning(
                    "Shipping status ignored for order status",
                    order_id=str(order.id),
                    shipping_status=update.status,
                    order_status=order.status.value,
                    mapped_status=target.value,
                )

        await self.session.commit()

        if changed:
            await self._notify_status_change(order)
        return order, changed

    # ====================================================================
    # Queries
    # ====================================================================

    async def get_order(self, principal: Principal, order_id: uuid.UUID) -> Order:
        """
        Fetch an order visible to the principal.

        Raises:
            OrderNotFoundError: If the order does not exist
            AuthorizationError: If the principal may not see the order
        """
        order = await self.repository.get_or_raise(order_id)
        if principal.is_admin or principal.owns(order.user_id):
            return order
        if principal.is_vendor and any(item.vendor_id == principal.user_id for item in order.items):
            return order
        raise AuthorizationError("You are not allowed to view this order", order_id=str(order_id))

    async def list_orders(
        self,
        principal: Principal,
        status: Optional[OrderStatus] = None,
        user_id: Optional[uuid.UUID] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Order]:
        """
        List orders visible to the principal.

        Customers see their own orders, vendors see orders containing their
        products and admins see every order, optionally for one user.
        """
        if principal.is_admin:
            return await self.repository.list_orders(
                user_id=user_id, status=status, limit=limit, offset=offset
            )
        if principal.is_vendor:
            return await self.repository.list_orders(
                vendor_id=principal.user_id, status=status, limit=limit, offset=offset
            )
        return await self.repository.list_orders(
            user_id=principal.user_id, status=status, limit=limit, offset=offset
        )

    async def delete_order(self, principal: Principal, order_id: uuid.UUID) -> None:
        """Admin hard delete of an order and its items."""
        self._require_admin(principal)
        order = await self.repository.get_or_raise(order_id)
        await self.repository.delete(order)
        await self.session.commit()

        if self.auto_processor is not None:
            self.auto_processor.cancel(order_id)
        logger.info("Order deleted", order_id=str(order_id), deleted_by=str(principal.user_id))

    # ====================================================================
    # Helpers
    # ====================================================================

    def _require_admin(self, principal: Principal) -> None:
        if not principal.is_admin:
            raise AuthorizationError("Admin access required", user_id=str(principal.user_id))

    async def _notify_status_change(self, order: Order) -> None:
        if order.status == OrderStatus.CANCELLED:
            await self._notify("send_order_cancellation", order)
        elif order.status == OrderStatus.SHIPPED:
            await self._notify("send_order_shipped", order)

    async def _notify(self, method: str, order: Order) -> None:
        """Send an order email, logging and swallowing delivery failures."""
        if self.notification_service is None:
            return
        try:
            await getattr(self.notification_service, method)(order)
        except NotificationServiceError as e:
            logger.error(
                "Failed to send order notification",
                order_id=str(order.id),
                notification=method,
                error=str(e),
            )

    def _generate_order_number(self) -> str:
        timestamp = utcnow().strftime("%Y%m%d%H%M%S")
        return f"ORD-{timestamp}-{secrets.token_hex(3).upper()}"
