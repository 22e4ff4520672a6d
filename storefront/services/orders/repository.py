"""
Order data access repository.

This module implements the OrderRepository class providing async methods
for persisting orders with their items, looking orders up for customers,
vendors, admins and the shipping webhook, and the conditional stock
decrement used at checkout. Nothing here commits; the order service owns
the transaction boundary.
"""

import uuid
from typing import Iterable, Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.errors import NotFoundError, StorefrontError
from storefront.core.logging import get_logger
from storefront.database.models.order import Order, OrderItem
from storefront.database.models.product import CartItem, Product
from storefront.services.orders.enums import OrderStatus

logger = get_logger(__name__)


class OrderRepositoryError(StorefrontError):
    """Base exception for order repository errors."""


class OrderNotFoundError(NotFoundError):
    """Raised when order is not found."""


class OrderPersistenceError(OrderRepositoryError):
    """Raised when the order could not be written."""


class OrderRepository:
    """
    Repository for order data access operations.

    Items and status history load eagerly with ``selectin`` so returned
    orders can be serialized without further IO.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, order: Order) -> Order:
        """
        Stage a new order with its items and flush it.

        Raises:
            IntegrityError: If the order number is already taken
            OrderPersistenceError: If the database rejects the order
        """
        self.session.add(order)
        try:
            await self.session.flush()
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            logger.error(
                "Database error while creating order",
                order_number=order.order_number,
                error=str(e),
            )
            raise OrderPersistenceError(
                "Failed to create order",
                order_number=order.order_number,
            ) from e

        logger.info(
            "Order staged",
            order_id=str(order.id),
            order_number=order.order_number,
            item_count=len(order.items),
        )
        return order

    async def get_by_id(
        self,
        order_id: uuid.UUID,
        for_update: bool = False,
    ) -> Optional[Order]:
        stmt = select(Order).where(Order.id == order_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_raise(self, order_id: uuid.UUID) -> Order:
        order = await self.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundError("Order not found", order_id=str(order_id))
        return order

    async def get_by_number(self, order_number: str) -> Optional[Order]:
        result = await self.session.execute(
            select(Order).where(Order.order_number == order_number)
        )
        return result.scalar_one_or_none()

    async def get_by_shipment_ref(self, shipment_order_ref: str) -> Optional[Order]:
        result = await self.session.execute(
            select(Order).where(Order.shipment_order_ref == shipment_order_ref)
        )
        return result.scalar_one_or_none()

    async def list_orders(
        self,
        user_id: Optional[uuid.UUID] = None,
        vendor_id: Optional[uuid.UUID] = None,
        status: Optional[OrderStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Order]:
        """
        List orders, newest first.

        Args:
            user_id: Only orders placed by this user
            vendor_id: Only orders containing items sold by this vendor
            status: Only orders in this status
            limit: Page size
            offset: Rows to skip
        """
        stmt = select(Order)
        if user_id is not None:
            stmt = stmt.where(Order.user_id == user_id)
        if vendor_id is not None:
            stmt = stmt.where(
                Order.id.in_(
                    select(OrderItem.order_id).where(OrderItem.vendor_id == vendor_id)
                )
            )
        if status is not None:
            stmt = stmt.where(Order.status == status)

        stmt = stmt.order_by(Order.created_at.desc()).limit(limit).offset(offset)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def load_products(self, product_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, Product]:
        ids = list(product_ids)
        result = await self.session.execute(select(Product).where(Product.id.in_(ids)))
        return {product.id: product for product in result.scalars().all()}

    async def decrement_stock(self, product_id: uuid.UUID, quantity: int) -> bool:
        """
        Atomically take ``quantity`` units out of stock.

        Returns:
            False if the product no longer has enough stock
        """
        result = await self.session.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def clear_cart(self, user_id: uuid.UUID) -> int:
        result = await self.session.execute(
            delete(CartItem)
            .where(CartItem.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete(self, order: Order) -> None:
        await self.session.delete(order)
        await self.session.flush()
