"""
Order database models.

This module defines the Order, OrderItem and OrderStatusHistory models.
Orders carry the full settlement breakdown (subtotal, delivery charge,
discount and reward deductions) guarded by a database check that keeps
the total consistent, plus the shipping aggregator fields updated by the
shipping webhook.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.database.base import BaseModel, JSONType, Money, enum_values
from storefront.services.orders.enums import OrderStatus, PaymentOption, PaymentStatus

if TYPE_CHECKING:
    from storefront.database.models.user import User


class Order(BaseModel):
    """
    Customer order with settlement breakdown and shipping state.

    Attributes:
        order_number: Unique human readable order number
        user_id: Customer who placed the order
        status: Current lifecycle status
        payment_status: Payment state reported by the gateway
        payment_option: Cash on delivery or online payment
        address_id: Delivery address reference
        subtotal: Sum of item price snapshots times quantity
        delivery_charge: Final delivery charge after the free delivery rule
        discount_code: Discount code applied, if any
        discount_amount: Amount deducted by the discount code
        reward_points_redeemed: Reward points spent on this order
        reward_discount_amount: Amount deducted by redeemed reward points
        total: subtotal + delivery_charge - discount_amount - reward_discount_amount
    """

    __tablename__ = "orders"

    order_number: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        comment="Unique order number",
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="Customer who placed the order",
    )

    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(
            OrderStatus,
            name="order_status",
            values_callable=enum_values,
            create_constraint=True,
        ),
        nullable=False,
        default=OrderStatus.CONFIRMED,
        comment="Current order status",
    )

    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(
            PaymentStatus,
            name="payment_status",
            values_callable=enum_values,
            create_constraint=True,
        ),
        nullable=False,
        default=PaymentStatus.PENDING,
        comment="Current payment status",
    )

    payment_option: Mapped[PaymentOption] = mapped_column(
        SQLEnum(
            PaymentOption,
            name="payment_option",
            values_callable=enum_values,
            create_constraint=True,
        ),
        nullable=False,
        default=PaymentOption.CASH_ON_DELIVERY,
    )

    address_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        comment="Delivery address reference",
    )

    # Settlement
    subtotal: Mapped[Decimal] = mapped_column(Money, nullable=False)

    delivery_charge: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        default=Decimal("0.00"),
    )

    discount_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    discount_amount: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        default=Decimal("0.00"),
    )

    reward_points_redeemed: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    reward_discount_amount: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        default=Decimal("0.00"),
    )

    total: Mapped[Decimal] = mapped_column(Money, nullable=False)

    payment_reference: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Gateway payment reference",
    )

    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Shipping aggregator state
    shipment_order_ref: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        unique=True,
        comment="Order reference registered with the shipping aggregator",
    )
    shipment_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    awb_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    courier_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    shipping_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    shipping_history: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Raw shipping status events",
    )
    pickup_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    delivered_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    shipping_updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Status timestamps
    processing_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    shipped_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    delivered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    returned_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    user: Mapped["User"] = relationship(
        "User",
        back_populates="orders",
        lazy="selectin",
    )

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    status_history: Mapped[list["OrderStatusHistory"]] = relationship(
        "OrderStatusHistory",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderStatusHistory.created_at",
    )

    __table_args__ = (
        CheckConstraint(
            "ABS(total - (subtotal + delivery_charge - discount_amount "
            "- reward_discount_amount)) < 0.01",
            name="ck_orders_total_matches_breakdown",
        ),
        CheckConstraint("total >= 0", name="ck_orders_total_non_negative"),
        CheckConstraint("subtotal >= 0", name="ck_orders_subtotal_non_negative"),
        CheckConstraint(
            "discount_amount >= 0 AND reward_discount_amount >= 0",
            name="ck_orders_deductions_non_negative",
        ),
        Index("ix_orders_user_status", "user_id", "status"),
        Index("ix_orders_status_created", "status", "created_at"),
        {"comment": "Customer orders"},
    )

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)


class OrderItem(BaseModel):
    """Order line with product name and price snapshots."""

    __tablename__ = "order_items"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
    )

    vendor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    product_name: Mapped[str] = mapped_column(String(255), nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(Money, nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    order: Mapped[Order] = relationship(Order, back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_order_items_unit_price_non_negative"),
    )

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class OrderStatusHistory(BaseModel):
    """Audit trail of order status changes."""

    __tablename__ = "order_status_history"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    from_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    to_status: Mapped[str] = mapped_column(String(20), nullable=False)

    source: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="checkout, admin, customer, shipping_webhook, scheduler or payment",
    )

    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        comment="User that triggered the change, if any",
    )

    order: Mapped[Order] = relationship(Order, back_populates="status_history")
