"""
Order Pydantic schemas for API request/response validation.

This module defines schemas for checkout, admin status changes, customer
cancellation, payment outcome events, shipment linking and the order
representation returned by every order endpoint.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storefront.services.orders.enums import OrderStatus, PaymentOption, PaymentStatus


class OrderItemRequest(BaseModel):
    """Product and quantity requested at checkout."""

    product_id: UUID = Field(..., description="Product to order")
    quantity: int = Field(..., gt=0, le=1000, description="Units to order")


class OrderCreateRequest(BaseModel):
    """Checkout request."""

    model_config = ConfigDict(str_strip_whitespace=True)

    items: list[OrderItemRequest] = Field(..., min_length=1, max_length=100)
    address_id: Optional[str] = Field(None, max_length=64)
    payment_option: PaymentOption = Field(
        PaymentOption.CASH_ON_DELIVERY,
        description="cash-on-delivery or online",
    )
    order_id: Optional[str] = Field(
        None,
        min_length=1,
        max_length=64,
        description="Client generated order number; replays return the existing order",
    )
    discount_code: Optional[str] = Field(None, max_length=50)
    reward_points: Optional[int] = Field(None, ge=0, description="Reward points to redeem")

    @field_validator("items")
    @classmethod
    def validate_unique_products(cls, v: list[OrderItemRequest]) -> list[OrderItemRequest]:
        """Each product may appear only once."""
        product_ids = [item.product_id for item in v]
        if len(product_ids) != len(set(product_ids)):
            raise ValueError("Each product may only appear once in an order")
        return v


class OrderStatusUpdateRequest(BaseModel):
    """Admin status change."""

    status: OrderStatus
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v


class OrderCancelRequest(BaseModel):
    """Customer cancellation."""

    reason: Optional[str] = Field(None, max_length=500)


class PaymentOutcomeRequest(BaseModel):
    """Payment gateway result for an online order."""

    success: bool
    reference: Optional[str] = Field(None, max_length=255)


class ShipmentAttachRequest(BaseModel):
    """Link an order to its shipment at the shipping aggregator."""

    model_config = ConfigDict(str_strip_whitespace=True)

    shipment_order_ref: str = Field(..., min_length=1, max_length=100)
    shipment_id: Optional[str] = Field(None, max_length=100)
    awb_code: Optional[str] = Field(None, max_length=100)
    courier_name: Optional[str] = Field(None, max_length=100)


class OrderItemResponse(BaseModel):
    """Order line in responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: Optional[UUID]
    vendor_id: Optional[UUID]
    product_name: str
    unit_price: float
    quantity: int


class OrderStatusHistoryResponse(BaseModel):
    """Status history entry in responses."""

    model_config = ConfigDict(from_attributes=True)

    from_status: Optional[str]
    to_status: str
    source: str
    reason: Optional[str]
    created_at: datetime


class OrderResponse(BaseModel):
    """Order representation returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_number: str
    user_id: UUID
    status: OrderStatus
    payment_status: PaymentStatus
    payment_option: PaymentOption
    address_id: Optional[str]
    subtotal: float
    delivery_charge: float
    discount_code: Optional[str]
    discount_amount: float
    reward_points_redeemed: int
    reward_discount_amount: float
    total: float
    cancellation_reason: Optional[str]
    shipment_order_ref: Optional[str]
    awb_code: Optional[str]
    courier_name: Optional[str]
    shipping_status: Optional[str]
    items: list[OrderItemResponse]
    status_history: list[OrderStatusHistoryResponse]
    created_at: datetime
    updated_at: datetime
