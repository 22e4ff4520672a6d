"""Discount code validation schemas."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from storefront.schemas.orders import OrderItemRequest


class DiscountValidateRequest(BaseModel):
    """Discount code and the cart it should apply to."""

    model_config = ConfigDict(str_strip_whitespace=True)

    code: Optional[str] = Field(None, max_length=50)
    items: list[OrderItemRequest] = Field(default_factory=list, max_length=100)


class DiscountSummary(BaseModel):
    id: UUID
    code: str
    type: str
    value: float
    target_type: str


class DiscountValidateResponse(BaseModel):
    """Evaluated discount for the cart."""

    discount: DiscountSummary
    applicable_subtotal: float
    discount_amount: float
