"""Delivery status schemas."""

from pydantic import BaseModel


class DeliveryStatusResponse(BaseModel):
    is_free: bool
    amount_needed: float
    final_charge: float
    original_charge: float
    threshold: float
    message: str
