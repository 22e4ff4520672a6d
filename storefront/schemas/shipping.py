"""
Shipping aggregator webhook payload.

Field names follow the aggregator's tracking webhook.
"""

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ShippingScan(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: Optional[str] = None
    activity: Optional[str] = None
    location: Optional[str] = None
    date: Optional[str] = None


class ShippingWebhookPayload(BaseModel):
    """Tracking update pushed by the shipping aggregator."""

    model_config = ConfigDict(extra="ignore")

    order_id: Union[str, int] = Field(..., description="Aggregator order reference")
    current_status: str = Field(..., min_length=1)
    shipment_id: Optional[Union[str, int]] = None
    awb: Optional[str] = None
    courier_name: Optional[str] = None
    pickup_date: Optional[datetime] = None
    delivered_date: Optional[datetime] = None
    current_timestamp: Optional[datetime] = None
    scans: list[ShippingScan] = Field(default_factory=list)

    @field_validator("pickup_date", "delivered_date", "current_timestamp", mode="before")
    @classmethod
    def empty_date_as_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ShippingWebhookResponse(BaseModel):
    order_id: str
    status: str
    status_changed: bool
