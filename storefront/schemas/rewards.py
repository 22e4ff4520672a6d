"""Reward point and referral schemas."""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class RewardRedeemRequest(BaseModel):
    """Reward point redemption."""

    points: int = Field(..., description="Reward points to redeem")
    order_total: Optional[Decimal] = Field(
        None,
        ge=0,
        description="Order total the reward discount may not exceed",
    )
    user_id: Optional[UUID] = Field(
        None,
        description="Account to redeem for; admins only, defaults to the caller",
    )


class RewardRedeemResponse(BaseModel):
    points_redeemed: int
    discount_amount: float
    remaining_points: int


class RewardBalanceResponse(BaseModel):
    user_id: UUID
    reward_points: int
    discount_value: float = Field(..., description="Discount the whole balance is worth")


class ReferralApplyRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    code: str = Field(..., max_length=50)


class ReferralApplyResponse(BaseModel):
    code: str
    points_credited: int
    balance: int
