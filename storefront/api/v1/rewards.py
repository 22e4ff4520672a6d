"""Reward point redemption, balance and referral endpoints."""

from fastapi import APIRouter

from storefront.api.deps import CurrentPrincipal, DatabaseSession
from storefront.core.errors import AuthorizationError
from storefront.core.logging import get_logger
from storefront.schemas.common import ApiResponse
from storefront.schemas.rewards import (
    ReferralApplyRequest,
    ReferralApplyResponse,
    RewardBalanceResponse,
    RewardRedeemRequest,
    RewardRedeemResponse,
)
from storefront.services.rewards.ledger import RewardLedger, points_to_discount

logger = get_logger(__name__)

router = APIRouter(tags=["rewards"])


@router.post(
    "/rewards/redeem",
    response_model=ApiResponse[RewardRedeemResponse],
    summary="Redeem reward points",
)
async def redeem_rewards(
    request: RewardRedeemRequest,
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> ApiResponse[RewardRedeemResponse]:
    """Redeem the caller's points; admins may redeem on behalf of a user."""
    user_id = request.user_id or principal.user_id
    if user_id != principal.user_id and not principal.is_admin:
        raise AuthorizationError("You may only redeem your own reward points")

    result = await RewardLedger(db).redeem(
        user_id,
        request.points,
        order_total=request.order_total,
    )

    return ApiResponse(
        message="Reward points redeemed successfully",
        data=RewardRedeemResponse(
            points_redeemed=result.points_redeemed,
            discount_amount=float(result.discount_amount),
            remaining_points=result.remaining_points,
        ),
    )


@router.get(
    "/rewards/balance",
    response_model=ApiResponse[RewardBalanceResponse],
    summary="Reward point balance",
)
async def get_reward_balance(
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> ApiResponse[RewardBalanceResponse]:
    balance = await RewardLedger(db).get_balance(principal.user_id)
    return ApiResponse(
        data=RewardBalanceResponse(
            user_id=principal.user_id,
            reward_points=balance,
            discount_value=float(points_to_discount(balance)),
        )
    )


@router.post(
    "/referrals/apply",
    response_model=ApiResponse[ReferralApplyResponse],
    summary="Apply a referral code",
)
async def apply_referral(
    request: ReferralApplyRequest,
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> ApiResponse[ReferralApplyResponse]:
    result = await RewardLedger(db).apply_referral(principal.user_id, request.code)
    return ApiResponse(
        message=f"Referral applied, {result.points_credited} reward points credited",
        data=ReferralApplyResponse(
            code=result.code,
            points_credited=result.points_credited,
            balance=result.balance,
        ),
    )
