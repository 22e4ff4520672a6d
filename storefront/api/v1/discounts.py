"""Discount code validation endpoint."""

from fastapi import APIRouter

from storefront.api.deps import CurrentPrincipal, DatabaseSession
from storefront.core.logging import get_logger
from storefront.schemas.common import ApiResponse
from storefront.schemas.discounts import (
    DiscountSummary,
    DiscountValidateRequest,
    DiscountValidateResponse,
)
from storefront.services.discounts.evaluator import DiscountEvaluator, calculation_summary

logger = get_logger(__name__)

router = APIRouter(prefix="/discounts", tags=["discounts"])


@router.post(
    "/validate",
    response_model=ApiResponse[DiscountValidateResponse],
    summary="Validate and claim a discount code",
)
async def validate_discount(
    request: DiscountValidateRequest,
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> ApiResponse[DiscountValidateResponse]:
    """
    Evaluate a discount code against the caller's cart.

    A successful validation claims the code for the caller; the claim is
    settled against the next order that uses the code.
    """
    evaluator = DiscountEvaluator(db)
    calculation = await evaluator.validate_code(
        principal.user_id,
        request.code,
        [(item.product_id, item.quantity) for item in request.items],
    )

    return ApiResponse(
        message=calculation.message,
        data=DiscountValidateResponse(
            discount=DiscountSummary(**calculation_summary(calculation)),
            applicable_subtotal=float(calculation.applicable_subtotal),
            discount_amount=float(calculation.discount_amount),
        ),
    )
