"""Delivery charge status endpoint."""

from decimal import Decimal

from fastapi import APIRouter, Query

from storefront.schemas.common import ApiResponse
from storefront.schemas.delivery import DeliveryStatusResponse
from storefront.services.delivery.policy import get_delivery_status

router = APIRouter(prefix="/delivery", tags=["delivery"])


@router.get(
    "/status",
    response_model=ApiResponse[DeliveryStatusResponse],
    summary="Free delivery status for a cart subtotal",
)
async def delivery_status(
    subtotal: Decimal = Query(..., ge=0),
    delivery_charge: Decimal = Query(Decimal("0"), ge=0, description="Sum of item delivery charges"),
) -> ApiResponse[DeliveryStatusResponse]:
    status = get_delivery_status(subtotal, delivery_charge)
    return ApiResponse(
        message=status.message,
        data=DeliveryStatusResponse(
            is_free=status.is_free,
            amount_needed=float(status.amount_needed),
            final_charge=float(status.final_charge),
            original_charge=float(status.original_charge),
            threshold=float(status.threshold),
            message=status.message,
        ),
    )
