"""Shipping aggregator webhook endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends

from storefront.api.deps import OrderServiceDep, verify_webhook_token
from storefront.core.logging import get_logger
from storefront.schemas.common import ApiResponse
from storefront.schemas.shipping import ShippingWebhookPayload, ShippingWebhookResponse
from storefront.services.orders.service import ShippingUpdate

logger = get_logger(__name__)

router = APIRouter(prefix="/shipping", tags=["shipping"])


@router.post(
    "/webhook",
    response_model=ApiResponse[ShippingWebhookResponse],
    summary="Shipping status webhook",
)
async def shipping_webhook(
    payload: ShippingWebhookPayload,
    service: OrderServiceDep,
    _: Annotated[None, Depends(verify_webhook_token)],
) -> ApiResponse[ShippingWebhookResponse]:
    logger.info(
        "Shipping webhook received",
        shipment_order_ref=str(payload.order_id),
        current_status=payload.current_status,
        awb=payload.awb,
    )

    order, changed = await service.apply_shipping_update(
        ShippingUpdate(
            shipment_order_ref=str(payload.order_id),
            status=payload.current_status,
            shipment_id=str(payload.shipment_id) if payload.shipment_id is not None else None,
            awb_code=payload.awb,
            courier_name=payload.courier_name,
            pickup_date=payload.pickup_date,
            delivered_date=payload.delivered_date,
            event_time=payload.current_timestamp,
            scans=[scan.model_dump(exclude_none=True) for scan in payload.scans],
        )
    )

    return ApiResponse(
        message="Webhook processed successfully",
        data=ShippingWebhookResponse(
            order_id=str(order.id),
            status=order.status.value,
            status_changed=changed,
        ),
    )
