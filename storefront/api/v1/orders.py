"""
Order API endpoints.

Checkout, order queries, admin lifecycle operations and customer
cancellation. Service errors propagate to the application exception
handlers, which render them into the response envelope.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from storefront.api.deps import CurrentAdmin, CurrentPrincipal, OrderServiceDep
from storefront.core.logging import get_logger
from storefront.schemas.common import ApiResponse
from storefront.schemas.orders import (
    OrderCancelRequest,
    OrderCreateRequest,
    OrderResponse,
    OrderStatusUpdateRequest,
    PaymentOutcomeRequest,
    ShipmentAttachRequest,
)
from storefront.services.orders.enums import OrderStatus
from storefront.services.orders.service import OrderLine

logger = get_logger(__name__)

router = APIRouter(tags=["orders"])


@router.post(
    "/order",
    response_model=ApiResponse[OrderResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Place an order",
)
async def create_order(
    request: OrderCreateRequest,
    principal: CurrentPrincipal,
    service: OrderServiceDep,
    response: Response,
) -> ApiResponse[OrderResponse]:
    """
    Place an order for the authenticated customer.

    Replaying a request with the same ``order_id`` returns the existing
    order with status 200.
    """
    logger.info(
        "Creating order",
        user_id=str(principal.user_id),
        item_count=len(request.items),
        has_discount=bool(request.discount_code),
        reward_points=request.reward_points,
    )

    order, created = await service.create_order(
        principal,
        items=[OrderLine(item.product_id, item.quantity) for item in request.items],
        payment_option=request.payment_option,
        address_id=request.address_id,
        order_number=request.order_id,
        discount_code=request.discount_code,
        reward_points=request.reward_points,
    )

    if not created:
        response.status_code = status.HTTP_200_OK
        return ApiResponse(
            message="Order already placed",
            data=OrderResponse.model_validate(order),
        )

    return ApiResponse(
        message="Order placed successfully",
        data=OrderResponse.model_validate(order),
    )


@router.get(
    "/order",
    response_model=ApiResponse[list[OrderResponse]],
    summary="List orders",
)
async def list_orders(
    principal: CurrentPrincipal,
    service: OrderServiceDep,
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    user_id: Optional[UUID] = Query(None, description="Admins only: orders of one user"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> ApiResponse[list[OrderResponse]]:
    orders = await service.list_orders(
        principal,
        status=status_filter,
        user_id=user_id,
        limit=limit,
        offset=offset,
    )
    return ApiResponse(data=[OrderResponse.model_validate(order) for order in orders])


@router.get(
    "/order/byId/{order_id}",
    response_model=ApiResponse[OrderResponse],
    summary="Get order",
)
async def get_order(
    order_id: UUID,
    principal: CurrentPrincipal,
    service: OrderServiceDep,
) -> ApiResponse[OrderResponse]:
    order = await service.get_order(principal, order_id)
    return ApiResponse(data=OrderResponse.model_validate(order))


@router.patch(
    "/order/byId/{order_id}",
    response_model=ApiResponse[OrderResponse],
    summary="Update order status",
)
async def update_order_status(
    order_id: UUID,
    request: OrderStatusUpdateRequest,
    principal: CurrentAdmin,
    service: OrderServiceDep,
) -> ApiResponse[OrderResponse]:
    """Admin status change; cancelling or shipping emails the customer."""
    logger.info(
        "Updating order status",
        order_id=str(order_id),
        new_status=request.status.value,
        admin_id=str(principal.user_id),
    )
    order = await service.update_order_status(
        principal, order_id, request.status, reason=request.reason
    )
    return ApiResponse(
        message="Order status updated successfully",
        data=OrderResponse.model_validate(order),
    )


@router.delete(
    "/order/byId/{order_id}",
    response_model=ApiResponse[None],
    summary="Delete order",
)
async def delete_order(
    order_id: UUID,
    principal: CurrentAdmin,
    service: OrderServiceDep,
) -> ApiResponse[None]:
    await service.delete_order(principal, order_id)
    return ApiResponse(message="Order deleted successfully")


@router.put(
    "/order/byId/{order_id}/shipment",
    response_model=ApiResponse[OrderResponse],
    summary="Attach shipment",
)
async def attach_shipment(
    order_id: UUID,
    request: ShipmentAttachRequest,
    principal: CurrentAdmin,
    service: OrderServiceDep,
) -> ApiResponse[OrderResponse]:
    order = await service.attach_shipment(
        principal,
        order_id,
        shipment_order_ref=request.shipment_order_ref,
        shipment_id=request.shipment_id,
        awb_code=request.awb_code,
        courier_name=request.courier_name,
    )
    return ApiResponse(
        message="Shipment attached",
        data=OrderResponse.model_validate(order),
    )


@router.post(
    "/order/byId/{order_id}/payment",
    response_model=ApiResponse[OrderResponse],
    summary="Record payment outcome",
)
async def record_payment_outcome(
    order_id: UUID,
    request: PaymentOutcomeRequest,
    principal: CurrentAdmin,
    service: OrderServiceDep,
) -> ApiResponse[OrderResponse]:
    order = await service.record_payment_outcome(
        principal, order_id, success=request.success, reference=request.reference
    )
    return ApiResponse(
        message="Payment recorded" if request.success else "Payment failure recorded",
        data=OrderResponse.model_validate(order),
    )


@router.patch(
    "/user/order/cancel/{order_id}",
    response_model=ApiResponse[OrderResponse],
    summary="Cancel own order",
)
async def cancel_order(
    order_id: UUID,
    principal: CurrentPrincipal,
    service: OrderServiceDep,
    request: Optional[OrderCancelRequest] = None,
) -> ApiResponse[OrderResponse]:
    order = await service.cancel_order(
        principal, order_id, reason=request.reason if request else None
    )
    return ApiResponse(
        message="Order cancelled successfully",
        data=OrderResponse.model_validate(order),
    )
