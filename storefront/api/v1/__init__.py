"""
Version 1 API routers.

``api_router`` bundles every router and is mounted under the configured
API prefix.
"""

from fastapi import APIRouter

from storefront.api.v1 import delivery, discounts, orders, rewards, shipping

api_router = APIRouter()
api_router.include_router(orders.router)
api_router.include_router(discounts.router)
api_router.include_router(rewards.router)
api_router.include_router(shipping.router)
api_router.include_router(delivery.router)

__all__ = ["api_router"]
