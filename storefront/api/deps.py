"""
FastAPI dependencies for authentication, authorization and services.

The authenticated caller is resolved once per request into a
``Principal`` and passed explicitly into every service call.
"""

import secrets
from typing import Annotated, Optional

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import get_settings
from storefront.core.errors import AuthenticationError, AuthorizationError
from storefront.core.logging import get_logger, set_user_id
from storefront.core.security import Principal, decode_access_token
from storefront.database.connection import get_db
from storefront.services.notifications.service import (
    NotificationService,
    get_notification_service,
)
from storefront.services.orders.scheduler import OrderAutoProcessor, get_auto_processor
from storefront.services.orders.service import OrderService

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_principal(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> Principal:
    """
    Resolve the bearer token into the calling principal.

    Raises:
        AuthenticationError: If no valid bearer token was sent
    """
    if credentials is None:
        logger.warning("Authentication failed: No credentials provided")
        raise AuthenticationError("Authentication required")

    principal = decode_access_token(credentials.credentials)
    set_user_id(str(principal.user_id))
    return principal


async def get_current_admin(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> Principal:
    """
    Require an admin principal.

    Raises:
        AuthorizationError: If the caller is not an admin
    """
    if not principal.is_admin:
        logger.warning(
            "Authorization failed: admin required",
            user_id=str(principal.user_id),
            role=principal.role.value,
        )
        raise AuthorizationError("Admin access required")
    return principal


async def verify_webhook_token(
    x_webhook_token: Annotated[Optional[str], Header()] = None,
) -> None:
    """
    Check the shared webhook token when one is configured.

    Raises:
        AuthenticationError: If the token is missing or wrong
    """
    expected = get_settings().shipping_webhook_token
    if not expected:
        return
    if x_webhook_token is None or not secrets.compare_digest(x_webhook_token, expected):
        logger.warning("Shipping webhook rejected: invalid token")
        raise AuthenticationError("Invalid webhook token")


def get_order_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    notification_service: Annotated[NotificationService, Depends(get_notification_service)],
    auto_processor: Annotated[OrderAutoProcessor, Depends(get_auto_processor)],
) -> OrderService:
    return OrderService(
        db,
        notification_service=notification_service,
        auto_processor=auto_processor,
    )


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
CurrentAdmin = Annotated[Principal, Depends(get_current_admin)]
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
