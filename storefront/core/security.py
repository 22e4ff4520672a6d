"""
JWT access token handling and the authenticated principal.

Authentication itself (sign-in, sessions, passwords) is owned by the
identity provider in front of this service. Here tokens are only issued
for service-to-service use and decoded into a ``Principal`` that is
passed explicitly into every service call.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from storefront.core.config import get_settings
from storefront.core.errors import AuthenticationError
from storefront.core.logging import get_logger
from storefront.database.models.user import UserRole

logger = get_logger(__name__)


@dataclass(frozen=True)
class Principal:
    """Authenticated caller of a storefront operation."""

    user_id: uuid.UUID
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_vendor(self) -> bool:
        return self.role == UserRole.VENDOR

    def owns(self, user_id: Optional[uuid.UUID]) -> bool:
        """Check whether the resource owner is this principal."""
        return user_id is not None and user_id == self.user_id


def create_access_token(
    user_id: uuid.UUID,
    role: UserRole,
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Create a signed JWT access token.

    Args:
        user_id: Subject of the token
        role: Role claim
        expires_delta: Optional custom lifetime
        extra_claims: Additional claims to embed

    Returns:
        Encoded JWT string
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta
        or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    )

    claims: Dict[str, Any] = dict(extra_claims or {})
    claims.update(
        {
            "sub": str(user_id),
            "role": role.value,
            "iat": now,
            "exp": expire,
            "type": "access",
        }
    )

    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Principal:
    """
    Decode and validate an access token.

    Args:
        token: Encoded JWT string

    Returns:
        Principal described by the token

    Raises:
        AuthenticationError: If the token is invalid, expired or malformed
    """
    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as e:
        logger.warning(
            "Token validation failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise AuthenticationError("Authentication required") from e

    if payload.get("type") != "access":
        raise AuthenticationError("Authentication required", reason="wrong_token_type")

    try:
        user_id = uuid.UUID(payload["sub"])
        role = UserRole(payload.get("role", UserRole.CUSTOMER.value))
    except (KeyError, ValueError) as e:
        logger.warning("Token carries malformed claims", error=str(e))
        raise AuthenticationError("Authentication required") from e

    return Principal(user_id=user_id, role=role)
