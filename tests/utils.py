"""Helpers shared by the test modules."""

from storefront.core.security import Principal, create_access_token
from storefront.database.models import User


def principal_for(user: User) -> Principal:
    return Principal(user_id=user.id, role=user.role)


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}
