"""
Database models package.

Importing this package registers every table on ``Base.metadata``.
"""

from storefront.database.base import Base, BaseModel
from storefront.database.models.discount import (
    Discount,
    DiscountTargetType,
    DiscountType,
    UsedDiscount,
)
from storefront.database.models.order import Order, OrderItem, OrderStatusHistory
from storefront.database.models.product import CartItem, Category, Product
from storefront.database.models.referral import Referral
from storefront.database.models.user import User, UserRole

__all__ = [
    "Base",
    "BaseModel",
    "CartItem",
    "Category",
    "Discount",
    "DiscountTargetType",
    "DiscountType",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "Product",
    "Referral",
    "UsedDiscount",
    "User",
    "UserRole",
]
