"""
Catalog and cart models.

Defines categories, vendor products with their stock level and per-line
delivery charge, and the cart items that checkout clears once an order
has been placed.
"""

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.database.base import BaseModel, Money


class Category(BaseModel):
    """Product category used for category-targeted discounts."""

    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(120), nullable=False)

    slug: Mapped[str] = mapped_column(
        String(140),
        nullable=False,
        unique=True,
        comment="URL friendly category identifier",
    )


class Product(BaseModel):
    """
    Sellable product owned by a vendor.

    Attributes:
        name: Product name, snapshotted into order items
        category_id: Category the product belongs to
        vendor_id: Vendor account that sells the product
        price: Current unit price
        delivery_charge: Shipping charge for one order line of this product
        stock: Units available, never negative
        is_active: Whether the product can be ordered
    """

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    vendor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Vendor account selling the product",
    )

    price: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        comment="Current unit price",
    )

    delivery_charge: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        default=Decimal("0.00"),
        comment="Delivery charge applied per order line",
    )

    stock: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Units in stock",
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    category: Mapped[Optional[Category]] = relationship(Category, lazy="selectin")

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        CheckConstraint(
            "delivery_charge >= 0",
            name="ck_products_delivery_charge_non_negative",
        ),
        {"comment": "Vendor products"},
    )


class CartItem(BaseModel):
    """Product line in a user's cart."""

    __tablename__ = "cart_items"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("user_id", "product_id", name="uq_cart_items_user_product"),
        CheckConstraint("quantity > 0", name="ck_cart_items_quantity_positive"),
        Index("ix_cart_items_user_id", "user_id"),
    )
