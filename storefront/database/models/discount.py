"""
Discount code database models.

Discount defines a percentage or fixed discount, either restricted to a
product category or applied to the whole order, inside a validity
window. UsedDiscount records that a user has claimed a code; the unique
constraint on (user_id, discount_code) is the one-time-use guard.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, validates

from storefront.database.base import BaseModel, Money, enum_values, utcnow


class DiscountType(str, Enum):
    """Enumeration of discount types."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"


class DiscountTargetType(str, Enum):
    """What part of the order a discount applies to."""

    CATEGORY = "category"
    ORDER = "order"


class Discount(BaseModel):
    """
    Discount code definition.

    Attributes:
        code: Code customers enter at checkout, stored upper case and
            unique regardless of case
        discount_type: Percentage or fixed amount
        discount_value: Percentage (0-100) or amount
        target_type: Category restricted or whole order
        category_id: Category the discount applies to
        vendor_id: Vendor that issued the discount
        start_date: Start of validity window
        end_date: End of validity window
        is_active: Whether the code can currently be used
    """

    __tablename__ = "discounts"

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Discount code, stored upper case",
    )

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    discount_type: Mapped[DiscountType] = mapped_column(
        SQLEnum(
            DiscountType,
            name="discount_type",
            values_callable=enum_values,
            create_constraint=True,
        ),
        nullable=False,
    )

    discount_value: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        comment="Percentage or fixed amount",
    )

    target_type: Mapped[DiscountTargetType] = mapped_column(
        SQLEnum(
            DiscountTargetType,
            name="discount_target_type",
            values_callable=enum_values,
            create_constraint=True,
        ),
        nullable=False,
        default=DiscountTargetType.CATEGORY,
    )

    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
    )

    vendor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Start of validity window",
    )

    end_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="End of validity window",
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "discount_value > 0",
            name="ck_discounts_discount_value_positive",
        ),
        CheckConstraint(
            "(discount_type = 'percentage' AND discount_value <= 100) OR "
            "(discount_type = 'fixed')",
            name="ck_discounts_percentage_max_100",
        ),
        CheckConstraint(
            "end_date > start_date",
            name="ck_discounts_valid_date_range",
        ),
        CheckConstraint(
            "target_type = 'order' OR category_id IS NOT NULL",
            name="ck_discounts_category_required",
        ),
        Index("ix_discounts_active_window", "is_active", "start_date", "end_date"),
        {"comment": "Discount codes"},
    )

    @validates("code")
    def normalize_code(self, key: str, value: str) -> str:
        return value.strip().upper()

    @property
    def label(self) -> str:
        """Human readable discount, e.g. ``10%`` or ``₹100``."""
        value = self.discount_value.normalize()
        if value == value.to_integral_value():
            value = value.quantize(Decimal("1"))
        if self.discount_type == DiscountType.PERCENTAGE:
            return f"{value}%"
        return f"₹{value}"


# Codes are matched case-insensitively, so uniqueness ignores case too
Index("uq_discounts_code_upper", func.upper(Discount.code), unique=True)


class UsedDiscount(BaseModel):
    """Record of a user claiming a discount code."""

    __tablename__ = "used_discounts"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    discount_code: Mapped[str] = mapped_column(String(50), nullable=False)

    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="SET NULL"),
        nullable=True,
        comment="Order the claim was settled against",
    )

    used_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "discount_code",
            name="uq_used_discounts_user_code",
        ),
        Index("ix_used_discounts_discount_code", "discount_code"),
    )
