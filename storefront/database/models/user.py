"""
User model with role and reward point balance.

Identity and credentials are owned by the upstream identity provider;
this table mirrors the account and carries the reward point balance
that the reward ledger settles against.
"""

import enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Enum as SQLEnum,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.database.base import BaseModel, enum_values

if TYPE_CHECKING:
    from storefront.database.models.order import Order


class UserRole(str, enum.Enum):
    """User role enumeration for role-based access control."""

    CUSTOMER = "customer"
    VENDOR = "vendor"
    ADMIN = "admin"

    @classmethod
    def from_string(cls, value: str) -> "UserRole":
        """
        Convert string to UserRole enum.

        Raises:
            ValueError: If value is not a valid role
        """
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(f"Invalid role: {value}")


class User(BaseModel):
    """
    Storefront account.

    Attributes:
        email: Unique email address used for notifications
        name: Display name
        phone: Optional contact number
        role: Customer, vendor or admin
        reward_points: Redeemable reward point balance, never negative
        referral_code_used: Referral code applied by this user, if any
        is_active: Whether the account may place orders
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        comment="User email address",
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Display name",
    )

    phone: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="Contact phone number",
    )

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(
            UserRole,
            name="user_role",
            values_callable=enum_values,
            create_constraint=True,
        ),
        nullable=False,
        default=UserRole.CUSTOMER,
        comment="User role for access control",
    )

    reward_points: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Redeemable reward point balance",
    )

    referral_code_used: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="Referral code applied by this user",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="Whether the account is active",
    )

    orders: Mapped[list["Order"]] = relationship(
        "Order",
        back_populates="user",
        lazy="raise",
    )

    __table_args__ = (
        CheckConstraint(
            "reward_points >= 0",
            name="ck_users_reward_points_non_negative",
        ),
        Index("ix_users_role", "role"),
        {"comment": "Storefront accounts"},
    )
