"""
Referral code model.

Referral codes credit reward points to the user that applies them and
are the source of reward accrual.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from storefront.database.base import BaseModel


class Referral(BaseModel):
    """Referral code crediting reward points."""

    __tablename__ = "referrals"

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    reward_points: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Points credited to the user applying the code",
    )

    expiry_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    max_uses: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Maximum number of uses (NULL = unlimited)",
    )

    used_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("reward_points > 0", name="ck_referrals_reward_points_positive"),
        CheckConstraint("used_count >= 0", name="ck_referrals_used_count_non_negative"),
        CheckConstraint(
            "max_uses IS NULL OR max_uses > 0",
            name="ck_referrals_max_uses_positive",
        ),
        {"comment": "Referral codes"},
    )
