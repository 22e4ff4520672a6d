"""
Reward point ledger.

Reward points convert into an order discount at a fixed rate (ten points
per rupee, rounded down). Every balance change is a conditional UPDATE
evaluated by the database so concurrent redemptions can never drive a
balance below zero.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import get_settings
from storefront.core.errors import BusinessRuleError, NotFoundError, ValidationFailedError
from storefront.core.logging import get_logger
from storefront.database.base import utcnow
from storefront.database.models.referral import Referral
from storefront.database.models.user import User

logger = get_logger(__name__)


class RewardError(BusinessRuleError):
    """Base exception for reward ledger rule violations."""


class InsufficientPointsError(RewardError):
    """Raised when the balance does not cover the redemption."""


class RewardExceedsTotalError(RewardError):
    """Raised when the reward discount would exceed the order total."""


class ReferralAlreadyUsedError(RewardError):
    """Raised when the user has already applied a referral code."""


class ReferralNotFoundError(NotFoundError):
    """Raised when a referral code is unknown, inactive, expired or exhausted."""


@dataclass(frozen=True)
class RedemptionResult:
    """Outcome of a reward point redemption."""

    points_redeemed: int
    discount_amount: Decimal
    remaining_points: int


@dataclass(frozen=True)
class ReferralResult:
    """Outcome of applying a referral code."""

    code: str
    points_credited: int
    balance: int


def points_to_discount(points: int, points_per_rupee: Optional[int] = None) -> Decimal:
    """Discount earned by redeeming ``points``, rounded down to a whole rupee."""
    rate = points_per_rupee or get_settings().reward_points_per_rupee
    return Decimal(points // rate)


class RewardLedger:
    """Reads and changes user reward point balances."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_user(self, user_id: uuid.UUID) -> User:
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found", user_id=str(user_id))
        return user

    async def get_balance(self, user_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(User.reward_points).where(User.id == user_id)
        )
        balance = result.scalar_one_or_none()
        if balance is None:
            raise NotFoundError("User not found", user_id=str(user_id))
        return balance

    async def redeem(
        self,
        user_id: uuid.UUID,
        points: int,
        order_total: Optional[Decimal] = None,
        commit: bool = True,
    ) -> RedemptionResult:
        """
        Redeem reward points for a discount.

        Args:
            user_id: Account whose points are spent
            points: Number of points to redeem
            order_total: Amount the discount may not exceed, if known
            commit: Commit the balance change; checkout passes False to
                keep the redemption inside the order transaction

        Raises:
            ValidationFailedError: If points is not positive
            NotFoundError: If the user does not exist
            InsufficientPointsError: If the balance is too low
            RewardExceedsTotalError: If the discount exceeds order_total
        """
        if points is None or points <= 0:
            raise ValidationFailedError("Points to redeem must be a positive number", points=points)

        user = await self._get_user(user_id)
        if user.reward_points < points:
            raise InsufficientPointsError(
                "Not enough reward points",
                user_id=str(user_id),
                balance=user.reward_points,
                requested=points,
            )

        discount_amount = points_to_discount(points)
        if order_total is not None and discount_amount > order_total:
            raise RewardExceedsTotalError(
                "Reward discount cannot exceed the order total",
                discount_amount=str(discount_amount),
                order_total=str(order_total),
            )

        result = await self.session.execute(
            update(User)
            .where(User.id == user_id, User.reward_points >= points)
            .values(reward_points=User.reward_points - points)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InsufficientPointsError("Not enough reward points", user_id=str(user_id))

        await self.session.refresh(user, ["reward_points"])
        remaining = user.reward_points

        if commit:
            await self.session.commit()

        logger.info(
            "Reward points redeemed",
            user_id=str(user_id),
            points=points,
            discount_amount=str(discount_amount),
            remaining_points=remaining,
        )

        return RedemptionResult(
            points_redeemed=points,
            discount_amount=discount_amount,
            remaining_points=remaining,
        )

    async def accrue(self, user_id: uuid.UUID, points: int, commit: bool = True) -> int:
        """
        Credit reward points and return the new balance.

        Raises:
            ValidationFailedError: If points is not positive
            NotFoundError: If the user does not exist
        """
        if points <= 0:
            raise ValidationFailedError("Points to credit must be a positive number", points=points)

        result = await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(reward_points=User.reward_points + points)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError("User not found", user_id=str(user_id))

        balance = await self.get_balance(user_id)
        if commit:
            await self.session.commit()

        logger.info("Reward points credited", user_id=str(user_id), points=points, balance=balance)
        return balance

    async def apply_referral(self, user_id: uuid.UUID, code: str) -> ReferralResult:
        """
        Apply a referral code, crediting its reward points once per user.

        Raises:
            ValidationFailedError: If code is empty
            NotFoundError: If the user does not exist
            ReferralAlreadyUsedError: If the user already applied a referral
            ReferralNotFoundError: If the code is not currently usable
        """
        code = (code or "").strip()
        if not code:
            raise ValidationFailedError("Referral code is required")

        user = await self._get_user(user_id)
        if user.referral_code_used:
            raise ReferralAlreadyUsedError(
                "A referral code has already been applied to this account",
                user_id=str(user_id),
            )

        now = utcnow()
        usable = (
            Referral.code == code,
            Referral.is_active.is_(True),
            or_(Referral.expiry_date.is_(None), Referral.expiry_date > now),
            or_(Referral.max_uses.is_(None), Referral.used_count < Referral.max_uses),
        )

        referral = (
            await self.session.execute(select(Referral).where(*usable))
        ).scalar_one_or_none()
        if referral is None:
            raise ReferralNotFoundError("Referral not found or expired", code=code)

        claimed = await self.session.execute(
            update(Referral)
            .where(Referral.id == referral.id, *usable[1:])
            .values(used_count=Referral.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount == 0:
            await self.session.rollback()
            raise ReferralNotFoundError("Referral not found or expired", code=code)

        credited = await self.session.execute(
            update(User)
            .where(User.id == user_id, User.referral_code_used.is_(None))
            .values(
                referral_code_used=code,
                reward_points=User.reward_points + referral.reward_points,
            )
            .execution_options(synchronize_session=False)
        )
        if credited.rowcount == 0:
            await self.session.rollback()
            raise ReferralAlreadyUsedError(
                "A referral code has already been applied to this account",
                user_id=str(user_id),
            )

        await self.session.refresh(user, ["reward_points", "referral_code_used"])
        await self.session.commit()

        logger.info(
            "Referral applied",
            user_id=str(user_id),
            referral_code=code,
            points=referral.reward_points,
        )

        return ReferralResult(
            code=code,
            points_credited=referral.reward_points,
            balance=user.reward_points,
        )
