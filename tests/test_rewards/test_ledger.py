"""
Tests for the reward point ledger and referral codes.
"""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from storefront.core.errors import NotFoundError, ValidationFailedError
from storefront.database.base import utcnow
from storefront.database.models import Referral, User
from storefront.services.rewards.ledger import (
    InsufficientPointsError,
    ReferralAlreadyUsedError,
    ReferralNotFoundError,
    RewardExceedsTotalError,
    RewardLedger,
    points_to_discount,
)


async def stored_points(session, user_id) -> int:
    return await session.scalar(select(User.reward_points).where(User.id == user_id))


class TestPointsToDiscount:
    @pytest.mark.parametrize(
        "points,expected",
        [(0, 0), (9, 0), (10, 1), (50, 5), (59, 5), (1000, 100)],
    )
    def test_ten_points_per_rupee_rounded_down(self, points, expected):
        assert points_to_discount(points) == Decimal(expected)

    def test_custom_rate(self):
        assert points_to_discount(50, points_per_rupee=5) == Decimal("10")


class TestRedeem:
    @pytest.mark.asyncio
    async def test_redeem_full_balance(self, db_session, create_user):
        # Arrange
        user = await create_user(reward_points=50)
        ledger = RewardLedger(db_session)

        # Act
        result = await ledger.redeem(user.id, 50)

        # Assert
        assert result.points_redeemed == 50
        assert result.discount_amount == Decimal("5")
        assert result.remaining_points == 0
        assert await stored_points(db_session, user.id) == 0

    @pytest.mark.asyncio
    async def test_partial_redeem_keeps_remainder(self, db_session, create_user):
        user = await create_user(reward_points=120)

        result = await RewardLedger(db_session).redeem(user.id, 45)

        assert result.discount_amount == Decimal("4")
        assert result.remaining_points == 75
        assert await RewardLedger(db_session).get_balance(user.id) == 75

    @pytest.mark.asyncio
    async def test_insufficient_points_rejected(self, db_session, create_user):
        user = await create_user(reward_points=30)

        with pytest.raises(InsufficientPointsError) as exc_info:
            await RewardLedger(db_session).redeem(user.id, 50)

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Not enough reward points"
        assert await stored_points(db_session, user.id) == 30

    @pytest.mark.asyncio
    async def test_discount_above_order_total_rejected(self, db_session, create_user):
        user = await create_user(reward_points=500)

        with pytest.raises(RewardExceedsTotalError) as exc_info:
            await RewardLedger(db_session).redeem(user.id, 500, order_total=Decimal("40"))

        assert exc_info.value.message == "Reward discount cannot exceed the order total"
        assert await stored_points(db_session, user.id) == 500

    @pytest.mark.parametrize("points", [0, -10])
    @pytest.mark.asyncio
    async def test_non_positive_points_rejected(self, db_session, create_user, points):
        user = await create_user(reward_points=50)

        with pytest.raises(ValidationFailedError):
            await RewardLedger(db_session).redeem(user.id, points)

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            await RewardLedger(db_session).redeem(uuid.uuid4(), 10)


class TestAccrue:
    @pytest.mark.asyncio
    async def test_accrue_adds_points(self, db_session, create_user):
        user = await create_user(reward_points=10)

        balance = await RewardLedger(db_session).accrue(user.id, 25)

        assert balance == 35
        assert await stored_points(db_session, user.id) == 35


class TestReferral:
    @pytest.mark.asyncio
    async def test_apply_referral_credits_points(
        self, db_session, create_user, create_referral
    ):
        user = await create_user(reward_points=5)
        await create_referral("FRIEND50", reward_points=50)

        result = await RewardLedger(db_session).apply_referral(user.id, "FRIEND50")

        assert result.points_credited == 50
        assert result.balance == 55
        used_count = await db_session.scalar(
            select(Referral.used_count).where(Referral.code == "FRIEND50")
        )
        assert used_count == 1

    @pytest.mark.asyncio
    async def test_second_referral_rejected(self, db_session, create_user, create_referral):
        user = await create_user()
        await create_referral("FRIEND50")
        await create_referral("FRIEND75", reward_points=75)
        ledger = RewardLedger(db_session)

        await ledger.apply_referral(user.id, "FRIEND50")

        with pytest.raises(ReferralAlreadyUsedError):
            await ledger.apply_referral(user.id, "FRIEND75")

        assert await stored_points(db_session, user.id) == 50

    @pytest.mark.asyncio
    async def test_expired_referral_rejected(self, db_session, create_user, create_referral):
        user = await create_user()
        await create_referral("OLD", expiry_date=utcnow() - timedelta(days=1))

        with pytest.raises(ReferralNotFoundError) as exc_info:
            await RewardLedger(db_session).apply_referral(user.id, "OLD")

        assert exc_info.value.message == "Referral not found or expired"

    @pytest.mark.asyncio
    async def test_exhausted_referral_rejected(self, db_session, create_user, create_referral):
        first = await create_user()
        second = await create_user()
        await create_referral("ONCE", max_uses=1)
        ledger = RewardLedger(db_session)

        await ledger.apply_referral(first.id, "ONCE")

        with pytest.raises(ReferralNotFoundError):
            await ledger.apply_referral(second.id, "ONCE")

    @pytest.mark.asyncio
    async def test_blank_referral_code_rejected(self, db_session, create_user):
        user = await create_user()

        with pytest.raises(ValidationFailedError):
            await RewardLedger(db_session).apply_referral(user.id, "   ")
