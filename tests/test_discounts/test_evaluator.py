"""
Tests for discount evaluation and one-time code claims.

The pure calculation is tested on transient discounts; validation and
checkout settlement run against the SQLite test database.
"""

import uuid
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from storefront.database.models import (
    Discount,
    DiscountTargetType,
    DiscountType,
    UsedDiscount,
)
from storefront.services.discounts.evaluator import (
    DiscountAlreadyUsedError,
    DiscountCodeRequiredError,
    DiscountEvaluator,
    DiscountLine,
    DiscountNotFoundError,
    NoEligibleItemsError,
    calculate_discount,
    compute_discount_amount,
    round_half_up,
)
from storefront.services.discounts.repository import DiscountRepository


def make_discount(discount_type, value, category_id=None) -> Discount:
    return Discount(
        code="TEST",
        discount_type=discount_type,
        discount_value=Decimal(value),
        target_type=DiscountTargetType.CATEGORY if category_id else DiscountTargetType.ORDER,
        category_id=category_id,
    )


# ============================================================================
# Calculation
# ============================================================================


class TestCalculation:
    """Pure discount arithmetic."""

    def test_percentage_applies_to_matching_category_only(self):
        category_x, category_y = uuid.uuid4(), uuid.uuid4()
        discount = make_discount(DiscountType.PERCENTAGE, "10", category_x)
        lines = [
            DiscountLine(uuid.uuid4(), category_x, Decimal("500"), 2),
            DiscountLine(uuid.uuid4(), category_y, Decimal("300"), 1),
        ]

        calculation = calculate_discount(discount, lines)

        assert calculation.applicable_subtotal == Decimal("1000")
        assert calculation.discount_amount == Decimal("100")
        assert calculation.message == "10% discount applied"

    def test_order_wide_discount_covers_every_line(self):
        discount = make_discount(DiscountType.PERCENTAGE, "10")
        lines = [
            DiscountLine(uuid.uuid4(), uuid.uuid4(), Decimal("500"), 2),
            DiscountLine(uuid.uuid4(), None, Decimal("300"), 1),
        ]

        calculation = calculate_discount(discount, lines)

        assert calculation.applicable_subtotal == Decimal("1300")
        assert calculation.discount_amount == Decimal("130")

    def test_fixed_discount_capped_at_applicable_subtotal(self):
        discount = make_discount(DiscountType.FIXED, "1000")

        assert compute_discount_amount(discount, Decimal("400")) == Decimal("400")
        assert compute_discount_amount(discount, Decimal("2500")) == Decimal("1000")

    @pytest.mark.parametrize(
        "applicable,expected",
        [
            (Decimal("150"), Decimal("8")),
            (Decimal("130"), Decimal("7")),
            (Decimal("129"), Decimal("6")),
        ],
    )
    def test_percentage_rounds_half_up(self, applicable, expected):
        discount = make_discount(DiscountType.PERCENTAGE, "5")
        assert compute_discount_amount(discount, applicable) == expected

    def test_round_half_up(self):
        assert round_half_up(Decimal("2.5")) == Decimal("3")
        assert round_half_up(Decimal("2.49")) == Decimal("2")

    def test_fixed_label(self):
        discount = make_discount(DiscountType.FIXED, "100.00")
        assert discount.label == "₹100"


# ============================================================================
# Validation and claims
# ============================================================================


@pytest.fixture
async def catalog(create_category, create_product):
    """Category X with a 500 product and category Y with a 300 product."""
    category_x = await create_category("Shoes")
    category_y = await create_category("Books")
    product_a = await create_product("Runner", price="500", category=category_x)
    product_b = await create_product("Novel", price="300", category=category_y)
    return {
        "category_x": category_x,
        "category_y": category_y,
        "product_a": product_a,
        "product_b": product_b,
    }


async def usage_count(session, user_id, code) -> int:
    return await session.scalar(
        select(func.count())
        .select_from(UsedDiscount)
        .where(UsedDiscount.user_id == user_id, UsedDiscount.discount_code == code)
    )


class TestValidateCode:
    @pytest.mark.asyncio
    async def test_category_discount_on_mixed_cart(
        self, db_session, create_user, create_discount, catalog
    ):
        # Arrange
        user = await create_user()
        await create_discount("SAVE10", DiscountType.PERCENTAGE, "10", catalog["category_x"])
        evaluator = DiscountEvaluator(db_session)

        # Act
        calculation = await evaluator.validate_code(
            user.id,
            "SAVE10",
            [(catalog["product_a"].id, 2), (catalog["product_b"].id, 1)],
        )

        # Assert
        assert calculation.applicable_subtotal == Decimal("1000")
        assert calculation.discount_amount == Decimal("100")
        assert calculation.message == "10% discount applied"
        assert await usage_count(db_session, user.id, "SAVE10") == 1

    @pytest.mark.asyncio
    async def test_second_validation_rejected(
        self, db_session, create_user, create_discount, catalog
    ):
        user = await create_user()
        await create_discount("SAVE10", DiscountType.PERCENTAGE, "10", catalog["category_x"])
        evaluator = DiscountEvaluator(db_session)
        items = [(catalog["product_a"].id, 1)]

        await evaluator.validate_code(user.id, "SAVE10", items)

        with pytest.raises(DiscountAlreadyUsedError) as exc_info:
            await evaluator.validate_code(user.id, "SAVE10", items)

        assert exc_info.value.message == "You have already used this discount code"
        assert await usage_count(db_session, user.id, "SAVE10") == 1

    @pytest.mark.asyncio
    async def test_code_is_case_insensitive(
        self, db_session, create_user, create_discount, catalog
    ):
        user = await create_user()
        await create_discount("SAVE10", DiscountType.PERCENTAGE, "10", catalog["category_x"])

        calculation = await DiscountEvaluator(db_session).validate_code(
            user.id, " save10 ", [(catalog["product_a"].id, 1)]
        )

        assert calculation.discount.code == "SAVE10"

    @pytest.mark.asyncio
    async def test_no_eligible_items_leaves_code_unclaimed(
        self, db_session, create_user, create_discount, catalog
    ):
        user = await create_user()
        await create_discount("SHOES20", DiscountType.PERCENTAGE, "20", catalog["category_x"])
        evaluator = DiscountEvaluator(db_session)

        with pytest.raises(NoEligibleItemsError) as exc_info:
            await evaluator.validate_code(user.id, "SHOES20", [(catalog["product_b"].id, 1)])

        assert exc_info.value.message == "No eligible items for this discount"
        assert await usage_count(db_session, user.id, "SHOES20") == 0

        # The code can still be claimed for an eligible cart
        calculation = await evaluator.validate_code(
            user.id, "SHOES20", [(catalog["product_a"].id, 1)]
        )
        assert calculation.discount_amount == Decimal("100")

    @pytest.mark.asyncio
    async def test_missing_code_rejected(self, db_session, create_user):
        user = await create_user()

        with pytest.raises(DiscountCodeRequiredError) as exc_info:
            await DiscountEvaluator(db_session).validate_code(user.id, "  ", [])

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Discount code is required"

    @pytest.mark.asyncio
    async def test_expired_code_rejected(
        self, db_session, create_user, create_discount, catalog
    ):
        user = await create_user()
        await create_discount(
            "OLD10",
            DiscountType.PERCENTAGE,
            "10",
            catalog["category_x"],
            start_offset=timedelta(days=-10),
            end_offset=timedelta(days=-1),
        )

        with pytest.raises(DiscountNotFoundError) as exc_info:
            await DiscountEvaluator(db_session).validate_code(
                user.id, "OLD10", [(catalog["product_a"].id, 1)]
            )

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Invalid or expired discount code"

    @pytest.mark.asyncio
    async def test_inactive_code_rejected(
        self, db_session, create_user, create_discount, catalog
    ):
        user = await create_user()
        await create_discount("OFF10", category=catalog["category_x"], is_active=False)

        with pytest.raises(DiscountNotFoundError):
            await DiscountEvaluator(db_session).validate_code(
                user.id, "OFF10", [(catalog["product_a"].id, 1)]
            )

    @pytest.mark.asyncio
    async def test_fixed_discount_bounded_by_category_subtotal(
        self, db_session, create_user, create_discount, catalog
    ):
        user = await create_user()
        await create_discount("FLAT800", DiscountType.FIXED, "800", catalog["category_x"])

        calculation = await DiscountEvaluator(db_session).validate_code(
            user.id,
            "FLAT800",
            [(catalog["product_a"].id, 1), (catalog["product_b"].id, 1)],
        )

        assert calculation.applicable_subtotal == Decimal("500")
        assert calculation.discount_amount == Decimal("500")

    @pytest.mark.asyncio
    async def test_concurrent_claim_rolled_back(
        self, db_session, create_user, create_discount, catalog
    ):
        # Arrange: the claim exists but the lookup misses it, as when a
        # concurrent validation inserts it between the read and the insert
        user = await create_user()
        await create_discount("SAVE10", DiscountType.PERCENTAGE, "10", catalog["category_x"])
        evaluator = DiscountEvaluator(db_session)
        items = [(catalog["product_a"].id, 1)]
        await evaluator.validate_code(user.id, "SAVE10", items)
        user_id = user.id

        # Act
        with patch.object(DiscountRepository, "get_usage", AsyncMock(return_value=None)):
            with pytest.raises(DiscountAlreadyUsedError) as exc_info:
                await evaluator.validate_code(user_id, "SAVE10", items)

        # Assert
        assert exc_info.value.message == "You have already used this discount code"
        assert await usage_count(db_session, user_id, "SAVE10") == 1


# ============================================================================
# Code uniqueness
# ============================================================================


class TestCodeUniqueness:
    def test_code_stored_upper_case(self):
        discount = make_discount(DiscountType.FIXED, "50")
        discount.code = " save10 "

        assert discount.code == "SAVE10"

    @pytest.mark.asyncio
    async def test_codes_differing_in_case_rejected(self, db_session, create_discount):
        await create_discount("SAVE10")

        with pytest.raises(IntegrityError):
            await create_discount("save10")
        await db_session.rollback()

        count = await db_session.scalar(select(func.count()).select_from(Discount))
        assert count == 1

    @pytest.mark.asyncio
    async def test_lookup_matches_single_discount(
        self, db_session, create_user, create_discount, catalog
    ):
        user = await create_user()
        await create_discount("Save10", DiscountType.PERCENTAGE, "10", catalog["category_x"])

        calculation = await DiscountEvaluator(db_session).validate_code(
            user.id, "sAVE10", [(catalog["product_a"].id, 1)]
        )

        assert calculation.discount.code == "SAVE10"
        assert await usage_count(db_session, user.id, "SAVE10") == 1
