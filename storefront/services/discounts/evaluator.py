"""
Discount evaluation and settlement.

The pure part computes the applicable subtotal and discount amount for a
set of order lines. ``DiscountEvaluator`` binds that computation to the
database: it validates codes for a user, records the one-time claim and
settles the claim against an order at checkout.
"""

import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.errors import BusinessRuleError, NotFoundError, ValidationFailedError
from storefront.core.logging import get_logger
from storefront.database.models.discount import (
    Discount,
    DiscountTargetType,
    DiscountType,
    UsedDiscount,
)
from storefront.database.models.product import Product
from storefront.services.discounts.repository import DiscountRepository

logger = get_logger(__name__)

ALREADY_USED_MESSAGE = "You have already used this discount code"


class DiscountCodeRequiredError(ValidationFailedError):
    """Raised when no discount code was supplied."""


class DiscountNotFoundError(NotFoundError):
    """Raised when the code does not match an active discount."""


class DiscountAlreadyUsedError(BusinessRuleError):
    """Raised when the user has already claimed the code."""


class NoEligibleItemsError(BusinessRuleError):
    """Raised when no order line falls under the discount."""


@dataclass(frozen=True)
class DiscountLine:
    """Order line as seen by the discount evaluator."""

    product_id: uuid.UUID
    category_id: Optional[uuid.UUID]
    unit_price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class DiscountCalculation:
    """Result of evaluating a discount against order lines."""

    discount: Discount
    applicable_subtotal: Decimal
    discount_amount: Decimal

    @property
    def message(self) -> str:
        return f"{self.discount.label} discount applied"


def round_half_up(value: Decimal) -> Decimal:
    """Round to a whole currency unit, halves away from zero."""
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def applicable_subtotal(discount: Discount, lines: Iterable[DiscountLine]) -> Decimal:
    """Sum of line totals the discount applies to."""
    if discount.target_type == DiscountTargetType.ORDER:
        eligible = list(lines)
    else:
        eligible = [line for line in lines if line.category_id == discount.category_id]
    return sum((line.line_total for line in eligible), Decimal("0"))


def compute_discount_amount(discount: Discount, applicable: Decimal) -> Decimal:
    """
    Discount amount for an applicable subtotal.

    Percentage discounts are rounded to a whole unit; fixed discounts
    never exceed the applicable subtotal.
    """
    value = Decimal(discount.discount_value)
    if discount.discount_type == DiscountType.PERCENTAGE:
        return round_half_up(applicable * value / Decimal("100"))
    return min(value, applicable)


def calculate_discount(discount: Discount, lines: Sequence[DiscountLine]) -> DiscountCalculation:
    """Evaluate ``discount`` against ``lines``."""
    applicable = applicable_subtotal(discount, lines)
    return DiscountCalculation(
        discount=discount,
        applicable_subtotal=applicable,
        discount_amount=compute_discount_amount(discount, applicable),
    )


def lines_from_products(
    products: dict[uuid.UUID, Product],
    items: Iterable[tuple[uuid.UUID, int]],
) -> list[DiscountLine]:
    """Build discount lines from loaded products and (product_id, quantity) pairs."""
    return [
        DiscountLine(
            product_id=product_id,
            category_id=products[product_id].category_id,
            unit_price=products[product_id].price,
            quantity=quantity,
        )
        for product_id, quantity in items
    ]


class DiscountEvaluator:
    """Validates, quotes and settles discount codes for a user."""

    def __init__(self, session: AsyncSession, repository: Optional[DiscountRepository] = None):
        self.session = session
        self.repository = repository or DiscountRepository(session)

    async def _load_lines(self, items: Sequence[tuple[uuid.UUID, int]]) -> list[DiscountLine]:
        product_ids = [product_id for product_id, _ in items]
        result = await self.session.execute(select(Product).where(Product.id.in_(product_ids)))
        products = {product.id: product for product in result.scalars().all()}

        for product_id in product_ids:
            if product_id not in products:
                raise NotFoundError(f"Product not found: {product_id}", product_id=str(product_id))

        return lines_from_products(products, items)

    async def _active_discount(self, code: Optional[str]) -> Discount:
        if not code or not code.strip():
            raise DiscountCodeRequiredError("Discount code is required")

        discount = await self.repository.get_active_by_code(code)
        if discount is None:
            raise DiscountNotFoundError("Invalid or expired discount code", code=code)
        return discount

    def _evaluate(self, discount: Discount, lines: Sequence[DiscountLine]) -> DiscountCalculation:
        calculation = calculate_discount(discount, lines)
        if calculation.applicable_subtotal <= 0:
            raise NoEligibleItemsError(
                "No eligible items for this discount",
                code=discount.code,
            )
        return calculation

    async def quote(
        self,
        code: Optional[str],
        lines: Sequence[DiscountLine],
    ) -> DiscountCalculation:
        """Evaluate a code against lines without recording any usage."""
        discount = await self._active_discount(code)
        return self._evaluate(discount, lines)

    async def validate_code(
        self,
        user_id: uuid.UUID,
        code: Optional[str],
        items: Sequence[tuple[uuid.UUID, int]],
    ) -> DiscountCalculation:
        """
        Validate a code for a user and claim it.

        Eligibility is checked before the claim is recorded, so a code
        that does not apply to the cart stays available.

        Raises:
            DiscountCodeRequiredError: If code is empty
            DiscountNotFoundError: If no active discount matches
            DiscountAlreadyUsedError: If the user already claimed the code
            NoEligibleItemsError: If no line falls under the discount
        """
        discount = await self._active_discount(code)

        if await self.repository.get_usage(user_id, discount.code) is not None:
            raise DiscountAlreadyUsedError(ALREADY_USED_MESSAGE, code=discount.code)

        calculation = self._evaluate(discount, await self._load_lines(items))
        # Rollback expires the discount
        discount_code = discount.code

        try:
            await self.repository.record_usage(user_id, discount_code)
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.info(
                "Concurrent discount claim rejected",
                user_id=str(user_id),
                discount_code=discount_code,
            )
            raise DiscountAlreadyUsedError(ALREADY_USED_MESSAGE, code=discount_code) from e

        logger.info(
            "Discount code validated",
            user_id=str(user_id),
            discount_code=discount_code,
            applicable_subtotal=str(calculation.applicable_subtotal),
            discount_amount=str(calculation.discount_amount),
        )
        return calculation

    async def settle_for_order(
        self,
        user_id: uuid.UUID,
        code: str,
        lines: Sequence[DiscountLine],
    ) -> tuple[DiscountCalculation, UsedDiscount]:
        """
        Evaluate a code at checkout and claim it for the order.

        A claim made earlier by ``validate_code`` that has not been
        attached to an order is reused. The caller attaches the returned
        claim to the order and commits; the claim is flushed but not
        committed here.

        Raises:
            DiscountAlreadyUsedError: If the claim is already attached to an order
            IntegrityError: If a concurrent checkout inserted the claim first
        """
        discount = await self._active_discount(code)
        calculation = self._evaluate(discount, lines)

        usage = await self.repository.get_usage(user_id, discount.code)
        if usage is not None and usage.order_id is not None:
            raise DiscountAlreadyUsedError(ALREADY_USED_MESSAGE, code=discount.code)
        if usage is None:
            usage = await self.repository.record_usage(user_id, discount.code)

        return calculation, usage


def calculation_summary(calculation: DiscountCalculation) -> dict[str, Any]:
    """Serializable summary of the discount behind a calculation."""
    discount = calculation.discount
    return {
        "id": str(discount.id),
        "code": discount.code,
        "type": discount.discount_type.value,
        "value": float(discount.discount_value),
        "target_type": discount.target_type.value,
    }
