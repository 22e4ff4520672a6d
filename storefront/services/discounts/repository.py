"""
Discount repository for code lookup and usage tracking.

Usage records are only ever inserted; the unique constraint on
(user_id, discount_code) turns a concurrent second claim into an
IntegrityError that callers map onto the "already used" rejection.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.logging import get_logger
from storefront.database.base import utcnow
from storefront.database.models.discount import Discount, UsedDiscount

logger = get_logger(__name__)


class DiscountRepository:
    """Data access for discounts and their usage records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_active_by_code(
        self,
        code: str,
        at: Optional[datetime] = None,
    ) -> Optional[Discount]:
        """
        Find an active discount whose validity window contains ``at``.

        Codes are matched case-insensitively.
        """
        at = at or utcnow()
        stmt = select(Discount).where(
            func.upper(Discount.code) == code.strip().upper(),
            Discount.is_active.is_(True),
            Discount.start_date <= at,
            Discount.end_date >= at,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_usage(self, user_id: uuid.UUID, code: str) -> Optional[UsedDiscount]:
        stmt = select(UsedDiscount).where(
            UsedDiscount.user_id == user_id,
            UsedDiscount.discount_code == code,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def record_usage(
        self,
        user_id: uuid.UUID,
        code: str,
        order_id: Optional[uuid.UUID] = None,
    ) -> UsedDiscount:
        """
        Insert a usage record and flush it.

        Raises:
            IntegrityError: If the user already claimed this code
        """
        usage = UsedDiscount(
            user_id=user_id,
            discount_code=code,
            order_id=order_id,
            used_at=utcnow(),
        )
        self.session.add(usage)
        await self.session.flush()

        logger.debug(
            "Discount usage recorded",
            user_id=str(user_id),
            discount_code=code,
            order_id=str(order_id) if order_id else None,
        )
        return usage
