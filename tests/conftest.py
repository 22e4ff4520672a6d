"""
Pytest configuration and shared test fixtures.

Every test runs against a fresh SQLite database file created from the
model metadata. Factories create catalog, user, discount and referral
rows; the HTTP client runs the FastAPI application in-process with the
database session, notification service and auto processor overridden.
"""

import os

os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("APP_NOTIFICATIONS_ENABLED", "false")
os.environ.setdefault("APP_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("APP_SECRET_KEY", "test-secret-key-with-at-least-32-characters")

import uuid
from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from storefront.database.base import Base, utcnow
from storefront.database.models import (
    Category,
    Discount,
    DiscountTargetType,
    DiscountType,
    Product,
    Referral,
    User,
    UserRole,
)
from storefront.services.notifications.service import NotificationService
from storefront.services.orders.scheduler import OrderAutoProcessor
from storefront.services.orders.service import OrderService


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
async def engine(tmp_path):
    """Async engine bound to a throwaway SQLite database file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ============================================================================
# Factories
# ============================================================================


@pytest.fixture
def create_user(db_session: AsyncSession):
    """Create and commit a user; keyword arguments override defaults."""

    async def _create(**overrides) -> User:
        values = {
            "email": f"user-{uuid.uuid4().hex[:8]}@example.com",
            "name": "Test Customer",
            "role": UserRole.CUSTOMER,
            "reward_points": 0,
        }
        values.update(overrides)
        user = User(**values)
        db_session.add(user)
        await db_session.commit()
        return user

    return _create


@pytest.fixture
def create_category(db_session: AsyncSession):
    async def _create(name: str = "Electronics") -> Category:
        category = Category(name=name, slug=f"{name.lower()}-{uuid.uuid4().hex[:6]}")
        db_session.add(category)
        await db_session.commit()
        return category

    return _create


@pytest.fixture
def create_product(db_session: AsyncSession):
    """Create and commit a product; price and charges accept plain numbers."""

    async def _create(
        name: str = "Product",
        price="100",
        stock: int = 10,
        category: Category = None,
        vendor: User = None,
        delivery_charge="0",
        is_active: bool = True,
    ) -> Product:
        product = Product(
            name=name,
            price=Decimal(str(price)),
            stock=stock,
            category_id=category.id if category else None,
            vendor_id=vendor.id if vendor else None,
            delivery_charge=Decimal(str(delivery_charge)),
            is_active=is_active,
        )
        db_session.add(product)
        await db_session.commit()
        return product

    return _create


@pytest.fixture
def create_discount(db_session: AsyncSession):
    """Create and commit a discount valid from yesterday until next week."""

    async def _create(
        code: str = "SAVE10",
        discount_type: DiscountType = DiscountType.PERCENTAGE,
        value="10",
        category: Category = None,
        target_type: DiscountTargetType = None,
        is_active: bool = True,
        start_offset: timedelta = timedelta(days=-1),
        end_offset: timedelta = timedelta(days=7),
    ) -> Discount:
        if target_type is None:
            target_type = DiscountTargetType.CATEGORY if category else DiscountTargetType.ORDER
        now = utcnow()
        discount = Discount(
            code=code,
            discount_type=discount_type,
            discount_value=Decimal(str(value)),
            target_type=target_type,
            category_id=category.id if category else None,
            start_date=now + start_offset,
            end_date=now + end_offset,
            is_active=is_active,
        )
        db_session.add(discount)
        await db_session.commit()
        return discount

    return _create


@pytest.fixture
def create_referral(db_session: AsyncSession):
    async def _create(
        code: str = "FRIEND50",
        reward_points: int = 50,
        max_uses: int = None,
        expiry_date=None,
    ) -> Referral:
        referral = Referral(
            code=code,
            reward_points=reward_points,
            max_uses=max_uses,
            expiry_date=expiry_date,
        )
        db_session.add(referral)
        await db_session.commit()
        return referral

    return _create


# ============================================================================
# Services
# ============================================================================


@pytest.fixture
def notification_service() -> AsyncMock:
    """Notification service double recording every email request."""
    return AsyncMock(spec=NotificationService)


@pytest.fixture
async def auto_processor(session_factory) -> AsyncGenerator[OrderAutoProcessor, None]:
    """Auto processor whose scheduled moves never fire during a test."""
    processor = OrderAutoProcessor(
        session_factory=session_factory,
        delay_seconds=3600,
        requires_payment=False,
    )
    yield processor
    await processor.shutdown()


@pytest.fixture
def order_service(db_session, notification_service, auto_processor) -> OrderService:
    return OrderService(
        db_session,
        notification_service=notification_service,
        auto_processor=auto_processor,
    )


# ============================================================================
# HTTP client
# ============================================================================


@pytest.fixture
async def client(
    session_factory,
    notification_service,
    auto_processor,
) -> AsyncGenerator[AsyncClient, None]:
    """In-process HTTP client with database and integrations overridden."""
    from storefront.database.connection import get_db
    from storefront.main import app
    from storefront.services.notifications.service import get_notification_service
    from storefront.services.orders.scheduler import get_auto_processor

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_service] = lambda: notification_service
    app.dependency_overrides[get_auto_processor] = lambda: auto_processor

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
