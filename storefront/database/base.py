"""
Declarative base, shared column types and model mixins.

Column types are dialect neutral so the same models run on PostgreSQL in
production and on SQLite in tests. Identifiers and timestamps are
generated client side, which makes them available on an instance right
after flush.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Numeric, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")

# Rupee amounts: prices, charges, discounts and totals
Money = Numeric(10, 2, asdecimal=True)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def enum_values(enum_cls: type) -> list[str]:
    """Persist enum members by value (``cash-on-delivery``) rather than name."""
    return [member.value for member in enum_cls]


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all storefront models."""

    __abstract__ = True

    def __repr__(self) -> str:
        identity = getattr(self, "id", None)
        return f"<{type(self).__name__} id={identity}>"


class UUIDMixin:
    @declared_attr
    def id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            Uuid(as_uuid=True),
            primary_key=True,
            default=uuid.uuid4,
            nullable=False,
        )


class TimestampMixin:
    """Creation and last modification times, kept in UTC."""

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            default=utcnow,
            server_default=func.now(),
        )

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            default=utcnow,
            onupdate=utcnow,
            server_default=func.now(),
        )


class BaseModel(Base, UUIDMixin, TimestampMixin):
    """
    Table base with a UUID primary key and timestamps.

    Example:
        class Category(BaseModel):
            __tablename__ = "categories"

            name: Mapped[str] = mapped_column(String(120))
    """

    __abstract__ = True
