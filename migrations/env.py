"""
Alembic environment for the storefront schema.

The database URL always comes from application settings
(``APP_DATABASE_URL``), never from alembic.ini. Online migrations run over
an async engine; each revision gets its own transaction.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from storefront.core.config import get_settings
from storefront.core.logging import get_logger
from storefront.database.connection import async_database_url
from storefront.database.models import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = get_logger("storefront.migrations")
target_metadata = Base.metadata

config.set_main_option("sqlalchemy.url", async_database_url(get_settings().database_url))


def run_migrations_offline() -> None:
    """Emit migration SQL to stdout without connecting."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_with_connection(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        transaction_per_migration=True,
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_with_connection)
        logger.info("Storefront migrations applied", dialect=engine.dialect.name)
    except Exception as e:
        logger.error("Storefront migrations failed", error=str(e), error_type=type(e).__name__)
        raise
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
