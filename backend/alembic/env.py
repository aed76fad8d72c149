"""
Alembic Migration Environment
===============================

What:  Applies the pinboard schema (users, pins, tags, boards, interactions,
       comments) through the async engine.
How:   The async engine hands a sync connection to Alembic via run_sync().

Database URL, first match wins:
    alembic -x database_url=sqlite+aiosqlite:///./local.db upgrade head
    DATABASE_URL (Settings, including .env)

SQLite gets batch mode: it cannot ALTER most constraints in place, so
Alembic rebuilds the table instead.
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config
from alembic import context

from pinboard.config import Settings
from pinboard.database import Base

# Registers every table on Base.metadata for --autogenerate
import pinboard.models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    return context.get_x_argument(as_dictionary=True).get("database_url") or Settings().database_url


database_url = _database_url()
config.set_main_option("sqlalchemy.url", database_url)


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=database_url.startswith("sqlite"),
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout without connecting."""
    _configure(
        url=database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection) -> None:
    _configure(connection=connection)

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        # One-shot process: no pooling
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
