"""
Pinboard Backend — Database Engine & Session Management
=========================================================

What:  Async SQLAlchemy engine, session factory, declarative base and the
       per-request session dependency.
Why:   Every request runs as exactly one transaction: the dependency commits
       when the handler returns and rolls back when anything raises. The
       multi-write operations (new board + pin, toggles) rely on this. Pin
       creation commits its writes itself, so that it can delete the
       uploaded file if the commit fails; the final commit here is then a
       no-op.
How:   A Database object owns the engine and session factory. create_app()
       builds one from Settings and stores it on app.state; get_db_session()
       pulls it from there.

Connection pooling:
    PostgreSQL (asyncpg) uses a queue pool sized from settings with
    pre-ping and hourly recycling. SQLite (aiosqlite, used by the tests)
    gets a StaticPool so an in-memory database survives across sessions.
"""

from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from pinboard.config import Settings


class Base(DeclarativeBase):
    """Base class for all ORM models; its metadata drives Alembic."""
    pass


class Database:
    """
    Holds the engine and session factory built from one Settings object.

    Attributes:
        engine:           AsyncEngine with the configured pool
        session_factory:  async_sessionmaker producing AsyncSession objects
    """

    def __init__(self, settings: Settings):
        self.url = settings.database_url

        if self.url.startswith("sqlite"):
            engine_kwargs = {
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            }
        else:
            engine_kwargs = {
                "pool_size": settings.db_pool_size,
                "max_overflow": settings.db_max_overflow,
                "pool_pre_ping": settings.db_pool_pre_ping,
                "pool_recycle": 3600,
            }

        self.engine: AsyncEngine = create_async_engine(
            self.url,
            echo=settings.log_level == "DEBUG",
            **engine_kwargs,
        )
        # expire_on_commit=False: response schemas read attributes after commit
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_all(self) -> None:
        """Create every table known to Base.metadata (tests and local dev only)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        """Close every pooled connection. Called on application shutdown."""
        await self.engine.dispose()


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one session per request.

    Commits after the handler returns; rolls back and re-raises on any
    exception so the global handlers can build the error response.
    """
    database: Database = request.app.state.db
    async with database.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
