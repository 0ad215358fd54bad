"""
Userhub Backend — Database Session Management
===============================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
Why:   Centralizes all database connection logic in one place.
How:   A `Database` object owns one engine (and its connection pool) plus a
       session factory. The app factory builds exactly one per application
       and stores it on `app.state.database`; the session dependency reads it
       from there. There is no module-level engine.
Who:   Used by route handlers via FastAPI's dependency injection system.
When:  Engine is created with the app; sessions are created per-request.

Connection Pooling Strategy:
    pool_size / max_overflow come from Settings for PostgreSQL.
    SQLite (tests, local experiments) uses the dialect's default pool, which
    does not accept sizing arguments.
"""

from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All models inherit from this class to register with the shared metadata
    used by Alembic and by `Database.create_all()`.
    """
    pass


class Database:
    """
    Owns the engine and session factory for one application instance.

    Args:
        url: Async SQLAlchemy URL (postgresql+asyncpg://..., sqlite+aiosqlite://...)
        pool_size / max_overflow / pool_pre_ping: pool tuning, ignored for SQLite
        echo: Log every SQL statement (enabled when LOG_LEVEL=DEBUG)
    """

    def __init__(
        self,
        url: str,
        pool_size: int = 10,
        max_overflow: int = 10,
        pool_pre_ping: bool = True,
        echo: bool = False,
    ):
        engine_kwargs = {"echo": echo, "pool_pre_ping": pool_pre_ping}
        if not url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_recycle=3600,
            )
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)

        # expire_on_commit=False: attributes stay readable after commit
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_all(self) -> None:
        """
        Create all tables registered on `Base.metadata`.

        Production schemas are managed by Alembic; this is used by tests and
        by the SQLite development setup.
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> None:
        """Run `SELECT 1`; raises whatever the driver raises when unreachable."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        """Gracefully closes all connections in the pool (app shutdown)."""
        await self.engine.dispose()


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the application's Database
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back the transaction and re-raises
        5. Always: closes the session (returns connection to pool)
    """
    database: Database = request.app.state.database
    async with database.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            # Roll back for ANY failure, including non-DB errors after a write
            await session.rollback()
            raise
        finally:
            await session.close()
