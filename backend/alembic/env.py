"""
Alembic Migration Environment
===============================

What:  Runs the `users` migrations against the application's async engine.
How:   The target URL is resolved once (see _database_url) and every mode
       shares one context.configure() call, so offline SQL and online runs
       see the same options.
Who:   The `alembic` CLI and tests/test_migrations.py.

URL precedence:
    1. config.attributes["database_url"]   programmatic callers (tests)
    2. `alembic -x database_url=...`        one-off runs against another DB
    3. DATABASE_URL via userhub.config      everything else
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from userhub.config import settings
from userhub.database import Base

# Registers the users table on Base.metadata for autogenerate
from userhub.models import user  # noqa: F401

config = context.config

if config.config_file_name is not None:
    # Keep loggers configured by the caller (uvicorn, pytest) alive
    fileConfig(config.config_file_name, disable_existing_loggers=False)


def _database_url() -> str:
    return (
        config.attributes.get("database_url")
        or context.get_x_argument(as_dictionary=True).get("database_url")
        or settings.database_url
    )


def _configure(**options) -> None:
    context.configure(
        target_metadata=Base.metadata,
        compare_type=True,
        **options,
    )


def _migrate(connection: Connection) -> None:
    # ALTER on SQLite is emulated by copy-and-move batches
    _configure(connection=connection, render_as_batch=connection.dialect.name == "sqlite")
    with context.begin_transaction():
        context.run_migrations()


async def _migrate_online(url: str) -> None:
    engine = create_async_engine(url, poolclass=pool.NullPool)
    try:
        async with engine.begin() as connection:
            await connection.run_sync(_migrate)
    finally:
        await engine.dispose()


def main() -> None:
    url = _database_url()
    if context.is_offline_mode():
        _configure(url=url, literal_binds=True, dialect_opts={"paramstyle": "named"})
        with context.begin_transaction():
            context.run_migrations()
    else:
        asyncio.run(_migrate_online(url))


main()
