from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from gst_invoicing.config.settings import settings
from gst_invoicing.infrastructure.db import models  # noqa: F401  (registers tables on Base)
from gst_invoicing.infrastructure.db.base import Base

config = context.config

# callers that already own logging (the test suite) set configure_logger=False
if config.config_file_name is not None and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def migration_url() -> str:
    """``-x db_url=...`` wins over DATABASE_URL from the service settings."""
    return context.get_x_argument(as_dictionary=True).get("db_url") or settings.DATABASE_URL


def _configure(url: str, **kwargs) -> None:
    # SQLite cannot ALTER constraints in place; batch mode rebuilds the table
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=url.startswith("sqlite"),
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit the SQL script for the invoicing schema without a database."""
    url = migration_url()
    _configure(url, url=url, literal_binds=True, dialect_opts={"paramstyle": "named"})

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    _configure(str(connection.engine.url), connection=connection)

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = migration_url()

    engine = async_engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    async with engine.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
