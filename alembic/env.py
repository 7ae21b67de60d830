"""Alembic environment for the voter vetting schema (async SQLAlchemy)."""

import asyncio
from logging.config import fileConfig
from typing import Any

from alembic import context
from sqlalchemy import pool, text
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

import voter_vetting.models  # noqa: F401
from voter_vetting.core.config import get_settings
from voter_vetting.models.base import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# Created by raw SQL in revision 003; absent from the ORM metadata.
MIGRATION_ONLY_INDEXES = frozenset({"ix_roll_voters_first_name_trgm", "ix_roll_voters_last_name_trgm"})


def include_object(obj: Any, name: str | None, type_: str, reflected: bool, compare_to: Any) -> bool:
    """Keep autogenerate from proposing to drop the trigram indexes."""
    return not (type_ == "index" and reflected and name in MIGRATION_ONLY_INDEXES)


def _configure_kwargs(schema: str | None, **kwargs: Any) -> dict[str, Any]:
    options: dict[str, Any] = {
        "target_metadata": target_metadata,
        "compare_type": True,
        "include_object": include_object,
        **kwargs,
    }
    if schema is not None:
        options["version_table_schema"] = schema
    return options


def run_migrations_offline() -> None:
    """Emit migration SQL without a database connection."""
    settings = get_settings()
    context.configure(
        **_configure_kwargs(
            settings.database_schema,
            url=settings.database_url,
            literal_binds=True,
            dialect_opts={"paramstyle": "named"},
        )
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    """Run migrations on a sync connection (called through ``run_sync``)."""
    schema = get_settings().database_schema
    if schema is not None:
        connection.execute(text(f'SET search_path TO "{schema}", public'))
    context.configure(
        **_configure_kwargs(
            schema,
            connection=connection,
            render_as_batch=connection.dialect.name == "sqlite",
        )
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Open an async engine from settings and run the migrations."""
    settings = get_settings()
    configuration = config.get_section(config.config_ini_section, {})
    configuration["sqlalchemy.url"] = settings.database_url

    connectable = async_engine_from_config(configuration, prefix="sqlalchemy.", poolclass=pool.NullPool)

    async with connectable.connect() as connection:
        if settings.database_schema is not None:
            await connection.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{settings.database_schema}"'))
            await connection.commit()
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
