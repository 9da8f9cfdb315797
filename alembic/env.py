"""Alembic environment for the comment board schema.

Migrations run through the same ``Database`` handle the application uses,
so the URL and pool options come from ``commentboard.config.settings``.
``alembic upgrade head --sql`` renders the DDL without connecting.
"""

import asyncio
from logging.config import fileConfig

from alembic import context

from commentboard.config import settings
from commentboard.database import Base, Database

# Register the models on Base.metadata for autogenerate.
import commentboard.models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

target_metadata = Base.metadata


def _configure(**kwargs) -> None:
    context.configure(target_metadata=target_metadata, compare_type=True, **kwargs)


def run_migrations_offline() -> None:
    _configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_with_connection(connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    database = Database.from_settings(settings)
    try:
        async with database.engine.connect() as connection:
            await connection.run_sync(_run_with_connection)
    finally:
        await database.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
