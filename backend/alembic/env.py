"""Alembic environment configuration."""
from logging.config import fileConfig
from sqlalchemy import pool
from alembic import context
import asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from app.settings import settings
from app.infra.db.base import Base, engine_args
from app.infra.db.models import DeviceTokenModel, UserTaskModel  # noqa: F401

# this is the Alembic Config object
config = context.config

# Same URL handling as the app (asyncpg driver, sslmode moved to connect_args)
_db_url, _db_connect_args = engine_args(settings.database_url)
config.set_main_option("sqlalchemy.url", _db_url)

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# Tables owned by the reminder CRUD surface; migrated there, not here
EXTERNAL_TABLES = {UserTaskModel.__tablename__}


def include_object(obj, name, type_, reflected, compare_to):
    """Only autogenerate for tables this service owns."""
    if type_ == "table" and name in EXTERNAL_TABLES:
        return False
    return True


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        include_object=include_object,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    """Run migrations with connection."""
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        include_object=include_object,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """Run migrations in 'online' mode using async engine (asyncpg)."""
    connectable = create_async_engine(
        _db_url,
        connect_args=_db_connect_args,
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
