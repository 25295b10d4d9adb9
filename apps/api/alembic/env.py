"""
Alembic environment.

Runs migrations through the async engine configured by DATABASE_URL. Every
model module is imported so autogenerate sees the full metadata.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from paperly.core.config import settings
from paperly.core.database import Base
from paperly.modules.notifications import models as notification_models  # noqa: F401
from paperly.modules.rate_limits import models as rate_limit_models  # noqa: F401
from paperly.modules.realtime import models as realtime_models  # noqa: F401
from paperly.modules.submissions import models as submission_models  # noqa: F401
from paperly.modules.teachers import models as teacher_models  # noqa: F401
from paperly.modules.tokens import models as token_models  # noqa: F401
from paperly.modules.users import models as user_models  # noqa: F401

config = context.config
config.set_main_option("sqlalchemy.url", settings.database_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit SQL to stdout without connecting."""
    context.configure(
        url=settings.database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
