import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel

from habitsync.config import settings
from habitsync.models.habit import Habit, DailyStat, LastLogin  # noqa: F401

if context.config.config_file_name is not None:
    fileConfig(context.config.config_file_name)

SYNC_TABLES = {Habit.__tablename__, DailyStat.__tablename__, LastLogin.__tablename__}


def only_sync_tables(object, name, type_, reflected, compare_to):
    # the remote database may host other applications' tables
    return type_ != "table" or name in SYNC_TABLES


def migrate(**configure_args) -> None:
    context.configure(
        target_metadata=SQLModel.metadata,
        include_object=only_sync_tables,
        **configure_args,
    )
    with context.begin_transaction():
        context.run_migrations()


async def migrate_online() -> None:
    db = create_async_engine(settings.DATABASE_URL, poolclass=pool.NullPool)
    async with db.connect() as connection:
        await connection.run_sync(lambda conn: migrate(connection=conn, compare_type=True))
    await db.dispose()


if context.is_offline_mode():
    migrate(url=settings.DATABASE_URL, literal_binds=True, dialect_opts={"paramstyle": "named"})
else:
    asyncio.run(migrate_online())
