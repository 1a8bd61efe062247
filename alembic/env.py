"""
Alembic 迁移环境

预订库与支付库各自迁移，通过 -x db=reservation|payment 选择目标库；
两个库使用各自的版本表，DSN 相同时也互不干扰。迁移按分支标签执行：

    alembic -x db=reservation upgrade reservation@head
    alembic -x db=payment upgrade payment@head
"""
import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from core.config import get_settings
from infrastructure.database import build_async_url
from infrastructure.models import payment_metadata, reservation_metadata


config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

TARGETS = {
    "reservation": reservation_metadata,
    "payment": payment_metadata,
}

db = context.get_x_argument(as_dictionary=True).get("db", "reservation")
if db not in TARGETS:
    raise ValueError(f"unknown database '{db}', expected one of {sorted(TARGETS)}")

settings = get_settings()
database_url = settings.payment_database_url if db == "payment" else settings.database.url
target_metadata = TARGETS[db]
version_table = f"alembic_version_{db}"


def run_migrations_offline() -> None:
    context.configure(
        url=build_async_url(database_url),
        target_metadata=target_metadata,
        version_table=version_table,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        version_table=version_table,
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(build_async_url(database_url), poolclass=pool.NullPool)
    async with engine.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
