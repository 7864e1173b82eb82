"""Alembic 环境配置

配置数据库迁移环境，支持异步数据库连接
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config
from sqlmodel import SQLModel

from alembic import context

from music_share.core.config import Settings, get_settings
from music_share.features.files.models import FileRecord  # noqa: F401  注册模型元数据

# Alembic Config 对象，提供对 .ini 文件中值的访问
config = context.config

# 应用内运行迁移时不覆盖已有的日志配置
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = SQLModel.metadata


def get_database_url() -> str:
    """获取数据库连接URL

    应用启动时通过 attributes 传入当前进程的配置，
    命令行运行时从环境变量读取

    Returns:
        str: 数据库连接URL
    """
    settings: Settings = config.attributes.get("settings") or get_settings()
    return settings.async_database_url


def run_migrations_offline() -> None:
    """在 'offline' 模式下运行迁移，只生成SQL不连接数据库"""
    context.configure(
        url=get_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    """执行实际的迁移操作

    Args:
        connection: 数据库连接对象
    """
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        # SQLite需要批处理模式修改表结构
        render_as_batch=True,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """创建异步引擎并在同步上下文中运行迁移"""
    configuration = config.get_section(config.config_ini_section, {})
    configuration["sqlalchemy.url"] = get_database_url()

    connectable = async_engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    """在 'online' 模式下运行迁移"""
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
