"""数据库连接模块

提供SQLAlchemy异步数据库连接和会话管理，文件元数据记录保存在这里
"""

import asyncio
from typing import AsyncGenerator

from alembic import command
from alembic.config import Config
from fastapi import Request
from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

from .config import Settings


class DatabaseManager:
    """数据库管理器

    管理异步数据库引擎和会话工厂
    """

    def __init__(self, settings: Settings) -> None:
        """初始化数据库管理器

        创建异步引擎和会话工厂，非SQLite数据库配置连接池参数

        Args:
            settings: 应用配置
        """
        self.settings = settings
        database_url = settings.async_database_url

        engine_options = {
            "echo": settings.debug,  # 调试模式下打印SQL语句
            "pool_pre_ping": True,  # 连接前ping检查
        }
        if not database_url.startswith("sqlite"):
            engine_options.update(
                pool_size=10,  # 连接池大小
                max_overflow=20,  # 最大溢出连接数
                pool_recycle=3600,  # 连接回收时间（秒）
            )

        self.engine = create_async_engine(database_url, **engine_options)

        self.async_session = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,  # 提交后不过期对象
            autoflush=True,
            autocommit=False,
        )

        logger.info(f"数据库引擎已初始化: {database_url.split('@')[1] if '@' in database_url else database_url}")

    async def init_schema(self) -> None:
        """初始化表结构

        配置了启动迁移时运行Alembic；迁移失败时仅在调试模式下退回到直接建表
        """
        if not self.settings.migrate_on_startup:
            await self.create_tables()
            return

        try:
            await self.run_migrations()
        except Exception as migration_error:
            if not self.settings.debug:
                logger.error("数据库迁移失败，应用启动终止")
                raise
            logger.warning(f"数据库迁移失败，使用备用方法建表: {migration_error}")
            await self.create_tables()

    async def run_migrations(self) -> None:
        """运行数据库迁移

        Alembic是同步的，在执行器线程中运行，避免阻塞事件循环
        """
        await asyncio.get_event_loop().run_in_executor(
            None, self._run_alembic_upgrade
        )
        logger.info("数据库迁移完成")

    def _run_alembic_upgrade(self) -> None:
        """在执行器中运行 Alembic 升级到最新版本"""
        alembic_cfg = Config(self.settings.alembic_config)
        # env.py 从这里读取当前进程的配置
        alembic_cfg.attributes["settings"] = self.settings
        command.upgrade(alembic_cfg, "head")

    async def create_tables(self) -> None:
        """直接根据模型元数据建表

        不支持数据迁移，用于测试和本地开发
        """
        # 注册模型到元数据
        from music_share.features.files.models import FileRecord  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.info("数据库表已创建")

    async def ping(self) -> bool:
        """检查数据库连接状态"""
        try:
            async with self.async_session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"数据库健康检查失败: {e}")
            return False

    async def close(self) -> None:
        """关闭数据库连接"""
        await self.engine.dispose()
        logger.info("数据库连接已关闭")

    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """获取数据库会话

        出现异常时回滚事务并继续抛出

        Yields:
            AsyncSession: 数据库会话
        """
        async with self.async_session() as session:
            try:
                yield session
            except Exception as e:
                await session.rollback()
                logger.debug(f"数据库会话回滚: {type(e).__name__}")
                raise


# FastAPI依赖注入函数
async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """获取数据库会话的依赖注入函数

    在FastAPI路由中使用: db: AsyncSession = Depends(get_db)

    Yields:
        AsyncSession: 数据库会话
    """
    db_manager: DatabaseManager = request.app.state.db_manager
    async for session in db_manager.get_session():
        yield session
