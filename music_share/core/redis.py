"""Redis连接模块

提供Redis异步连接池和文件记录缓存操作。
Redis是可选的：未配置或不可用时所有操作静默降级为未命中
"""

import json
from datetime import datetime
from typing import Any, Optional

import redis.asyncio as redis
from loguru import logger

from .config import Settings


class RedisManager:
    """Redis管理器

    管理Redis连接池和提供缓存操作方法
    """

    key_prefix = "music_share"

    def __init__(self, settings: Settings) -> None:
        """初始化Redis管理器

        创建Redis连接池，如果Redis URL未配置则跳过初始化

        Args:
            settings: 应用配置
        """
        self.redis_pool = None
        self.redis_client = None

        if not settings.async_redis_url:
            logger.info("Redis URL未配置，文件记录缓存未启用")
            return

        self.redis_pool = redis.ConnectionPool.from_url(
            settings.async_redis_url,
            max_connections=20,
            socket_keepalive=True,
            health_check_interval=30,  # 健康检查间隔（秒）
            decode_responses=True,
        )

        self.redis_client = redis.Redis(connection_pool=self.redis_pool)

        logger.info("Redis连接池已初始化")

    async def ping(self) -> bool:
        """检查Redis连接状态

        Returns:
            bool: 连接是否正常
        """
        if not self.redis_client:
            return False

        try:
            await self.redis_client.ping()
            return True
        except Exception as e:
            logger.error(f"Redis连接检查失败: {e}")
            return False

    async def close(self) -> None:
        """关闭Redis连接"""
        if self.redis_client:
            await self.redis_client.aclose()
            logger.info("Redis连接已关闭")

    def _serialize_value(self, value: Any) -> str:
        """序列化值为JSON字符串，处理datetime"""
        def json_serializer(obj: Any) -> str:
            if isinstance(obj, datetime):
                return obj.isoformat()
            raise TypeError(f"Object of type {type(obj)} is not JSON serializable")

        return json.dumps(value, default=json_serializer, ensure_ascii=False)

    def _deserialize_value(self, value: str) -> Any:
        """反序列化JSON字符串，无法解析时视为未命中"""
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Redis缓存值不是有效的JSON，忽略")
            return None

    def build_key(self, module: str, *parts: Any) -> str:
        """构建缓存键名

        格式: music_share:module:part1:part2

        Args:
            module: 模块名
            *parts: 键名组成部分

        Returns:
            str: 缓存键名
        """
        return ":".join([self.key_prefix, module, *(str(part) for part in parts)])

    async def get(self, key: str) -> Optional[Any]:
        """获取缓存值

        Args:
            key: 缓存键

        Returns:
            Optional[Any]: 缓存值，不存在或Redis不可用返回None
        """
        if not self.redis_client:
            return None

        try:
            value = await self.redis_client.get(key)
            if value is None:
                return None
            return self._deserialize_value(value)
        except Exception as e:
            logger.error(f"Redis获取缓存失败 {key}: {e}")
            return None

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None
    ) -> bool:
        """设置缓存值

        Args:
            key: 缓存键
            value: 缓存值
            ttl: 过期时间（秒），None表示不过期

        Returns:
            bool: 是否设置成功
        """
        if not self.redis_client:
            return False

        try:
            serialized_value = self._serialize_value(value)
            if ttl:
                await self.redis_client.setex(key, ttl, serialized_value)
            else:
                await self.redis_client.set(key, serialized_value)
            return True
        except Exception as e:
            logger.error(f"Redis设置缓存失败 {key}: {e}")
            return False
