"""核心配置模块

处理环境变量读取、数据库URL的异步转换和对象存储配置
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """应用配置类

    自动从环境变量读取配置。进程启动时构造一次，
    通过 create_app(settings) 显式传入各个管理器和服务
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # 元数据库配置
    database_url: str = Field(
        default="sqlite+aiosqlite:///./music_share.db",
        description="数据库连接URL（支持Railway/Render注入的同步PostgreSQL URL）"
    )
    migrate_on_startup: bool = Field(default=True, description="启动时是否运行Alembic迁移")
    alembic_config: str = Field(default="alembic.ini", description="Alembic配置文件路径")

    # Redis配置（可选，用于缓存文件记录）
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis连接URL，未配置时不启用缓存"
    )
    cache_ttl_file: int = Field(default=1800, description="文件记录缓存过期时间（秒）")

    # 对象存储配置（S3兼容，默认Cloudflare R2）
    service_name: str = Field(default="s3", description="S3兼容服务名称")
    endpoint_url: Optional[str] = Field(default=None, description="对象存储端点URL")
    r2_account_id: Optional[str] = Field(
        default=None,
        description="Cloudflare账户ID，未配置endpoint_url时用于推导R2端点"
    )
    aws_access_key_id: Optional[str] = Field(default=None, description="访问密钥ID")
    aws_secret_access_key: Optional[str] = Field(default=None, description="秘密访问密钥")
    region_name: str = Field(default="auto", description="存储区域名称")
    storage_bucket: str = Field(default="music-share", description="存储桶名称")
    storage_folder: str = Field(default="music-share-app", description="上传文件的逻辑目录")
    allowed_formats: list[str] = Field(
        default=["mp3", "wav", "flac"],
        description="允许上传的音频格式（文件扩展名）"
    )
    storage_public_base_url: Optional[str] = Field(
        default=None,
        description="存储桶公开访问域名，配置后保存永久URL而不是签名URL"
    )
    stored_url_expires: int = Field(
        default=7 * 24 * 3600,
        description="上传后返回的签名URL有效期（秒），SigV4最长7天"
    )
    download_url_expires: int = Field(default=3600, description="强制下载URL有效期（秒）")
    max_upload_size: int = Field(default=100 * 1024 * 1024, description="单个文件最大字节数")

    # 应用配置
    app_name: str = Field(default="Music Share", description="应用名称")
    app_version: str = Field(default="1.0.0", description="应用版本")
    debug: bool = Field(default=False, description="调试模式")
    host: str = Field(default="0.0.0.0", description="服务器主机")
    port: int = Field(default=5000, description="服务器端口")
    cors_origins: list[str] = Field(
        default=[
            "http://localhost:3000",
            "http://localhost:5000",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5000",
        ],
        description="允许跨域访问的前端来源"
    )

    # 日志配置
    log_level: str = Field(default="INFO", description="日志级别")
    log_file: Optional[str] = Field(
        default=None,
        description="日志文件路径，支持loguru时间占位符，如 logs/app_{time:YYYY-MM-DD}.log"
    )

    @computed_field
    @property
    def async_database_url(self) -> str:
        """将同步PostgreSQL URL转换为异步URL

        托管平台注入的DATABASE_URL使用postgresql://前缀，
        但asyncpg需要postgresql+asyncpg://前缀

        Returns:
            str: 异步数据库连接URL
        """
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif self.database_url.startswith("postgres://"):
            return self.database_url.replace("postgres://", "postgresql+asyncpg://", 1)
        return self.database_url

    @computed_field
    @property
    def async_redis_url(self) -> Optional[str]:
        """处理Redis URL确保兼容性

        Returns:
            Optional[str]: Redis连接URL，如果未配置则返回None
        """
        if not self.redis_url:
            return None

        if not self.redis_url.startswith(("redis://", "rediss://")):
            return f"redis://{self.redis_url}"
        return self.redis_url

    @computed_field
    @property
    def storage_endpoint_url(self) -> Optional[str]:
        """对象存储端点

        优先使用显式配置的endpoint_url，否则根据Cloudflare账户ID推导R2端点
        """
        if self.endpoint_url:
            return self.endpoint_url
        if self.r2_account_id:
            return f"https://{self.r2_account_id}.r2.cloudflarestorage.com"
        return None

    @computed_field
    @property
    def r2_config(self) -> Optional[dict[str, str]]:
        """对象存储客户端配置字典

        Returns:
            Optional[dict]: boto3客户端配置参数，如果未完整配置则返回None
        """
        if not all([self.storage_endpoint_url, self.aws_access_key_id, self.aws_secret_access_key]):
            return None

        return {
            "service_name": self.service_name,
            "endpoint_url": self.storage_endpoint_url,
            "aws_access_key_id": self.aws_access_key_id,
            "aws_secret_access_key": self.aws_secret_access_key,
            "region_name": self.region_name,
        }


class ClientSettings(BaseSettings):
    """命令行客户端配置

    环境变量使用 MUSIC_SHARE_ 前缀，例如 MUSIC_SHARE_API_BASE_URL
    """

    model_config = SettingsConfigDict(
        env_prefix="music_share_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    api_base_url: str = Field(default="http://localhost:5000", description="服务端API地址")
    client_origin: str = Field(default="http://localhost:3000", description="分享链接使用的前端地址")
    timeout: float = Field(default=120, description="请求超时时间（秒）")


@lru_cache
def get_settings() -> Settings:
    """获取应用配置单例

    使用lru_cache确保配置只被加载一次

    Returns:
        Settings: 应用配置实例
    """
    return Settings()
