"""对象存储服务模块

通过S3兼容接口（默认Cloudflare R2）保存音频文件，
并生成强制下载的签名URL
"""

import asyncio
import uuid
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from music_share.core.config import Settings
from music_share.shared.exceptions import DisallowedFormatError, StorageError


@dataclass
class StoredObject:
    """对象存储保存结果

    locator 是存储键名，url 是保存后可访问的地址
    """
    locator: str
    url: str


def file_extension(filename: str) -> str:
    """返回小写且不带点的扩展名，没有扩展名返回空字符串"""
    return PurePosixPath(filename).suffix.lower().lstrip(".")


def attachment_disposition(filename: str) -> str:
    """构造强制下载的Content-Disposition头

    非ASCII文件名按RFC 5987额外提供 filename* 参数
    """
    fallback = filename.encode("ascii", "ignore").decode("ascii").replace('"', "").strip()
    if not fallback:
        fallback = "download"
    disposition = f'attachment; filename="{fallback}"'
    if fallback != filename:
        disposition += f"; filename*=UTF-8''{quote(filename)}"
    return disposition


class MediaStorageService:
    """音频文件存储服务

    提供保存文件和生成下载URL两个操作
    """

    def __init__(self, settings: Settings) -> None:
        """初始化存储服务

        创建boto3客户端；凭证未配置时客户端仍可创建，调用时才会失败

        Args:
            settings: 应用配置
        """
        self.settings = settings
        self.bucket_name = settings.storage_bucket
        self.folder = settings.storage_folder.strip("/")
        self.allowed_formats = [fmt.lower() for fmt in settings.allowed_formats]

        self.s3_client = boto3.client(
            settings.service_name,
            endpoint_url=settings.storage_endpoint_url,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.region_name,
        )

        logger.info(f"对象存储服务已初始化，端点: {settings.storage_endpoint_url}，存储桶: {self.bucket_name}")

    @property
    def configured(self) -> bool:
        """存储凭证是否完整配置"""
        return bool(self.settings.r2_config and self.bucket_name)

    def _generate_file_key(self, extension: str) -> str:
        """生成唯一的文件存储键名

        格式: {folder}/{uuid}.{ext}
        """
        return f"{self.folder}/{uuid.uuid4().hex}.{extension}"

    def _object_url(self, file_key: str) -> str:
        """保存后返回给客户端的地址

        配置了公开域名时返回永久URL，否则返回签名GET URL
        """
        if self.settings.storage_public_base_url:
            return f"{self.settings.storage_public_base_url.rstrip('/')}/{quote(file_key)}"

        return self.s3_client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket_name, "Key": file_key},
            ExpiresIn=self.settings.stored_url_expires
        )

    def _put_object(self, file_key: str, data: bytes, content_type: str) -> str:
        self.s3_client.put_object(
            Bucket=self.bucket_name,
            Key=file_key,
            Body=data,
            ContentType=content_type,
        )
        return self._object_url(file_key)

    async def store(self, data: bytes, filename: str, content_type: str) -> StoredObject:
        """保存文件到对象存储

        Args:
            data: 文件内容
            filename: 原始文件名，用于校验格式和确定扩展名
            content_type: 文件MIME类型

        Returns:
            StoredObject: 存储键名和访问地址

        Raises:
            DisallowedFormatError: 扩展名不在允许列表中
            StorageError: 存储服务调用失败
        """
        extension = file_extension(filename)
        if extension not in self.allowed_formats:
            raise DisallowedFormatError(f"format '{extension or '?'}' is not allowed")

        file_key = self._generate_file_key(extension)

        try:
            # boto3是同步的，放到执行器线程中
            url = await asyncio.get_event_loop().run_in_executor(
                None, self._put_object, file_key, data, content_type
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"保存文件到对象存储失败 {file_key}: {e}")
            raise StorageError(str(e)) from e

        logger.info(f"文件已保存到对象存储: {file_key} ({len(data)} bytes)")
        return StoredObject(locator=file_key, url=url)

    def derive_attachment_url(self, locator: str, filename: str) -> Optional[str]:
        """生成强制下载的签名URL

        本地签名计算，不产生网络请求

        Args:
            locator: 存储键名
            filename: 下载时保存的文件名

        Returns:
            Optional[str]: 下载URL，locator为空时返回None

        Raises:
            StorageError: 签名失败（例如缺少凭证）
        """
        if not locator:
            return None

        try:
            return self.s3_client.generate_presigned_url(
                "get_object",
                Params={
                    "Bucket": self.bucket_name,
                    "Key": locator,
                    "ResponseContentDisposition": attachment_disposition(filename),
                },
                ExpiresIn=self.settings.download_url_expires
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"生成下载URL失败 {locator}: {e}")
            raise StorageError(str(e)) from e
