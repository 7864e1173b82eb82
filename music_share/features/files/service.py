"""文件服务模块

实现上传、查询和下载地址解析三个操作
"""

from typing import Optional

from fastapi import Request, UploadFile
from loguru import logger
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from music_share.core.config import Settings
from music_share.core.redis import RedisManager
from music_share.shared.exceptions import (
    BadRequestError,
    InternalServerError,
    NotFoundError,
    PayloadTooLargeError,
    StorageError,
)

from .models import FileRecord, FileRecordRead, normalize_file_id
from .storage import MediaStorageService, file_extension


class FileService:
    """文件服务

    上传时先写对象存储再写元数据库；存储失败不会留下记录，
    写库失败时已保存的对象会成为孤儿，只记录日志
    """

    def __init__(
        self,
        storage: MediaStorageService,
        cache: RedisManager,
        settings: Settings
    ) -> None:
        self.storage = storage
        self.cache = cache
        self.settings = settings

    def _cache_key(self, file_id: str) -> str:
        return self.cache.build_key("files", "record", file_id)

    def validate_upload(self, upload: Optional[UploadFile]) -> UploadFile:
        """校验上传的文件部分

        Raises:
            BadRequestError: 没有文件，或者不是允许的音频格式
        """
        if upload is None or not upload.filename:
            logger.warning("上传请求中没有文件")
            raise BadRequestError("No file uploaded")

        content_type = upload.content_type or ""
        extension = file_extension(upload.filename)
        if "audio" not in content_type or extension not in self.storage.allowed_formats:
            logger.warning(f"拒绝非音频文件: {upload.filename} ({content_type})")
            raise BadRequestError(
                "Only MP3, WAV and FLAC audio files are allowed",
                details=f"received {content_type or 'unknown type'} '{upload.filename}'"
            )

        return upload

    async def upload_file(
        self,
        db: AsyncSession,
        upload: Optional[UploadFile]
    ) -> FileRecord:
        """上传文件并创建记录

        Args:
            db: 数据库会话
            upload: multipart中名为file的文件部分

        Returns:
            FileRecord: 新建的文件记录
        """
        upload = self.validate_upload(upload)
        logger.info(f"收到文件上传: {upload.filename} ({upload.content_type})")

        # 已知大小时在读取前拒绝
        if upload.size is not None and upload.size > self.settings.max_upload_size:
            raise PayloadTooLargeError(
                details=f"{upload.size} bytes exceeds limit of {self.settings.max_upload_size}"
            )

        data = await upload.read()
        if len(data) > self.settings.max_upload_size:
            raise PayloadTooLargeError(
                details=f"{len(data)} bytes exceeds limit of {self.settings.max_upload_size}"
            )

        try:
            stored = await self.storage.store(data, upload.filename, upload.content_type)
        except StorageError as e:
            raise InternalServerError("Upload failed", details=str(e)) from e

        file_record = FileRecord(
            filename=upload.filename,
            path=stored.url,
            public_id=stored.locator,
            size=len(data),
            content_type=upload.content_type,
        )

        try:
            db.add(file_record)
            await db.commit()
            await db.refresh(file_record)
        except Exception as e:
            logger.error(f"写入文件记录失败，对象存储中的文件成为孤儿: {stored.locator}: {e}")
            raise InternalServerError("Upload failed", details=str(e)) from e

        logger.info(f"文件记录已创建: {file_record.id} - {file_record.filename}")
        return file_record

    async def get_file(
        self,
        db: AsyncSession,
        file_id: str
    ) -> Optional[FileRecordRead]:
        """获取文件记录

        格式不正确的ID直接视为不存在

        Args:
            db: 数据库会话
            file_id: 文件记录ID

        Returns:
            Optional[FileRecordRead]: 文件记录，不存在返回None
        """
        normalized_id = normalize_file_id(file_id)
        if normalized_id is None:
            logger.info(f"文件ID格式不正确: {file_id!r}")
            return None

        cached = await self.cache.get(self._cache_key(normalized_id))
        if isinstance(cached, dict):
            try:
                record = FileRecordRead.model_validate(cached)
                logger.debug(f"缓存命中: {normalized_id}")
                return record
            except ValidationError as e:
                logger.warning(f"缓存中的文件记录无效，改为查询数据库: {normalized_id}: {e}")
        elif cached is not None:
            logger.warning(f"缓存中的文件记录无效，改为查询数据库: {normalized_id}")

        statement = select(FileRecord).where(FileRecord.id == normalized_id)
        result = await db.execute(statement)
        file_record = result.scalar_one_or_none()
        if file_record is None:
            return None

        record = FileRecordRead.model_validate(file_record)
        await self.cache.set(
            self._cache_key(normalized_id),
            record.model_dump(mode="json"),
            self.settings.cache_ttl_file
        )
        return record

    async def require_file(self, db: AsyncSession, file_id: str) -> FileRecordRead:
        """获取文件记录，不存在时抛出NotFoundError"""
        record = await self.get_file(db, file_id)
        if record is None:
            logger.info(f"文件记录不存在: {file_id}")
            raise NotFoundError("File not found")
        return record

    async def resolve_download_url(self, db: AsyncSession, file_id: str) -> str:
        """解析强制下载地址

        存储服务无法生成时退回到保存时的地址

        Raises:
            NotFoundError: 文件记录不存在
            InternalServerError: 生成下载URL失败
        """
        record = await self.require_file(db, file_id)

        try:
            download_url = self.storage.derive_attachment_url(record.public_id, record.filename)
        except StorageError as e:
            raise InternalServerError("Download failed", details=str(e)) from e

        return download_url or record.path


def get_file_service(request: Request) -> FileService:
    """获取文件服务的依赖注入函数"""
    return request.app.state.file_service
