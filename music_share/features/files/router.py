"""文件功能路由模块

提供上传、文件信息和下载地址三个API端点
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from music_share.core.database import get_db
from music_share.shared.exceptions import InternalServerError
from music_share.shared.schemas import ErrorResponse

from .models import DownloadUrlResponse, FileRecordRead, UploadResponse
from .service import FileService, get_file_service


router = APIRouter()


@router.post(
    "/upload",
    response_model=UploadResponse,
    summary="上传音频文件",
    description="接收multipart中名为file的音频文件，保存到对象存储并创建文件记录",
    responses={400: {"model": ErrorResponse}, 413: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
)
async def upload_file(
    file: Optional[UploadFile] = File(default=None),
    db: AsyncSession = Depends(get_db),
    service: FileService = Depends(get_file_service)
) -> UploadResponse:
    """上传文件

    Returns:
        UploadResponse: 新文件记录的ID和访问地址

    Raises:
        HTTPException: 没有文件、格式不允许或保存失败
    """
    try:
        file_record = await service.upload_file(db, file)

        return UploadResponse(
            file_id=file_record.id,
            download_url=file_record.path
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"上传文件失败: {e}")
        raise InternalServerError("Upload failed", details=str(e))


@router.get(
    "/file/{file_id}",
    response_model=FileRecordRead,
    summary="获取文件信息",
    description="根据文件ID获取文件的元数据",
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
)
async def get_file(
    file_id: str,
    db: AsyncSession = Depends(get_db),
    service: FileService = Depends(get_file_service)
) -> FileRecordRead:
    """获取文件记录

    Raises:
        HTTPException: 文件不存在或查询失败
    """
    try:
        return await service.require_file(db, file_id)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"获取文件记录失败: {e}")
        raise InternalServerError("Server error")


@router.get(
    "/download/{file_id}",
    response_model=DownloadUrlResponse,
    summary="获取强制下载地址",
    description="生成让浏览器保存而不是播放文件的下载URL",
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
)
async def get_download_url(
    file_id: str,
    db: AsyncSession = Depends(get_db),
    service: FileService = Depends(get_file_service)
) -> DownloadUrlResponse:
    """获取下载地址

    每次请求都重新生成，不做缓存

    Raises:
        HTTPException: 文件不存在或生成地址失败
    """
    try:
        url = await service.resolve_download_url(db, file_id)
        return DownloadUrlResponse(url=url)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"生成下载地址失败: {e}")
        raise InternalServerError("Download failed", details=str(e))
