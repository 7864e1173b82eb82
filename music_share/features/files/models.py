"""文件功能数据模型

定义文件元数据记录表和接口响应模型
"""

import re
import secrets
import time
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy import BigInteger, Column
from sqlmodel import Field, SQLModel


FILE_ID_PATTERN = re.compile(r"[0-9a-f]{24}")


def new_file_id() -> str:
    """生成文件记录ID

    24位十六进制：前8位是秒级时间戳，后16位随机，与文档数据库ObjectId形状一致
    """
    return f"{int(time.time()):08x}{secrets.token_hex(8)}"


def normalize_file_id(file_id: str) -> Optional[str]:
    """校验并规范化文件ID，格式不正确返回None"""
    candidate = file_id.strip().lower()
    if not FILE_ID_PATTERN.fullmatch(candidate):
        return None
    return candidate


class FileRecord(SQLModel, table=True):
    """文件记录表

    每个上传文件一条记录，创建后不再修改
    """

    __tablename__ = "file_records"

    id: str = Field(
        default_factory=new_file_id,
        primary_key=True,
        max_length=24,
        description="文件记录ID"
    )
    filename: str = Field(max_length=255, description="原始文件名")
    path: str = Field(max_length=2048, description="对象存储返回的访问URL")
    public_id: str = Field(max_length=500, unique=True, description="对象存储键名")
    size: int = Field(sa_column=Column(BigInteger, nullable=False), description="文件大小（字节）")
    content_type: str = Field(max_length=100, description="客户端上报的MIME类型")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="创建时间")


class CamelModel(BaseModel):
    """JSON字段使用驼峰命名的响应模型基类"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class FileRecordRead(CamelModel):
    """文件记录响应模型"""

    id: str
    filename: str
    path: str
    size: int
    content_type: str
    public_id: str
    created_at: datetime


class UploadResponse(CamelModel):
    """上传成功响应：{success, fileId, downloadUrl}"""

    success: bool = True
    file_id: str
    download_url: str


class DownloadUrlResponse(BaseModel):
    """下载地址响应：{url}"""

    url: str
