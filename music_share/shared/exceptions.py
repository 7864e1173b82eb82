"""自定义异常类定义

定义应用中使用的各种自定义异常
提供统一的错误处理机制
"""

from typing import Any, Optional

from fastapi import HTTPException


class BaseAPIException(HTTPException):
    """API异常基类

    所有自定义API异常都应该继承这个类，
    details 会原样写入错误响应体
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_type: str = "APIError",
        details: Optional[str] = None,
        headers: Optional[dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_type = error_type
        self.details = details


class BadRequestError(BaseAPIException):
    """请求数据错误：缺少文件或文件格式不允许"""

    def __init__(self, detail: str = "Bad request", details: Optional[str] = None):
        super().__init__(
            status_code=400,
            detail=detail,
            error_type="BadRequestError",
            details=details
        )


class NotFoundError(BaseAPIException):
    """资源不存在异常

    标识符格式错误和标识符不存在都使用这个异常
    """

    def __init__(self, detail: str = "File not found"):
        super().__init__(
            status_code=404,
            detail=detail,
            error_type="NotFoundError"
        )


class PayloadTooLargeError(BaseAPIException):
    """上传文件超过大小限制"""

    def __init__(self, detail: str = "File too large", details: Optional[str] = None):
        super().__init__(
            status_code=413,
            detail=detail,
            error_type="PayloadTooLargeError",
            details=details
        )


class InternalServerError(BaseAPIException):
    """服务器内部错误异常

    元数据库或对象存储调用失败时抛出
    """

    def __init__(self, detail: str = "Server error", details: Optional[str] = None):
        super().__init__(
            status_code=500,
            detail=detail,
            error_type="InternalServerError",
            details=details
        )


class StorageError(Exception):
    """对象存储操作失败"""


class DisallowedFormatError(StorageError):
    """文件格式不在允许列表中"""
