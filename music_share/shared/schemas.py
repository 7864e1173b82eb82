"""共享数据模式

定义统一的错误响应格式和健康检查模式
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """统一错误响应格式

    所有失败的请求都返回 {"error": ..., "details": ...}，details 可省略
    """
    error: str = Field(description="错误消息")
    details: Optional[str] = Field(default=None, description="错误详情")


class HealthCheckResponse(BaseModel):
    """健康检查响应

    用于系统健康状态检查
    """
    status: str = Field(description="服务状态")
    timestamp: str = Field(description="检查时间")
    version: str = Field(description="应用版本")
    database: bool = Field(description="数据库连接状态")
    redis: bool = Field(description="Redis连接状态")
    storage: bool = Field(description="存储服务配置状态")
