"""文件功能模块

提供音频文件上传、文件信息查询和下载地址解析
"""

from .router import router
from .service import FileService

__all__ = ["router", "FileService"]
