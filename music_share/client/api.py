"""音乐分享服务的异步HTTP客户端

封装上传、文件信息和下载地址三个接口
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import aiohttp
from loguru import logger


class MusicShareAPIError(Exception):
    """接口调用失败，携带状态码、消息和URL

    status 为 0 表示连接层面的错误
    """

    def __init__(self, status: int, message: str, url: str):
        self.status = status
        self.message = message
        self.url = url
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status} from {self.url}: {self.message}"
        return f"Connection error for {self.url}: {self.message}"


class FileNotFoundOnServer(MusicShareAPIError):
    """服务端返回404"""


@dataclass
class UploadResult:
    file_id: Optional[str]
    download_url: Optional[str]


class MusicShareClient:
    """音乐分享服务客户端

    支持 async with 复用连接；不使用 async with 时每次调用临时创建会话
    """

    def __init__(self, base_url: str, timeout: float = 120):
        self.base_url = base_url.rstrip("/")
        self._session: Optional[aiohttp.ClientSession] = None
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def open(self) -> None:
        if not self._session:
            self._session = aiohttp.ClientSession(timeout=self._timeout)

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "MusicShareClient":
        await self.open()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict:
        url = f"{self.base_url}{path}"
        owns_session = self._session is None
        session = self._session or aiohttp.ClientSession(timeout=self._timeout)

        try:
            async with session.request(method, url, **kwargs) as resp:
                try:
                    body = await resp.json(content_type=None)
                except ValueError:
                    body = None

                if resp.status >= 400:
                    message = body.get("error") if isinstance(body, dict) else None
                    message = message or resp.reason or "request failed"
                    if resp.status == 404:
                        raise FileNotFoundOnServer(resp.status, message, url)
                    raise MusicShareAPIError(resp.status, message, url)

                if not isinstance(body, dict):
                    raise MusicShareAPIError(resp.status, "response is not a JSON object", url)
                return body
        except aiohttp.ClientError as e:
            raise MusicShareAPIError(0, str(e), url) from e
        finally:
            if owns_session:
                await session.close()

    async def upload(self, path: Path, content_type: str, filename: Optional[str] = None) -> UploadResult:
        """上传本地文件

        Args:
            path: 本地文件路径
            content_type: 文件MIME类型
            filename: 上传时使用的文件名，默认取路径中的文件名

        Returns:
            UploadResult: 服务端返回的fileId和downloadUrl，字段可能缺失
        """
        path = Path(path)
        logger.debug(f"上传文件到 {self.base_url}: {path}")

        with path.open("rb") as fh:
            form = aiohttp.FormData()
            form.add_field("file", fh, filename=filename or path.name, content_type=content_type)
            body = await self._request("POST", "/api/upload", data=form)

        return UploadResult(file_id=body.get("fileId"), download_url=body.get("downloadUrl"))

    async def get_file(self, file_id: str) -> dict:
        """获取文件信息

        Raises:
            FileNotFoundOnServer: 文件不存在
        """
        return await self._request("GET", f"/api/file/{file_id}")

    async def resolve_download(self, file_id: str) -> str:
        """获取强制下载地址"""
        body = await self._request("GET", f"/api/download/{file_id}")
        url = body.get("url")
        if not url:
            raise MusicShareAPIError(200, "response has no url", f"{self.base_url}/api/download/{file_id}")
        return url
