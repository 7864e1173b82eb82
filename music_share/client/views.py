"""客户端视图状态机

上传视图：Idle -> Selected -> Uploading -> Shared，可随时回到初始状态
分享视图：Loading -> Ready | Missing

每个状态是一个独立的数据类，视图任一时刻只处于一个状态，
进行中的请求绑定在视图上，关闭视图时取消
"""

import asyncio
import mimetypes
import re
import webbrowser
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, NamedTuple, Optional, Union
from urllib.parse import urlparse

from loguru import logger

from .api import FileNotFoundOnServer, MusicShareAPIError, MusicShareClient


INVALID_FILE_MESSAGE = "Please select a valid MP3/Audio file."
UPLOAD_FAILED_MESSAGE = "Upload failed. The server might be sleeping, please try again."
MISSING_ID_MESSAGE = "Upload succeeded but the server returned no file id."
FILE_MISSING_MESSAGE = "File not found or expired."
DOWNLOAD_FAILED_MESSAGE = "Error starting download"

SHARE_PATH_PATTERN = re.compile(r"^/share/([^/]+)/?$")


# ---- 客户端路由 ----

class Route(NamedTuple):
    view: str
    file_id: Optional[str] = None


def match_route(path_or_url: str) -> Optional[Route]:
    """把路径映射到视图

    "/" 对应上传视图，"/share/<id>" 对应分享视图，其他路径返回None
    """
    path = urlparse(path_or_url).path or "/"
    if path == "/":
        return Route("upload")
    match = SHARE_PATH_PATTERN.match(path)
    if match:
        return Route("share", match.group(1))
    return None


def compose_share_link(origin: str, file_id: str) -> str:
    return f"{origin.rstrip('/')}/share/{file_id}"


def guess_media_type(filename: str) -> Optional[str]:
    """根据文件名推断媒体类型，相当于浏览器上报的file.type"""
    media_type, _ = mimetypes.guess_type(filename)
    return media_type


# ---- 上传视图 ----

@dataclass(frozen=True)
class ChosenFile:
    path: Path
    name: str
    media_type: str
    size: int


@dataclass(frozen=True)
class Idle:
    error: Optional[str] = None


@dataclass(frozen=True)
class Selected:
    file: ChosenFile
    error: Optional[str] = None


@dataclass(frozen=True)
class Uploading:
    file: ChosenFile


@dataclass(frozen=True)
class Shared:
    file: ChosenFile
    link: str


UploadState = Union[Idle, Selected, Uploading, Shared]


class UploadView:
    """上传视图

    只有选中音频文件后才能提交，上传期间禁止再次提交
    """

    def __init__(self, api: MusicShareClient, origin: str) -> None:
        self.api = api
        self.origin = origin
        self.state: UploadState = Idle()
        self._task: Optional[asyncio.Task] = None

    @property
    def busy(self) -> bool:
        return isinstance(self.state, Uploading)

    @property
    def can_submit(self) -> bool:
        return isinstance(self.state, Selected)

    @property
    def error(self) -> Optional[str]:
        return getattr(self.state, "error", None)

    def choose(self, path: Union[str, Path], media_type: Optional[str] = None) -> UploadState:
        """选择文件

        媒体类型包含"audio"才进入Selected，否则清空选择并显示错误

        Args:
            path: 本地文件路径
            media_type: 媒体类型，默认根据文件名推断
        """
        if self.busy:
            return self.state

        path = Path(path)
        media_type = media_type or guess_media_type(path.name) or ""
        if "audio" not in media_type:
            logger.debug(f"拒绝非音频文件: {path.name} ({media_type or 'unknown'})")
            self.state = Idle(error=INVALID_FILE_MESSAGE)
            return self.state

        size = path.stat().st_size if path.exists() else 0
        self.state = Selected(ChosenFile(path=path, name=path.name, media_type=media_type, size=size))
        return self.state

    def start_upload(self) -> Optional[asyncio.Task]:
        """在后台开始上传，任务随视图关闭而取消"""
        if not self.can_submit:
            return None
        self._task = asyncio.ensure_future(self.upload())
        return self._task

    async def upload(self) -> UploadState:
        """上传当前选中的文件

        成功且返回了ID时进入Shared，否则回到Selected并显示错误
        """
        if not isinstance(self.state, Selected):
            return self.state

        chosen = self.state.file
        self.state = Uploading(chosen)

        try:
            result = await self.api.upload(chosen.path, chosen.media_type, filename=chosen.name)
        except asyncio.CancelledError:
            # reset() 已经切换了状态时不再覆盖
            if self.state == Uploading(chosen):
                self.state = Selected(chosen)
            raise
        except (MusicShareAPIError, OSError) as e:
            logger.error(f"上传失败: {e}")
            self.state = Selected(chosen, error=UPLOAD_FAILED_MESSAGE)
            return self.state

        if not result.file_id:
            logger.error("上传响应中没有fileId")
            self.state = Selected(chosen, error=MISSING_ID_MESSAGE)
            return self.state

        self.state = Shared(chosen, compose_share_link(self.origin, result.file_id))
        logger.info(f"分享链接: {self.state.link}")
        return self.state

    def reset(self) -> UploadState:
        """选择另一个文件：取消进行中的上传并回到初始状态"""
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None
        self.state = Idle()
        return self.state

    async def close(self) -> None:
        """关闭视图，取消并等待进行中的上传"""
        task, self._task = self._task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


# ---- 分享视图 ----

@dataclass(frozen=True)
class FileInfo:
    file_id: str
    filename: str
    size: int
    content_type: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, file_id: str, body: dict) -> "FileInfo":
        created_at = body.get("createdAt")
        return cls(
            file_id=body.get("id") or file_id,
            filename=body.get("filename") or "",
            size=int(body.get("size") or 0),
            content_type=body.get("contentType"),
            created_at=datetime.fromisoformat(created_at) if created_at else None,
        )

    @property
    def size_label(self) -> str:
        return f"{self.size / 1024 / 1024:.2f} MB"


@dataclass(frozen=True)
class Loading:
    pass


@dataclass(frozen=True)
class Ready:
    info: FileInfo


@dataclass(frozen=True)
class Missing:
    reason: str = FILE_MISSING_MESSAGE


ShareState = Union[Loading, Ready, Missing]


class ShareView:
    """分享视图

    创建后处于Loading，load() 根据结果进入Ready或Missing；
    下载失败只提示，不改变状态
    """

    def __init__(
        self,
        api: MusicShareClient,
        file_id: str,
        opener: Callable[[str], object] = webbrowser.open_new_tab,
        alert: Optional[Callable[[str], None]] = None
    ) -> None:
        self.api = api
        self.file_id = file_id
        self.opener = opener
        self.alert = alert or (lambda message: logger.warning(message))
        self.state: ShareState = Loading()
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_path(cls, api: MusicShareClient, path_or_url: str, **kwargs) -> "ShareView":
        """根据分享链接或路径创建视图

        Raises:
            ValueError: 不是 /share/<id> 形式的路径
        """
        route = match_route(path_or_url)
        if route is None or route.view != "share":
            raise ValueError(f"not a share link: {path_or_url}")
        return cls(api, route.file_id, **kwargs)

    @property
    def busy(self) -> bool:
        return isinstance(self.state, Loading) or bool(self._task and not self._task.done())

    async def load(self) -> ShareState:
        """加载文件信息

        请求在后台任务中执行，关闭视图时取消，状态保持Loading
        """
        self.state = Loading()
        self._task = asyncio.ensure_future(self.api.get_file(self.file_id))
        try:
            body = await self._task
            self.state = Ready(FileInfo.from_api(self.file_id, body))
        except FileNotFoundOnServer:
            logger.info(f"文件不存在: {self.file_id}")
            self.state = Missing()
        except (MusicShareAPIError, ValueError) as e:
            logger.error(f"获取文件信息失败: {e}")
            self.state = Missing()
        finally:
            self._task = None
        return self.state

    async def download(self) -> Optional[str]:
        """解析下载地址并在新标签页打开

        Returns:
            Optional[str]: 打开的URL，失败或未就绪返回None
        """
        if not isinstance(self.state, Ready):
            return None

        self._task = asyncio.ensure_future(self.api.resolve_download(self.file_id))
        try:
            url = await self._task
        except MusicShareAPIError as e:
            logger.error(f"获取下载地址失败: {e}")
            self.alert(DOWNLOAD_FAILED_MESSAGE)
            return None
        finally:
            self._task = None

        self.opener(url)
        return url

    async def close(self) -> None:
        """关闭视图，取消进行中的文件信息或下载地址请求"""
        task, self._task = self._task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
