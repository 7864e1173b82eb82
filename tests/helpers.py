"""测试辅助工具"""

import sqlite3
import tempfile
from pathlib import Path
from typing import Optional

from fastapi.testclient import TestClient

from music_share.core.config import Settings
from music_share.features.files.storage import StoredObject, file_extension
from music_share.main import create_app
from music_share.shared.exceptions import DisallowedFormatError, StorageError


class FakeStorage:
    """内存中的对象存储，替代S3兼容服务"""

    def __init__(self, fail_store: bool = False, fail_derive: bool = False, derive_none: bool = False):
        self.allowed_formats = ["mp3", "wav", "flac"]
        self.configured = True
        self.objects: dict[str, bytes] = {}
        self.fail_store = fail_store
        self.fail_derive = fail_derive
        self.derive_none = derive_none

    async def store(self, data: bytes, filename: str, content_type: str) -> StoredObject:
        if self.fail_store:
            raise StorageError("quota exceeded")
        extension = file_extension(filename)
        if extension not in self.allowed_formats:
            raise DisallowedFormatError(extension)
        locator = f"music-share-app/{len(self.objects):04d}.{extension}"
        self.objects[locator] = data
        return StoredObject(locator=locator, url=f"https://cdn.test/{locator}")

    def derive_attachment_url(self, locator: str, filename: str) -> Optional[str]:
        if self.fail_derive:
            raise StorageError("signing failed")
        if self.derive_none:
            return None
        return f"https://cdn.test/{locator}?response-content-disposition=attachment"


def make_settings(tmp_dir: str, **overrides) -> Settings:
    options = {
        "_env_file": None,
        "database_url": f"sqlite+aiosqlite:///{Path(tmp_dir) / 'test.db'}",
        "migrate_on_startup": False,
        "redis_url": None,
        "endpoint_url": None,
        "r2_account_id": None,
        "aws_access_key_id": None,
        "aws_secret_access_key": None,
        "debug": False,
    }
    options.update(overrides)
    return Settings(**options)


class AppTestMixin:
    """为每个测试创建独立的应用、临时数据库和内存存储"""

    def start_app(self, storage: Optional[FakeStorage] = None, **overrides) -> TestClient:
        self._tmp = tempfile.TemporaryDirectory()
        self.db_path = Path(self._tmp.name) / "test.db"
        self.settings = make_settings(self._tmp.name, **overrides)
        self.storage = storage or FakeStorage()
        self.app = create_app(self.settings, storage=self.storage)
        self.client = TestClient(self.app)
        self.client.__enter__()
        return self.client

    def count_records(self) -> int:
        conn = sqlite3.connect(self.db_path)
        try:
            return conn.execute("SELECT COUNT(*) FROM file_records").fetchone()[0]
        finally:
            conn.close()

    def stop_app(self) -> None:
        self.client.__exit__(None, None, None)
        self._tmp.cleanup()
