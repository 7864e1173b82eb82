import unittest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

from music_share.core.config import Settings
from music_share.core.redis import RedisManager
from music_share.features.files.models import FileRecord, new_file_id, normalize_file_id
from music_share.features.files.service import FileService
from music_share.shared.exceptions import NotFoundError, PayloadTooLargeError
from tests.helpers import FakeStorage


CACHED_RECORD = {
    "id": "65f1c0de0123456789abcdef",
    "filename": "song.mp3",
    "path": "https://cdn.test/music-share-app/0000.mp3",
    "size": 3145728,
    "content_type": "audio/mpeg",
    "public_id": "music-share-app/0000.mp3",
    "created_at": "2026-10-19T10:15:00.123456",
}


class TestFileIds(unittest.TestCase):

    def test_new_ids_are_24_hex(self):
        ids = {new_file_id() for _ in range(50)}
        self.assertEqual(len(ids), 50)
        for file_id in ids:
            self.assertEqual(normalize_file_id(file_id), file_id)

    def test_normalize(self):
        self.assertEqual(normalize_file_id(" 65F1C0DE0123456789ABCDEF "), "65f1c0de0123456789abcdef")
        self.assertIsNone(normalize_file_id("65f1c0de"))
        self.assertIsNone(normalize_file_id("../65f1c0de0123456789abcd"))


class TestRedisManagerDisabled(unittest.IsolatedAsyncioTestCase):

    async def test_operations_degrade_without_redis(self):
        manager = RedisManager(Settings(_env_file=None, redis_url=None))

        self.assertIsNone(manager.redis_client)
        self.assertIsNone(await manager.get("key"))
        self.assertFalse(await manager.set("key", {"a": 1}))
        self.assertFalse(await manager.ping())
        self.assertEqual(manager.build_key("files", "record", "abc"), "music_share:files:record:abc")

    def test_undecodable_value_is_a_miss(self):
        manager = RedisManager(Settings(_env_file=None, redis_url=None))

        self.assertIsNone(manager._deserialize_value("not json {"))
        self.assertEqual(manager._deserialize_value("{\"a\": 1}"), {"a": 1})


class TestFileServiceCache(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.settings = Settings(_env_file=None, redis_url=None, cache_ttl_file=60)
        self.cache = MagicMock(spec=RedisManager)
        self.cache.build_key.side_effect = lambda *parts: ":".join(["music_share", *parts])
        self.cache.get = AsyncMock(return_value=None)
        self.cache.set = AsyncMock(return_value=True)
        self.service = FileService(FakeStorage(), self.cache, self.settings)

    def db_returning(self, record):
        result = MagicMock()
        result.scalar_one_or_none.return_value = record
        db = MagicMock()
        db.execute = AsyncMock(return_value=result)
        return db

    async def test_cache_hit_skips_database(self):
        self.cache.get.return_value = CACHED_RECORD
        db = self.db_returning(None)

        record = await self.service.get_file(db, CACHED_RECORD["id"])

        db.execute.assert_not_called()
        self.assertEqual(record.filename, "song.mp3")
        self.assertEqual(record.created_at, datetime(2026, 10, 19, 10, 15, 0, 123456))
        self.cache.get.assert_awaited_once_with("music_share:files:record:65f1c0de0123456789abcdef")

    async def test_cache_miss_reads_database_and_fills_cache(self):
        stored = FileRecord(
            id=CACHED_RECORD["id"],
            filename="song.mp3",
            path=CACHED_RECORD["path"],
            public_id=CACHED_RECORD["public_id"],
            size=3145728,
            content_type="audio/mpeg",
            created_at=datetime(2026, 10, 19, 10, 15, 0, 123456),
        )
        db = self.db_returning(stored)

        record = await self.service.get_file(db, CACHED_RECORD["id"])

        self.assertEqual(record.size, 3145728)
        db.execute.assert_awaited_once()
        key, value, ttl = self.cache.set.await_args.args
        self.assertEqual(key, "music_share:files:record:65f1c0de0123456789abcdef")
        self.assertEqual(value, CACHED_RECORD)
        self.assertEqual(ttl, 60)

    async def test_invalid_cache_entry_falls_back_to_database(self):
        stored = FileRecord(
            id=CACHED_RECORD["id"],
            filename="song.mp3",
            path=CACHED_RECORD["path"],
            public_id=CACHED_RECORD["public_id"],
            size=3145728,
            content_type="audio/mpeg",
        )

        for cached in ["not json {", {"filename": "song.mp3"}]:
            self.cache.get.return_value = cached
            db = self.db_returning(stored)

            record = await self.service.get_file(db, CACHED_RECORD["id"])

            self.assertEqual(record.filename, "song.mp3")
            db.execute.assert_awaited_once()

    async def test_oversized_upload_rejected_before_reading(self):
        self.settings.max_upload_size = 10
        upload = MagicMock()
        upload.filename = "song.mp3"
        upload.content_type = "audio/mpeg"
        upload.size = 11
        upload.read = AsyncMock(return_value=b"x" * 11)

        with self.assertRaises(PayloadTooLargeError):
            await self.service.upload_file(MagicMock(), upload)

        upload.read.assert_not_called()
        self.assertEqual(self.service.storage.objects, {})

    async def test_malformed_id_never_reaches_store(self):
        db = self.db_returning(None)

        self.assertIsNone(await self.service.get_file(db, "not-an-id"))
        db.execute.assert_not_called()
        self.cache.get.assert_not_called()

    async def test_require_file_raises_not_found(self):
        db = self.db_returning(None)

        with self.assertRaises(NotFoundError) as ctx:
            await self.service.require_file(db, "000000000000000000000000")
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(ctx.exception.detail, "File not found")


if __name__ == "__main__":
    unittest.main()
