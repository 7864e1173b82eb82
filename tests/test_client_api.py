import tempfile
import unittest
from pathlib import Path

from aiohttp import web
from aiohttp.test_utils import TestServer

from music_share.client.api import FileNotFoundOnServer, MusicShareAPIError, MusicShareClient


FILE_ID = "65f1c0de0123456789abcdef"
UPLOADS = web.AppKey("uploads", list)


async def handle_upload(request: web.Request) -> web.Response:
    form = await request.post()
    upload = form.get("file")
    if upload is None or not hasattr(upload, "file"):
        return web.json_response({"error": "No file uploaded"}, status=400)
    request.app[UPLOADS].append((upload.filename, upload.content_type, upload.file.read()))
    return web.json_response({"success": True, "fileId": FILE_ID, "downloadUrl": "https://cdn.test/x.mp3"})


async def handle_file(request: web.Request) -> web.Response:
    if request.match_info["file_id"] != FILE_ID:
        return web.json_response({"error": "File not found"}, status=404)
    return web.json_response({"id": FILE_ID, "filename": "song.mp3", "size": 9})


async def handle_download(request: web.Request) -> web.Response:
    if request.match_info["file_id"] == "broken":
        return web.json_response({"error": "Download failed"}, status=500)
    return web.json_response({"url": "https://cdn.test/x.mp3?response-content-disposition=attachment"})


class TestMusicShareClient(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        app = web.Application()
        app[UPLOADS] = []
        app.router.add_post("/api/upload", handle_upload)
        app.router.add_get("/api/file/{file_id}", handle_file)
        app.router.add_get("/api/download/{file_id}", handle_download)
        self.web_app = app
        self.server = TestServer(app)
        await self.server.start_server()
        self.base_url = str(self.server.make_url("/")).rstrip("/")

        self._tmp = tempfile.TemporaryDirectory()
        self.song = Path(self._tmp.name) / "song.mp3"
        self.song.write_bytes(b"ID3ID3ID3")

    async def asyncTearDown(self):
        await self.server.close()
        self._tmp.cleanup()

    async def test_upload_sends_file_part(self):
        async with MusicShareClient(self.base_url) as client:
            result = await client.upload(self.song, "audio/mpeg")

        self.assertEqual(result.file_id, FILE_ID)
        self.assertEqual(result.download_url, "https://cdn.test/x.mp3")
        self.assertEqual(self.web_app[UPLOADS], [("song.mp3", "audio/mpeg", b"ID3ID3ID3")])

    async def test_get_file(self):
        async with MusicShareClient(self.base_url) as client:
            body = await client.get_file(FILE_ID)
        self.assertEqual(body["filename"], "song.mp3")

    async def test_get_file_not_found(self):
        async with MusicShareClient(self.base_url) as client:
            with self.assertRaises(FileNotFoundOnServer) as ctx:
                await client.get_file("000000000000000000000000")
        self.assertEqual(ctx.exception.status, 404)
        self.assertEqual(ctx.exception.message, "File not found")

    async def test_resolve_download_without_context_manager(self):
        client = MusicShareClient(self.base_url)
        url = await client.resolve_download(FILE_ID)
        self.assertIn("attachment", url)

    async def test_server_error(self):
        async with MusicShareClient(self.base_url) as client:
            with self.assertRaises(MusicShareAPIError) as ctx:
                await client.resolve_download("broken")
        self.assertEqual(ctx.exception.status, 500)
        self.assertNotIsInstance(ctx.exception, FileNotFoundOnServer)

    async def test_connection_error(self):
        await self.server.close()
        async with MusicShareClient(self.base_url, timeout=5) as client:
            with self.assertRaises(MusicShareAPIError) as ctx:
                await client.get_file(FILE_ID)
        self.assertEqual(ctx.exception.status, 0)


if __name__ == "__main__":
    unittest.main()
