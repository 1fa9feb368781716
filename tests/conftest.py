"""Shared pytest fixtures: an in-process fake Zipline instance and file source."""

import asyncio
import json
from pathlib import Path

import pytest
import pytest_asyncio
from aiohttp import ClientSession, ClientTimeout, web
from aiohttp.test_utils import TestServer

from relaybot.services.chunk_store import ChunkStore
from relaybot.services.models import TransferDescriptor, UploadSettings

FINAL_FILES = {"files": [{"id": "abc123", "url": "http://zipline.test/u/abc123.bin"}]}


class FakeZipline:
    """
    Serves source files under /src and /nohead, and implements the Zipline
    upload endpoints closely enough for the relay to drive them.

    Replies to /api/upload/partial come from `partial_replies` in order
    (status, json-or-text); once exhausted, the default behaviour assigns
    session "sess-1" and returns FINAL_FILES on the last chunk.
    """

    def __init__(self):
        self.base_url = ""
        self.sources: dict[str, bytes] = {}
        self.partial_replies: list[tuple[int, object]] = []
        self.partial_requests: list[dict] = []
        self.upload_requests: list[dict] = []
        self.upload_reply: tuple[int, object] = (200, FINAL_FILES)
        self.staging_dir: Path | None = None
        self.version_reply: tuple[int, object] = (200, {"details": {"version": "4.2.0"}})
        # Seconds to stall before answering, keyed by "source", "partial" or "upload"
        self.delays: dict[str, float] = {}

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/src/{name}", self.serve_source)
        app.router.add_get("/nohead/{name}", self.serve_source, allow_head=False)
        app.router.add_post("/api/upload/partial", self.partial)
        app.router.add_post("/api/upload", self.upload)
        app.router.add_get("/api/user", self.user)
        app.router.add_get("/api/version", self.version)
        return app

    async def serve_source(self, request: web.Request) -> web.Response:
        name = request.match_info["name"]
        await self._stall("source")
        if name not in self.sources:
            raise web.HTTPNotFound()
        return web.Response(body=self.sources[name], content_type="application/x-test")

    async def _read_file_part(self, request: web.Request) -> tuple[bytes, str | None, str | None]:
        reader = await request.multipart()
        part = await reader.next()
        data = await part.read()
        return bytes(data), part.filename, part.headers.get("Content-Type")

    async def _stall(self, name: str) -> None:
        if self.delays.get(name):
            await asyncio.sleep(self.delays[name])

    def _staged_now(self) -> int:
        if self.staging_dir is None or not self.staging_dir.exists():
            return 0
        return len(list(self.staging_dir.glob("tmp_chunk_*")))

    async def partial(self, request: web.Request) -> web.Response:
        headers = request.headers.copy()
        data, filename, part_type = await self._read_file_part(request)
        await self._stall("partial")
        self.partial_requests.append(
            {
                "headers": headers,
                "data": data,
                "filename": filename,
                "part_type": part_type,
                "staged": self._staged_now(),
            }
        )

        index = len(self.partial_requests) - 1
        if index < len(self.partial_replies):
            status, body = self.partial_replies[index]
        elif headers.get("x-upload-lastchunk") == "true":
            status, body = 200, FINAL_FILES
        else:
            status, body = 200, {"partialSuccess": True, "partialIdentifier": "sess-1"}
        return _reply(status, body)

    async def upload(self, request: web.Request) -> web.Response:
        headers = request.headers.copy()
        data, filename, part_type = await self._read_file_part(request)
        await self._stall("upload")
        self.upload_requests.append(
            {"headers": headers, "data": data, "filename": filename, "part_type": part_type}
        )
        return _reply(*self.upload_reply)

    async def user(self, request: web.Request) -> web.Response:
        if request.headers.get("Authorization") != "good-token":
            return _reply(401, {"error": "unauthorized"})
        return _reply(
            200,
            {"user": {"id": "u1", "username": "alice", "role": "ADMIN", "quota": {"used": 5, "max": 100}}},
        )

    async def version(self, request: web.Request) -> web.Response:
        return _reply(*self.version_reply)


def _reply(status: int, body: object) -> web.Response:
    if isinstance(body, str):
        return web.Response(status=status, text=body, content_type="text/plain")
    return web.Response(status=status, text=json.dumps(body), content_type="application/json")


@pytest_asyncio.fixture
async def zipline():
    fake = FakeZipline()
    server = TestServer(fake.app())
    await server.start_server()
    fake.base_url = str(server.make_url("/")).rstrip("/")
    try:
        yield fake
    finally:
        await server.close()


@pytest_asyncio.fixture
async def http_session():
    async with ClientSession() as session:
        yield session


@pytest.fixture
def store(tmp_path):
    return ChunkStore(tmp_path / "staging")


@pytest.fixture
def make_descriptor(zipline):
    """Build a TransferDescriptor pointing at the fake server."""

    def _make(name: str, declared_length: int = 0, **kwargs) -> TransferDescriptor:
        kwargs.setdefault("upload_settings", UploadSettings())
        return TransferDescriptor(
            source_url=zipline.url(f"/src/{name}"),
            filename=kwargs.pop("filename", name),
            destination_base_url=zipline.base_url,
            credential=kwargs.pop("credential", "secret-token"),
            declared_length=declared_length,
            **kwargs,
        )

    return _make


@pytest_asyncio.fixture
async def impatient_session():
    """A session whose requests give up long before a stalled server answers."""
    async with ClientSession(timeout=ClientTimeout(total=0.2)) as session:
        yield session
