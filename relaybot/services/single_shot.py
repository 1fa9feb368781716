"""
Single-shot upload for files under the chunk threshold (or of unknown size).

The source is streamed to a staging file first so the multipart body has a
known length, then posted to /api/upload in one request.
"""

import asyncio

import aiofiles
import aiohttp
from pydantic import ValidationError

from relaybot.logging_config import get_logger
from relaybot.services.chunk_store import ChunkStore
from relaybot.services.errors import DownloadError, StagingError, UploadError
from relaybot.services.models import Route, TransferDescriptor, UploadResponse, UploadResult

logger = get_logger(__name__)

UPLOAD_PATH = "/api/upload"


class SingleShotUploader:
    def __init__(self, session: aiohttp.ClientSession, store: ChunkStore):
        self.session = session
        self.store = store

    async def _download(self, url: str, path: str) -> int:
        written = 0
        try:
            async with self.session.get(url) as resp:
                if not 200 <= resp.status < 300:
                    raise DownloadError(url, status=resp.status)
                async with aiofiles.open(path, "wb") as f:
                    async for data in resp.content.iter_any():
                        await f.write(data)
                        written += len(data)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DownloadError(url, reason=str(e) or "request timed out") from e
        except OSError as e:
            raise StagingError(path, str(e)) from e
        return written

    async def upload(self, descriptor: TransferDescriptor) -> UploadResult:
        await self.store.prepare()
        path = str(self.store.new_path(prefix="tmp_file_"))
        try:
            size = await self._download(descriptor.source_url, path)
            logger.debug(f"{descriptor.filename}: downloaded {size} bytes for single-shot upload")

            headers = {
                "Authorization": descriptor.credential,
                "x-upload-original-name": "true",
            }
            opts = descriptor.upload_settings
            if opts.expiry:
                headers["x-upload-deletes-at"] = opts.expiry
            if opts.compression:
                headers["x-upload-compression"] = opts.compression

            # aiohttp reads file payloads in its executor, so a plain handle is fine
            with open(path, "rb") as fh:
                form = aiohttp.FormData()
                form.add_field(
                    "file", fh, filename=descriptor.filename, content_type=descriptor.mime_type
                )
                try:
                    async with self.session.post(
                        descriptor.base_url + UPLOAD_PATH, data=form, headers=headers
                    ) as resp:
                        status = resp.status
                        body = await resp.text()
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    raise UploadError(None, str(e) or "request timed out") from e
        finally:
            await self.store.discard(path)

        if not 200 <= status < 300:
            raise UploadError(status, body)
        try:
            parsed = UploadResponse.model_validate_json(body)
        except ValidationError as e:
            raise UploadError(status, body) from e
        return UploadResult(response=parsed, route=Route.SINGLE_SHOT, bytes_sent=size)
