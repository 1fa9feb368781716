"""
Relays a remote file (Discord CDN attachment, embed image, any URL) into Zipline.

Flow:
  probe    → HEAD the source for its size, falling back to GET headers.
  dispatch → under the threshold or unknown size: single-shot /api/upload;
             at or above it: chunked /api/upload/partial.
  upload   → run the chosen uploader, reporting progress for chunked relays.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import aiohttp

from relaybot.config import Settings
from relaybot.logging_config import get_logger
from relaybot.services.chunk_store import ChunkStore
from relaybot.services.coordinator import ChunkedUploader, ProgressCallback
from relaybot.services.dispatcher import dispatch
from relaybot.services.models import Route, TransferDescriptor, UploadResult, UploadSettings
from relaybot.services.single_shot import SingleShotUploader

logger = get_logger(__name__)


@dataclass(frozen=True)
class SourceInfo:
    length: int = 0
    content_type: str | None = None


def _content_length(resp: aiohttp.ClientResponse) -> int:
    try:
        return int(resp.headers.get("Content-Length", "0") or 0)
    except ValueError:
        return 0


class RelayService:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        store: ChunkStore,
        threshold: int,
        chunk_size: int,
    ):
        self.session = session
        self.store = store
        self.threshold = threshold
        self.chunk_size = chunk_size
        self.active_transfers = 0

    @classmethod
    def create(cls, settings: Settings) -> "RelayService":
        timeout = aiohttp.ClientTimeout(total=settings.TRANSFER_TIMEOUT_SECONDS)
        return cls(
            session=aiohttp.ClientSession(timeout=timeout),
            store=ChunkStore(settings.STAGING_DIR),
            threshold=settings.CHUNK_THRESHOLD_BYTES,
            chunk_size=settings.CHUNK_SIZE_BYTES,
        )

    async def close(self):
        await self.session.close()

    async def probe(self, url: str) -> SourceInfo:
        """Best-effort size and type of the source. Unknown size is 0."""
        length = 0
        content_type = None
        try:
            async with self.session.head(url, allow_redirects=True) as resp:
                if resp.ok:
                    length = _content_length(resp)
                    content_type = resp.headers.get("Content-Type")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"HEAD {url} failed: {e}")

        if length == 0:
            # Some hosts refuse HEAD or omit the length there; GET headers are enough
            try:
                async with self.session.get(url) as resp:
                    if resp.ok:
                        length = _content_length(resp)
                        content_type = content_type or resp.headers.get("Content-Type")
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.debug(f"GET {url} (probe) failed: {e}")

        return SourceInfo(length=length, content_type=content_type)

    async def relay(
        self,
        url: str,
        filename: str,
        base_url: str,
        credential: str,
        upload_settings: UploadSettings | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> UploadResult:
        info = await self.probe(url)
        descriptor = TransferDescriptor(
            source_url=url,
            filename=filename,
            destination_base_url=base_url,
            credential=credential,
            declared_length=info.length,
            content_type=info.content_type,
            upload_settings=upload_settings or UploadSettings(),
        )
        route = dispatch(descriptor, self.threshold)
        logger.info(f"Relaying {filename} ({info.length or 'unknown'} bytes) via {route.value}")

        self.active_transfers += 1
        try:
            if route is Route.CHUNKED:
                uploader = ChunkedUploader(self.session, self.store, self.chunk_size)
                return await uploader.upload(descriptor, on_progress)
            return await SingleShotUploader(self.session, self.store).upload(descriptor)
        finally:
            self.active_transfers -= 1
