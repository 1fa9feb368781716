"""
Transient on-disk staging for chunks in flight.

Every chunk is written to its own file right before it is posted and removed
right after, whatever happened in between. Names mix a nanosecond timestamp
with a random UUID so concurrent relays sharing the directory never collide.
"""

import asyncio
import os
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiofiles
import aiofiles.os

from relaybot.logging_config import get_logger
from relaybot.services.errors import StagingError
from relaybot.services.models import Chunk, StagedChunk

logger = get_logger(__name__)

STAGING_PREFIX = "tmp_chunk_"


class ChunkStore:
    def __init__(self, directory: str | os.PathLike):
        self.directory = Path(directory)

    def new_path(self, prefix: str = STAGING_PREFIX) -> Path:
        return self.directory / f"{prefix}{time.time_ns()}_{uuid.uuid4().hex}.bin"

    async def prepare(self) -> None:
        await aiofiles.os.makedirs(self.directory, exist_ok=True)

    async def stage(self, chunk: Chunk) -> StagedChunk:
        path = self.new_path()
        try:
            await self.prepare()
            async with aiofiles.open(path, "xb") as f:
                await f.write(chunk.data)
        except BaseException as e:
            # Don't leave a half-written file behind, even when cancelled mid-write
            await asyncio.shield(self.discard(str(path)))
            if isinstance(e, OSError):
                raise StagingError(str(path), str(e)) from e
            raise
        return StagedChunk(path=str(path), offset=chunk.offset, size=chunk.size)

    async def release(self, handle: StagedChunk) -> None:
        await self.discard(handle.path)

    async def discard(self, path: str) -> None:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to delete staged file {path}: {e}")

    @asynccontextmanager
    async def staged(self, chunk: Chunk) -> AsyncIterator[StagedChunk]:
        """Stage `chunk` for the duration of the block, then always release it."""
        handle = await self.stage(chunk)
        try:
            yield handle
        finally:
            # Shielded so a cancelled relay still gets its file removed
            await asyncio.shield(self.release(handle))

    def residual(self) -> list[Path]:
        if not self.directory.exists():
            return []
        return sorted(self.directory.glob("tmp_*"))
