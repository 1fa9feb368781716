"""
Chunked relay: source URL → fixed-size chunks → Zipline partial upload.

The upload session is an explicit state machine:

    DOWNLOADING → CHUNKING ⇄ SENDING_CHUNK → COMPLETED
                                           ↘ PARTIAL_FAILURE
                        (any non-terminal) → TRANSFER_ERROR

Only one chunk is ever in flight, in stream order, because the host stitches
chunks together by contiguous byte range under one session identifier.
"""

from __future__ import annotations

import asyncio
import inspect
from contextlib import aclosing, asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable

import aiohttp

from relaybot.logging_config import get_logger
from relaybot.services.chunk_client import ChunkTransferClient, OutcomeKind
from relaybot.services.chunk_store import ChunkStore
from relaybot.services.errors import (
    ChunkSessionError,
    DownloadError,
    InvalidTransition,
    RelayError,
)
from relaybot.services.models import (
    Chunk,
    Route,
    TransferDescriptor,
    UploadResult,
)
from relaybot.services.rechunker import Rechunker

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], Awaitable[None] | None]


class UploadState(str, Enum):
    DOWNLOADING = "downloading"
    CHUNKING = "chunking"
    SENDING_CHUNK = "sending_chunk"
    COMPLETED = "completed"
    PARTIAL_FAILURE = "partial_failure"
    TRANSFER_ERROR = "transfer_error"


TERMINAL_STATES = frozenset(
    {UploadState.COMPLETED, UploadState.PARTIAL_FAILURE, UploadState.TRANSFER_ERROR}
)

_ALLOWED = {
    UploadState.DOWNLOADING: {UploadState.CHUNKING, UploadState.TRANSFER_ERROR},
    UploadState.CHUNKING: {
        UploadState.SENDING_CHUNK,
        UploadState.PARTIAL_FAILURE,
        UploadState.TRANSFER_ERROR,
    },
    UploadState.SENDING_CHUNK: {
        UploadState.CHUNKING,
        UploadState.COMPLETED,
        UploadState.PARTIAL_FAILURE,
        UploadState.TRANSFER_ERROR,
    },
}


def transition(current: UploadState, target: UploadState) -> UploadState:
    if target not in _ALLOWED.get(current, ()):
        raise InvalidTransition(f"{current.value} -> {target.value}")
    return target


@dataclass
class SessionState:
    session_identifier: str | None = None
    bytes_sent: int = 0
    state: UploadState = UploadState.DOWNLOADING

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def move(self, target: UploadState) -> None:
        self.state = transition(self.state, target)


class ChunkedUploader:
    def __init__(self, session: aiohttp.ClientSession, store: ChunkStore, chunk_size: int):
        self.session = session
        self.store = store
        self.chunk_size = chunk_size
        self.client = ChunkTransferClient(session, store)
        # Last session driven by this uploader, kept for inspection
        self.last_state: SessionState | None = None

    @asynccontextmanager
    async def _open_source(self, url: str) -> AsyncIterator[AsyncIterator[bytes]]:
        try:
            async with self.session.get(url) as resp:
                if not 200 <= resp.status < 300:
                    raise DownloadError(url, status=resp.status)
                yield resp.content.iter_any()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DownloadError(url, reason=str(e) or "request timed out") from e

    async def upload(
        self,
        descriptor: TransferDescriptor,
        on_progress: ProgressCallback | None = None,
    ) -> UploadResult:
        state = SessionState()
        self.last_state = state
        try:
            async with self._open_source(descriptor.source_url) as source:
                state.move(UploadState.CHUNKING)
                rechunker = Rechunker(source, self.chunk_size)
                async with aclosing(rechunker.chunks()) as chunks:
                    async for chunk in chunks:
                        result = await self._send(chunk, state, descriptor, on_progress)
                        if result is not None:
                            return result
                        state.move(UploadState.CHUNKING)

            state.move(UploadState.PARTIAL_FAILURE)
            raise ChunkSessionError(
                "Partial upload ended without the server returning any files",
                offset=state.bytes_sent,
                identifier=state.session_identifier,
            )
        except RelayError:
            if not state.terminal:
                state.move(UploadState.TRANSFER_ERROR)
            raise

    async def _send(
        self,
        chunk: Chunk,
        state: SessionState,
        descriptor: TransferDescriptor,
        on_progress: ProgressCallback | None,
    ) -> UploadResult | None:
        if chunk.size == 0:
            raise DownloadError(descriptor.source_url, reason="source returned no data")

        state.move(UploadState.SENDING_CHUNK)
        effective_length = descriptor.declared_length or None
        if chunk.is_last:
            effective_length = state.bytes_sent + chunk.size
            if descriptor.declared_length and effective_length != descriptor.declared_length:
                logger.warning(
                    f"{descriptor.filename}: source advertised {descriptor.declared_length} bytes "
                    f"but delivered {effective_length}; correcting on final chunk"
                )
        elif effective_length is not None and chunk.end >= effective_length:
            logger.warning(
                f"{descriptor.filename}: chunk {chunk.offset}-{chunk.end} runs past the "
                f"advertised length {effective_length}"
            )

        outcome = await self.client.send(
            chunk, state.session_identifier, descriptor, effective_length
        )

        if outcome.kind is OutcomeKind.COMPLETED:
            if not chunk.is_last:
                logger.warning(
                    f"{descriptor.filename}: server completed the upload at byte "
                    f"{chunk.end + 1} before the final chunk was sent"
                )
            state.bytes_sent += chunk.size
            state.move(UploadState.COMPLETED)
            return UploadResult(
                response=outcome.response, route=Route.CHUNKED, bytes_sent=state.bytes_sent
            )

        if outcome.kind is OutcomeKind.REJECTED:
            state.move(UploadState.PARTIAL_FAILURE)
            raise ChunkSessionError(
                "Partial upload failed; server indicated partialSuccess=false",
                offset=chunk.offset,
                identifier=state.session_identifier,
            )

        if outcome.kind is OutcomeKind.SESSION_ASSIGNED:
            if state.session_identifier and outcome.identifier != state.session_identifier:
                state.move(UploadState.PARTIAL_FAILURE)
                raise ChunkSessionError(
                    f"Server switched partial identifier from {state.session_identifier} "
                    f"to {outcome.identifier}",
                    offset=chunk.offset,
                    identifier=state.session_identifier,
                )
            state.session_identifier = outcome.identifier

        state.bytes_sent += chunk.size
        if on_progress is not None:
            total = descriptor.declared_length or effective_length or state.bytes_sent
            ret = on_progress(state.bytes_sent, total)
            if inspect.isawaitable(ret):
                await ret
        return None
