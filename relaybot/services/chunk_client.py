"""
One request/response exchange per chunk against /api/upload/partial.

The client stages the chunk, posts it as a single multipart `file` field with
the range and session headers the host expects, releases the staged file, and
tells the coordinator what the host said. It never retries; a failed chunk
fails the relay.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum

import aiohttp
from pydantic import ValidationError

from relaybot.logging_config import get_logger
from relaybot.services.chunk_store import ChunkStore
from relaybot.services.errors import ChunkTransferError
from relaybot.services.models import Chunk, TransferDescriptor, UploadResponse

logger = get_logger(__name__)

PARTIAL_UPLOAD_PATH = "/api/upload/partial"


class OutcomeKind(str, Enum):
    COMPLETED = "completed"            # host returned the finished file list
    SESSION_ASSIGNED = "session"       # host returned a partialIdentifier
    REJECTED = "rejected"              # host said partialSuccess=false
    ACKNOWLEDGED = "acknowledged"      # 2xx with nothing else to act on


@dataclass(frozen=True)
class ChunkOutcome:
    kind: OutcomeKind
    response: UploadResponse

    @property
    def identifier(self) -> str | None:
        return self.response.partial_identifier


def classify(response: UploadResponse) -> OutcomeKind:
    if response.files:
        return OutcomeKind.COMPLETED
    if response.partial_success is False:
        return OutcomeKind.REJECTED
    if response.partial_identifier:
        return OutcomeKind.SESSION_ASSIGNED
    return OutcomeKind.ACKNOWLEDGED


def build_headers(
    chunk: Chunk,
    descriptor: TransferDescriptor,
    session_identifier: str | None,
    effective_length: int | None,
) -> dict[str, str]:
    """
    Protocol headers for one chunk.

    `effective_length` of None means the total is unknown so far; the range
    then advertises `*` and no content-length header is sent. RelayService
    never routes an unknown length to the chunked path, so only direct
    ChunkedUploader callers reach this; the last chunk always carries the
    real total.
    """
    total = str(effective_length) if effective_length else "*"
    headers = {
        "Authorization": descriptor.credential,
        "Content-Range": f"bytes {chunk.offset}-{chunk.end}/{total}",
        "x-upload-filename": descriptor.filename,
        "x-upload-content-type": descriptor.mime_type,
        "x-upload-lastchunk": "true" if chunk.is_last else "false",
    }
    if effective_length:
        headers["x-upload-content-length"] = str(effective_length)
    if session_identifier:
        headers["x-upload-identifier"] = session_identifier

    opts = descriptor.upload_settings
    if opts.expiry:
        headers["x-upload-deletes-at"] = opts.expiry
    if opts.compression:
        headers["x-upload-compression"] = opts.compression
    return headers


class ChunkTransferClient:
    def __init__(self, session: aiohttp.ClientSession, store: ChunkStore):
        self.session = session
        self.store = store

    async def send(
        self,
        chunk: Chunk,
        session_identifier: str | None,
        descriptor: TransferDescriptor,
        effective_length: int | None,
    ) -> ChunkOutcome:
        url = descriptor.base_url + PARTIAL_UPLOAD_PATH
        headers = build_headers(chunk, descriptor, session_identifier, effective_length)
        logger.debug(
            f"Chunk {headers['Content-Range']} last={chunk.is_last} "
            f"identifier={session_identifier}"
        )

        async with self.store.staged(chunk) as staged:
            # aiohttp reads file payloads in its executor, so a plain handle is fine
            with open(staged.path, "rb") as fh:
                form = aiohttp.FormData()
                form.add_field(
                    "file",
                    fh,
                    filename=descriptor.filename,
                    content_type=descriptor.mime_type,
                )
                try:
                    async with self.session.post(url, data=form, headers=headers) as resp:
                        status = resp.status
                        body = await resp.text()
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    raise ChunkTransferError(
                        None, "", chunk.offset, reason=str(e) or "request timed out"
                    ) from e

        if not 200 <= status < 300:
            raise ChunkTransferError(status, body, chunk.offset)

        try:
            parsed = UploadResponse.model_validate_json(body)
        except ValidationError as e:
            raise ChunkTransferError(
                status, body, chunk.offset, reason="unreadable response body"
            ) from e

        return ChunkOutcome(kind=classify(parsed), response=parsed)
