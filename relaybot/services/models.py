"""
Data carried through one relay.

Wire payloads from the file host are pydantic models; the pieces that move
through the pipeline itself (descriptor, chunks, staged handles) are plain
dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class UploadSettings(BaseModel):
    """Per-user upload options, passed to the host as request metadata."""

    expiry: str | None = None
    compression: str | None = None

    @field_validator("expiry", "compression", mode="before")
    @classmethod
    def _blank_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


@dataclass(frozen=True)
class TransferDescriptor:
    source_url: str
    filename: str
    destination_base_url: str
    credential: str
    declared_length: int = 0
    content_type: str | None = None
    upload_settings: UploadSettings = field(default_factory=UploadSettings)

    @property
    def base_url(self) -> str:
        return self.destination_base_url.rstrip("/")

    @property
    def mime_type(self) -> str:
        return self.content_type or DEFAULT_CONTENT_TYPE


@dataclass(frozen=True)
class Chunk:
    offset: int
    data: bytes
    is_last: bool

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def end(self) -> int:
        """Index of the final byte in this chunk (inclusive)."""
        return self.offset + self.size - 1


@dataclass(frozen=True)
class StagedChunk:
    path: str
    offset: int
    size: int


class UploadedFile(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | int | None = None
    url: str | None = None
    name: str | None = None
    type: str | None = None

    def link(self, base_url: str) -> str:
        if self.url:
            return self.url
        return f"{base_url.rstrip('/')}/u/{self.id}"


class UploadResponse(BaseModel):
    """JSON body returned by /api/upload and /api/upload/partial."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    files: list[UploadedFile] = Field(default_factory=list)
    partial_identifier: str | None = Field(default=None, alias="partialIdentifier")
    partial_success: bool | None = Field(default=None, alias="partialSuccess")


class Route(str, Enum):
    SINGLE_SHOT = "single_shot"
    CHUNKED = "chunked"


class UploadResult(BaseModel):
    response: UploadResponse
    route: Route
    bytes_sent: int = 0

    @property
    def files(self) -> list[UploadedFile]:
        return self.response.files

    def links(self, base_url: str) -> list[str]:
        return [f.link(base_url) for f in self.files]
