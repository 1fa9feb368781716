"""Exceptions raised by the relay pipeline."""


class RelayError(Exception):
    """Base class for every failure a relay can surface to its caller."""


class DownloadError(RelayError):
    """The source could not be fetched (unreachable, non-2xx, or empty)."""

    def __init__(self, url: str, status: int | None = None, reason: str = ""):
        self.url = url
        self.status = status
        self.reason = reason
        if status is not None:
            message = f"Failed to download attachment: HTTP {status}"
        else:
            message = f"Failed to download attachment: {reason or 'network error'}"
        super().__init__(message)


class ChunkTransferError(RelayError):
    """The destination rejected a chunk at the HTTP level, or never answered."""

    def __init__(self, status: int | None, body: str, offset: int, reason: str = ""):
        self.status = status
        self.body = body
        self.offset = offset
        if status is not None:
            message = f"Partial upload failed {status} at byte {offset}: {body}"
        else:
            message = f"Partial upload failed at byte {offset}: {reason or body}"
        super().__init__(message)


class ChunkSessionError(RelayError):
    """The destination broke the chunk session (partialSuccess=false and friends)."""

    def __init__(self, message: str, offset: int, identifier: str | None = None):
        self.offset = offset
        self.identifier = identifier
        super().__init__(message)


class StagingError(RelayError):
    """A chunk could not be written to transient storage."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Could not stage chunk at {path}: {reason}")


class UploadError(RelayError):
    """The single-shot upload endpoint returned a non-success status."""

    def __init__(self, status: int | None, body: str):
        self.status = status
        self.body = body
        super().__init__(f"Zipline upload error {status}: {body}")


class AccountError(RelayError):
    """The account endpoint could not be queried."""


class InvalidTransition(RuntimeError):
    """An upload session tried to move between states that are not connected."""
