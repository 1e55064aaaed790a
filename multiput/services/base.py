from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from multiput.services.orchestrator import UploadSession


@dataclass(frozen=True, slots=True)
class UploadResult:
    """Outcome of a committed upload."""

    bucket: str
    key: str
    etag: str
    size_bytes: int
    part_count: int
    elapsed_seconds: float
    upload_id: str | None = None

    @property
    def display_etag(self) -> str:
        """The etag without the quote characters stores wrap it in."""
        return self.etag.replace('"', "")


class UploadError(Exception):
    """Base class for upload engine exceptions.

    ``session`` is attached by the orchestrator when the failure happened
    inside a multipart session, so callers can inspect what was left behind.
    """

    session: "UploadSession | None" = None


class InvalidPartition(UploadError, ValueError):
    """Raised when a source cannot be split into the requested parts."""


class SourceError(UploadError):
    """Raised when the byte source cannot be opened or read as announced."""

    def __init__(self, message: str, *, part_number: int | None = None) -> None:
        super().__init__(message)
        self.part_number = part_number


class TransportError(UploadError):
    """Raised when a call to the object store fails."""

    def __init__(self, message: str, *, part_number: int | None = None) -> None:
        super().__init__(message)
        self.part_number = part_number


class MissingTag(UploadError):
    """Raised when the store accepts data but returns no identifying tag."""

    def __init__(self, message: str, *, part_number: int | None = None) -> None:
        super().__init__(message)
        self.part_number = part_number


class NoUploadId(UploadError):
    """Raised when initiating a session yields no upload id."""


class IncompleteUpload(UploadError):
    """Raised when the store rejects the completed part list.

    The remote session stays open; the caller decides whether to abort it.
    """

    def __init__(self, message: str, *, upload_id: str) -> None:
        super().__init__(message)
        self.upload_id = upload_id


class UploadCancelled(UploadError):
    """Raised when an upload is cancelled before it could be committed."""


class SessionStateError(UploadError):
    """Raised when a session is driven through an illegal transition."""
