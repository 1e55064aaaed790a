"""Object store client protocol and data types.

This module defines the narrow interface the upload engine consumes from an
object store: initiate, upload part, complete, abort, and single-shot put.
Signing, transport retries, TLS and endpoint resolution stay behind it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Protocol, Sequence


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""


@dataclass(frozen=True, slots=True)
class CompletionToken:
    """Store-assigned identifier for one successfully uploaded part."""

    part_number: int
    etag: str


class ObjectStoreClient(Protocol):
    """Protocol defining the interface for object storage backends.

    Every method takes keyword arguments only. Tags returned by the store are
    passed through untouched and may be ``None`` when the store omits them;
    callers decide whether that is acceptable.
    """

    def initiate_upload(self, *, bucket: str, key: str) -> str | None:
        """Start a multipart upload session.

        Args:
            bucket: Target bucket name.
            key: Object key in the bucket.

        Returns:
            The upload id issued by the store, or None if it omitted one.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def upload_part(
        self,
        *,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        content_length: int,
        body: BinaryIO,
    ) -> str | None:
        """Upload one part of a multipart session.

        Args:
            bucket: Target bucket name.
            key: Object key in the bucket.
            upload_id: Session id from initiate_upload.
            part_number: Part number (1-based, max 10000).
            content_length: Exact number of bytes ``body`` yields.
            body: Readable stream positioned at the start of the part.

        Returns:
            The part etag, or None if the store omitted it.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def complete_upload(
        self,
        *,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[CompletionToken],
    ) -> str | None:
        """Commit the session's parts as one object.

        Args:
            bucket: Target bucket name.
            key: Object key in the bucket.
            upload_id: Session id.
            parts: Completion tokens in ascending part_number order.

        Returns:
            The etag of the assembled object, or None if the store omitted it.

        Raises:
            StorageError: If the store rejects the part list or the call fails.
        """
        ...

    def abort_upload(self, *, bucket: str, key: str, upload_id: str) -> None:
        """Abort a session and release the parts stored so far.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def put_object(
        self,
        *,
        bucket: str,
        key: str,
        content_length: int,
        body: BinaryIO,
    ) -> str | None:
        """Upload a whole object in one call.

        Returns:
            The object etag, or None if the store omitted it.

        Raises:
            StorageError: If the operation fails.
        """
        ...
