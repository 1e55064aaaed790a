"""Bounded, pull-based readers over byte ranges of a source file."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator

from multiput.services.base import SourceError

DEFAULT_BUFFER_SIZE = 64 * 1024


@dataclass(frozen=True, slots=True)
class SourceDescriptor:
    """A byte source and its total length, fixed before planning."""

    path: Path
    length: int

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> "SourceDescriptor":
        resolved = Path(path)
        try:
            stat = resolved.stat()
        except OSError as exc:
            raise SourceError(f"Cannot stat source {resolved}: {exc}") from exc
        if not resolved.is_file():
            raise SourceError(f"Source {resolved} is not a regular file")
        return cls(path=resolved, length=int(stat.st_size))


class ByteRangeReader:
    """Read cursor limited to ``length`` bytes starting at ``offset``.

    The reader behaves like a binary file restricted to its range: ``read``
    never returns bytes past the end of the range, and ``tell``/``seek`` are
    relative to the range start so a transport can rewind the body. No single
    read of the underlying handle exceeds ``buffer_size`` bytes. The handle is
    only closed by the reader when it owns it.
    """

    def __init__(
        self,
        handle: BinaryIO,
        offset: int,
        length: int,
        *,
        buffer_size: int | None = None,
        owns_handle: bool = False,
    ) -> None:
        if offset < 0 or length < 0:
            raise SourceError("offset and length must not be negative")
        self._handle = handle
        self._offset = offset
        self._length = length
        self._position = 0
        self._buffer_size = buffer_size or DEFAULT_BUFFER_SIZE
        self._owns_handle = owns_handle
        self._closed = False
        self._handle.seek(offset)

    @property
    def length(self) -> int:
        return self._length

    @property
    def closed(self) -> bool:
        return self._closed

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def tell(self) -> int:
        return self._position

    def seek(self, position: int, whence: int = os.SEEK_SET) -> int:
        self._check_open()
        if whence == os.SEEK_SET:
            target = position
        elif whence == os.SEEK_CUR:
            target = self._position + position
        elif whence == os.SEEK_END:
            target = self._length + position
        else:
            raise ValueError(f"invalid whence ({whence})")
        self._position = min(max(target, 0), self._length)
        self._handle.seek(self._offset + self._position)
        return self._position

    def read(self, size: int | None = -1) -> bytes:
        self._check_open()
        remaining = self._length - self._position
        if remaining <= 0:
            return b""
        if size is None or size < 0 or size > remaining:
            size = remaining

        # Each handle read is bounded by the buffer capacity.
        chunks: list[bytes] = []
        wanted = size
        while wanted:
            data = self._handle.read(min(wanted, self._buffer_size))
            if not data:
                raise SourceError(
                    f"Source ended {remaining - (size - wanted)} bytes before the "
                    f"end of range at offset {self._offset}"
                )
            chunks.append(data)
            wanted -= len(data)
        self._position += size
        return b"".join(chunks)

    def blocks(self) -> Iterator[bytes]:
        """Yield the rest of the range lazily, ``buffer_size`` bytes at a time."""
        while True:
            block = self.read(self._buffer_size)
            if not block:
                return
            yield block

    def __iter__(self) -> Iterator[bytes]:
        return self.blocks()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_handle:
            self._handle.close()

    def __enter__(self) -> "ByteRangeReader":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError("I/O operation on closed range reader")


def _check_range(source: SourceDescriptor, offset: int, length: int) -> None:
    if offset < 0 or length < 0:
        raise SourceError("offset and length must not be negative")
    if offset + length > source.length:
        raise SourceError(
            f"Range {offset}+{length} exceeds source length {source.length}"
        )


def open_handle(source: SourceDescriptor) -> BinaryIO:
    """Open a fresh handle on the source, never shared with another reader."""
    try:
        return open(source.path, "rb")
    except OSError as exc:
        raise SourceError(f"Cannot open source {source.path}: {exc}") from exc


def open_range(
    source: SourceDescriptor,
    offset: int,
    length: int,
    *,
    buffer_size: int | None = None,
) -> ByteRangeReader:
    """Open an independent reader over ``length`` bytes at ``offset``."""
    _check_range(source, offset, length)
    handle = open_handle(source)
    try:
        return ByteRangeReader(
            handle, offset, length, buffer_size=buffer_size, owns_handle=True
        )
    except Exception:
        handle.close()
        raise
