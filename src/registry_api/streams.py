"""Streaming readers used while uploading package tarballs."""

from __future__ import annotations

import hashlib
from typing import Protocol

from registry_api.errors import PayloadTooLarge

DEFAULT_CHUNK_SIZE = 64 * 1024


class ByteSource(Protocol):
    def read(self, size: int = -1) -> bytes: ...


class ChecksumReader:
    """Wraps a byte source, capping its length and hashing every byte read.

    The cap is enforced before any overflowing bytes are handed to the caller,
    so a consumer never observes more than ``limit`` bytes. ``digest()`` returns
    the raw sha256 digest of everything read so far.
    """

    def __init__(self, source: ByteSource, limit: int) -> None:
        if limit < 0:
            raise ValueError("limit must be non-negative")
        self._source = source
        self._limit = limit
        self._read = 0
        self._exhausted = False
        self._hasher = hashlib.sha256()

    @property
    def bytes_read(self) -> int:
        return self._read

    @property
    def exhausted(self) -> bool:
        """Whether the source has reported end of stream."""

        return self._exhausted

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            # Ask for one byte past the cap so an oversized stream is detected.
            size = self._limit - self._read + 1
            if size <= 0:
                size = 1
        chunk = self._source.read(size)
        if not chunk:
            self._exhausted = True
            return b""
        if self._read + len(chunk) > self._limit:
            raise PayloadTooLarge(self._limit)
        self._read += len(chunk)
        self._hasher.update(chunk)
        return chunk

    def digest(self) -> bytes:
        return self._hasher.digest()

    def hexdigest(self) -> str:
        return self._hasher.hexdigest()


def copy_stream(reader: ByteSource, sink, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    """Copy ``reader`` into ``sink`` chunk by chunk; returns the number of bytes copied."""

    total = 0
    while True:
        chunk = reader.read(chunk_size)
        if not chunk:
            return total
        sink.write(chunk)
        total += len(chunk)


__all__ = ["ByteSource", "ChecksumReader", "DEFAULT_CHUNK_SIZE", "copy_stream"]
