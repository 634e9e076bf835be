"""Readers that compute an ETag over the content read through them."""

from __future__ import annotations

from typing import Any, BinaryIO

__all__ = ["HashReader"]


class HashReader:
    """Reads from a binary stream and hashes everything read."""

    def __init__(self, reader: BinaryIO, hasher: Any) -> None:
        self._reader = reader
        self._hasher = hasher

    def read(self, size: int = -1) -> bytes:
        """Read up to size bytes (all when negative) and hash them."""
        data = self._reader.read(size)
        self._hasher.update(data)
        return data

    def current_etag(self) -> bytes:
        """Return the ETag of the content read so far."""
        return self._hasher.copy().digest()