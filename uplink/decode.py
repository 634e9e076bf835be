"""Decoding erasure coded pieces back into the original stream."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .encode import ByteRanger, _discard, _encompassing_blocks, _LimitedReader
from .rs import EestreamError, ErasureScheme
from .stripe import StripeReader

__all__ = ["DecodedReader", "DecodedRanger", "decode_readers", "decode"]

_CHUNK = 32 * 1024


def _check_max_buffer_memory(max_buffer_memory: int) -> None:
    if max_buffer_memory < 0:
        raise EestreamError("negative max buffer memory")


class _FatalReader:
    """Reader whose every read fails with the same error."""

    def __init__(self, error: BaseException) -> None:
        self._error = error
        self.closed = False

    def read(self, size: int = -1) -> bytes:
        if self.closed:
            raise ValueError("read from closed reader")
        raise self._error

    def close(self) -> None:
        self.closed = True


class DecodedReader:
    """Reader combining erasure piece readers into the decoded data."""

    def __init__(
        self,
        readers: Mapping[int, Any],
        scheme: ErasureScheme,
        expected_size: int,
        max_buffer_memory: int,
        force_error_detection: bool,
    ) -> None:
        self._readers = dict(readers)
        self._scheme = scheme
        self._stripe_reader = StripeReader(
            self._readers, scheme, max_buffer_memory, force_error_detection
        )
        self._outbuf = bytearray()
        self._error: BaseException | None = None
        self._current_stripe = 0
        self._expected_stripes = expected_size // scheme.stripe_size()
        self._closed = False

    def read(self, size: int = -1) -> bytes:
        """Read up to size decoded bytes; everything when size is negative."""
        if size < 0:
            parts = []
            while chunk := self.read(_CHUNK):
                parts.append(chunk)
            return b"".join(parts)
        if not self._outbuf:
            if self._error is not None:
                raise self._error
            if self._current_stripe >= self._expected_stripes:
                return b""
            try:
                stripe = self._stripe_reader.read_stripe(self._current_stripe)
            except Exception as err:
                self._error = err
                raise
            self._outbuf = bytearray(stripe)
            self._current_stripe += 1
        data = bytes(self._outbuf[:size])
        del self._outbuf[:size]
        return data

    def close(self) -> None:
        """Close all piece readers.

        Raises only when more closes failed than there are spare pieces.
        """
        if self._closed:
            return
        self._closed = True
        errors: list[BaseException] = []
        for reader in self._readers.values():
            close = getattr(reader, "close", None)
            if close is None:
                continue
            try:
                close()
            except Exception as err:
                errors.append(err)
        try:
            self._stripe_reader.close()
        except Exception as err:
            errors.append(err)
        threshold = len(self._readers) - self._scheme.required_count() - len(errors)
        if threshold < 0:
            raise EestreamError("; ".join(str(err) for err in errors))

    def __enter__(self) -> DecodedReader:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def decode_readers(
    readers: Mapping[int, Any],
    scheme: ErasureScheme,
    expected_size: int,
    max_buffer_memory: int,
    force_error_detection: bool,
) -> DecodedReader:
    """Combine piece readers keyed by piece number into one decoded reader.

    max_buffer_memory bounds the read buffers (0 uses the minimum). With
    force_error_detection, one share beyond the required count is always
    needed so corrupted pieces are detected.
    """
    if expected_size < 0:
        raise EestreamError("negative expected size")
    if expected_size % scheme.stripe_size() != 0:
        raise EestreamError(
            f"expected size ({expected_size}) not a factor decoded block size "
            f"({scheme.stripe_size()})"
        )
    _check_max_buffer_memory(max_buffer_memory)
    return DecodedReader(readers, scheme, expected_size, max_buffer_memory, force_error_detection)


class DecodedRanger:
    """Serves ranges of the data decoded from a set of piece rangers."""

    def __init__(
        self,
        scheme: ErasureScheme,
        rangers: Mapping[int, Any],
        in_size: int,
        max_buffer_memory: int,
        force_error_detection: bool,
    ) -> None:
        self._scheme = scheme
        self._rangers = dict(rangers)
        self._in_size = in_size
        self._max_buffer_memory = max_buffer_memory
        self._force_error_detection = force_error_detection

    def size(self) -> int:
        blocks = self._in_size // self._scheme.erasure_share_size()
        return blocks * self._scheme.stripe_size()

    def range(self, offset: int, length: int) -> _LimitedReader:
        """Return a reader over length decoded bytes starting at offset."""
        share_size = self._scheme.erasure_share_size()
        stripe_size = self._scheme.stripe_size()
        first, count = _encompassing_blocks(offset, length, stripe_size)
        readers: dict[int, Any] = {}
        for num, ranger in self._rangers.items():
            try:
                readers[num] = ranger.range(first * share_size, count * share_size)
            except Exception as err:
                readers[num] = _FatalReader(err)
        reader = decode_readers(
            readers,
            self._scheme,
            count * stripe_size,
            self._max_buffer_memory,
            self._force_error_detection,
        )
        _discard(reader, offset - first * stripe_size)
        return _LimitedReader(reader, length)


def decode(
    rangers: Mapping[int, Any],
    scheme: ErasureScheme,
    max_buffer_memory: int,
    force_error_detection: bool,
) -> DecodedRanger | ByteRanger:
    """Combine piece rangers keyed by piece number into one decoded ranger."""
    _check_max_buffer_memory(max_buffer_memory)
    if len(rangers) < scheme.required_count():
        raise EestreamError("not enough readers to reconstruct data!")
    sizes = {ranger.size() for ranger in rangers.values()}
    if not sizes:
        return ByteRanger(b"")
    if len(sizes) > 1:
        raise EestreamError("decode failure: range reader sizes don't all match")
    size = sizes.pop()
    if size % scheme.erasure_share_size() != 0:
        raise EestreamError(
            "invalid erasure decoder and range reader combo. range reader size "
            f"({size}) must be a multiple of erasure encoder block size "
            f"({scheme.erasure_share_size()})"
        )
    return DecodedRanger(scheme, rangers, size, max_buffer_memory, force_error_detection)