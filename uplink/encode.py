"""Erasure encoding of byte streams into pieces."""

from __future__ import annotations

import io
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .rs import EestreamError, ErasureScheme

__all__ = [
    "RedundancyStrategy",
    "EncodedPiece",
    "ByteRanger",
    "EncodedRanger",
    "new_redundancy_strategy",
    "encode_reader",
    "calc_piece_size",
]

_CHUNK = 32 * 1024
_UINT32_SIZE = 4


@dataclass(frozen=True)
class RedundancyStrategy(ErasureScheme):
    """An erasure scheme together with its repair and optimal thresholds.

    repair_threshold is the number of available pieces below which the data
    must be repaired; optimal_threshold is the number above which no repair
    is needed.
    """

    scheme: ErasureScheme
    repair_threshold: int
    optimal_threshold: int

    def encode(self, data: bytes) -> list[bytes]:
        return self.scheme.encode(data)

    def encode_single(self, data: bytes, num: int) -> bytes:
        return self.scheme.encode_single(data, num)

    def decode(self, shares: Mapping[int, bytes]) -> bytes:
        return self.scheme.decode(shares)

    def erasure_share_size(self) -> int:
        return self.scheme.erasure_share_size()

    def stripe_size(self) -> int:
        return self.scheme.stripe_size()

    def total_count(self) -> int:
        return self.scheme.total_count()

    def required_count(self) -> int:
        return self.scheme.required_count()


def new_redundancy_strategy(
    scheme: ErasureScheme, repair_threshold: int, optimal_threshold: int
) -> RedundancyStrategy:
    """Validate thresholds and build a RedundancyStrategy.

    A threshold of 0 is replaced by the total count of the scheme.
    """
    total = scheme.total_count()
    required = scheme.required_count()
    if repair_threshold == 0:
        repair_threshold = total
    if optimal_threshold == 0:
        optimal_threshold = total
    if repair_threshold < 0:
        raise EestreamError("negative repair threshold")
    if 0 < repair_threshold < required:
        raise EestreamError("repair threshold less than required count")
    if repair_threshold > total:
        raise EestreamError("repair threshold greater than total count")
    if optimal_threshold < 0:
        raise EestreamError("negative optimal threshold")
    if 0 < optimal_threshold < required:
        raise EestreamError("optimal threshold less than required count")
    if optimal_threshold > total:
        raise EestreamError("optimal threshold greater than total count")
    if repair_threshold > optimal_threshold:
        raise EestreamError("repair threshold greater than optimal threshold")
    return RedundancyStrategy(scheme, repair_threshold, optimal_threshold)


class _Tee:
    """Shares one source stream between several independent readers."""

    def __init__(self, source: Any, count: int) -> None:
        self._source = source
        self._lock = threading.Lock()
        self._buffer = bytearray()
        self._base = 0
        self._positions = [0] * count
        self._open = [True] * count
        self._eof = False
        self._error: BaseException | None = None

    def read(self, index: int, size: int) -> bytes:
        with self._lock:
            if not self._open[index]:
                raise ValueError("read on closed piece")
            position = self._positions[index]
            while (
                position + size > self._base + len(self._buffer)
                and not self._eof
                and self._error is None
            ):
                try:
                    chunk = self._source.read(max(size, _CHUNK))
                except Exception as err:
                    self._error = err
                    break
                if not chunk:
                    self._eof = True
                else:
                    self._buffer += chunk
            start = position - self._base
            data = bytes(self._buffer[start:start + size])
            if not data and self._error is not None:
                raise self._error
            self._positions[index] = position + len(data)
            self._trim()
            return data

    def close(self, index: int) -> None:
        with self._lock:
            self._open[index] = False
            self._trim()

    def _trim(self) -> None:
        positions = [p for p, is_open in zip(self._positions, self._open) if is_open]
        if not positions:
            self._base += len(self._buffer)
            self._buffer.clear()
            return
        drop = min(positions) - self._base
        if drop > 0:
            del self._buffer[:drop]
            self._base += drop


class EncodedPiece:
    """Reader yielding the erasure shares of one piece, stripe by stripe."""

    def __init__(self, tee: _Tee, num: int, strategy: RedundancyStrategy) -> None:
        self.num = num
        self._tee = tee
        self._strategy = strategy
        self._share = b""
        self._offset = 0

    def _next_stripe(self) -> bytes | None:
        size = self._strategy.stripe_size()
        stripe = bytearray()
        while len(stripe) < size:
            chunk = self._tee.read(self.num, size - len(stripe))
            if not chunk:
                break
            stripe += chunk
        if not stripe:
            return None
        if len(stripe) < size:
            raise EOFError("unexpected EOF")
        return bytes(stripe)

    def read(self, size: int = -1) -> bytes:
        """Read up to size bytes of the piece; everything when size is negative."""
        if size < 0:
            parts = []
            while chunk := self.read(_CHUNK):
                parts.append(chunk)
            return b"".join(parts)
        if size == 0:
            return b""
        if self._offset >= len(self._share):
            stripe = self._next_stripe()
            if stripe is None:
                return b""
            self._share = self._strategy.encode_single(stripe, self.num)
            self._offset = 0
        data = self._share[self._offset:self._offset + size]
        self._offset += len(data)
        return data

    def close(self) -> None:
        """Stop reading this piece."""
        self._tee.close(self.num)

    def __enter__(self) -> EncodedPiece:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def encode_reader(reader: Any, strategy: RedundancyStrategy) -> list[EncodedPiece]:
    """Split a binary stream into one piece reader per erasure share number."""
    tee = _Tee(reader, strategy.total_count())
    return [EncodedPiece(tee, num, strategy) for num in range(strategy.total_count())]


class ByteRanger:
    """Serves ranges of an in-memory byte string."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data or b"")

    def size(self) -> int:
        return len(self._data)

    def range(self, offset: int, length: int) -> io.BytesIO:
        """Return a reader over length bytes starting at offset."""
        if offset < 0:
            raise ValueError("negative offset")
        if length < 0:
            raise ValueError("negative length")
        if offset + length > len(self._data):
            raise ValueError("buffer runoff")
        return io.BytesIO(self._data[offset:offset + length])


class _LimitedReader:
    """Reads at most limit bytes from an underlying reader."""

    def __init__(self, reader: Any, limit: int) -> None:
        self._reader = reader
        self._remaining = max(limit, 0)

    def read(self, size: int = -1) -> bytes:
        if size < 0:
            parts = []
            while chunk := self.read(_CHUNK):
                parts.append(chunk)
            return b"".join(parts)
        size = min(size, self._remaining)
        if size == 0:
            return b""
        data = self._reader.read(size)
        self._remaining -= len(data)
        return data

    def close(self) -> None:
        close = getattr(self._reader, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> _LimitedReader:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _discard(reader: Any, count: int) -> None:
    """Read and drop exactly count bytes."""
    while count > 0:
        try:
            chunk = reader.read(min(count, _CHUNK))
        except Exception as err:
            raise EestreamError(str(err)) from err
        if not chunk:
            raise EestreamError("EOF")
        count -= len(chunk)


def _encompassing_blocks(offset: int, length: int, block_size: int) -> tuple[int, int]:
    """Return the first block and count of blocks covering a byte range."""
    first = offset // block_size
    if length <= 0:
        return first, 0
    last = (offset + length) // block_size
    if (offset + length) % block_size == 0:
        return first, last - first
    return first, 1 + last - first


class EncodedRanger:
    """Produces ranges of the erasure coded pieces of a ranger's content."""

    def __init__(self, ranger: Any, strategy: RedundancyStrategy) -> None:
        if ranger.size() % strategy.stripe_size() != 0:
            raise EestreamError(
                "invalid erasure encoder and range reader combo. range reader size "
                "must be a multiple of erasure encoder block size"
            )
        self._ranger = ranger
        self._strategy = strategy

    def output_size(self) -> int:
        """Size of each erasure coded piece."""
        blocks = self._ranger.size() // self._strategy.stripe_size()
        return blocks * self._strategy.erasure_share_size()

    def range(self, offset: int, length: int) -> list[_LimitedReader]:
        """Return one reader per piece covering the given range of piece bytes."""
        share_size = self._strategy.erasure_share_size()
        stripe_size = self._strategy.stripe_size()
        first, count = _encompassing_blocks(offset, length, share_size)
        source = self._ranger.range(first * stripe_size, count * stripe_size)
        readers = []
        for piece in encode_reader(source, self._strategy):
            _discard(piece, offset - first * share_size)
            readers.append(_LimitedReader(piece, length))
        return readers


def calc_piece_size(data_size: int, scheme: ErasureScheme) -> int:
    """Size of each piece after padding and erasure coding data_size bytes."""
    stripe_size = scheme.stripe_size()
    stripes = (data_size + _UINT32_SIZE + stripe_size - 1) // stripe_size
    return stripes * stripe_size // scheme.required_count()