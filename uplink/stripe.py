"""Reading and decoding stripes from a set of erasure piece readers."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import Any

from .piecebuf import PieceBuffer
from .rs import EestreamError, ErasureScheme, NotEnoughSharesError, TooManyErrorsError

__all__ = ["StripeReader"]

_COPY_CHUNK = 32 * 1024


def _copy_into(reader: Any, buf: PieceBuffer) -> None:
    try:
        while True:
            chunk = reader.read(_COPY_CHUNK)
            if not chunk:
                break
            buf.write(chunk)
    except Exception as err:  # the buffer carries the failure to the reader
        buf.set_error(err)
        return
    buf.set_error(EOFError("EOF"))


class StripeReader:
    """Reads erasure shares from piece readers and decodes them into stripes."""

    def __init__(
        self,
        readers: Mapping[int, Any],
        scheme: ErasureScheme,
        max_buffer_memory: int,
        force_error_detection: bool,
    ) -> None:
        if not readers:
            raise EestreamError("no readers to decode from")
        self._scheme = scheme
        self._cond = threading.Condition()
        self._reader_count = len(readers)
        self._force_error_detection = force_error_detection
        self._bufs: dict[int, PieceBuffer] = {}
        self._inmap: dict[int, bytes] = {}
        self._errmap: dict[int, BaseException] = {}

        share_size = scheme.erasure_share_size()
        buf_size = max_buffer_memory // self._reader_count
        buf_size -= buf_size % share_size
        buf_size = max(buf_size, share_size)

        for num, reader in readers.items():
            buf = PieceBuffer(buf_size, share_size, self._cond)
            self._bufs[num] = buf
            threading.Thread(target=_copy_into, args=(reader, buf), daemon=True).start()

    def close(self) -> None:
        """Close every piece buffer."""
        first: BaseException | None = None
        for buf in self._bufs.values():
            try:
                buf.close()
            except Exception as err:
                if first is None:
                    first = err
        if first is not None:
            raise EestreamError(str(first)) from first

    def read_stripe(self, num: int) -> bytes:
        """Read and decode stripe num."""
        self._inmap.clear()
        with self._cond:
            while self._pending_readers():
                while self._read_available_shares(num) == 0:
                    self._cond.wait()
                if self._has_enough_shares():
                    try:
                        return self._scheme.decode(self._inmap)
                    except (NotEnoughSharesError, TooManyErrorsError):
                        if self._pending_readers():
                            continue
                        raise
        raise self._combine_errors(num)

    def _read_available_shares(self, num: int) -> int:
        count = 0
        for piece, buf in self._bufs.items():
            if piece in self._inmap or piece in self._errmap:
                continue
            try:
                available = buf.has_share(num)
            except Exception as err:
                self._errmap[piece] = err
                continue
            if available:
                try:
                    self._inmap[piece] = buf.read_share(num)
                except Exception as err:
                    self._errmap[piece] = err
                count += 1
        return count

    def _pending_readers(self) -> bool:
        good = self._reader_count - len(self._errmap)
        return good >= self._scheme.required_count() and good > len(self._inmap)

    def _has_enough_shares(self) -> bool:
        required = self._scheme.required_count()
        return len(self._inmap) >= required + 1 or (
            not self._force_error_detection
            and len(self._inmap) == required
            and not self._pending_readers()
        )

    def _combine_errors(self, num: int) -> EestreamError:
        if not self._errmap:
            return EestreamError("programmer error: no errors to combine")
        lines = sorted(
            f"\nerror retrieving piece {piece:02d}: {err}"
            for piece, err in self._errmap.items()
        )
        return EestreamError(f"failed to download stripe {num}: {''.join(lines)}")