"""A synchronized ring buffer holding the erasure shares of one piece."""

from __future__ import annotations

import threading

from .rs import EestreamError

__all__ = ["PieceBuffer"]

_CLOSED_PIPE = "io: read/write on closed pipe"


class PieceBuffer:
    """Ring buffer of erasure shares filled by a writer and drained by a reader.

    Whenever a new complete erasure share has been written, or an error is
    set, the condition ``new_data`` is notified.
    """

    def __init__(self, size: int, share_size: int, new_data: threading.Condition) -> None:
        if size <= 0:
            raise ValueError("buffer size must be positive")
        if share_size <= 0:
            raise ValueError("share size must be positive")
        self._buf = bytearray(size)
        self._share_size = share_size
        self._cond = threading.Condition()
        self._new_data = new_data
        self._rpos = 0
        self._wpos = 0
        self._full = False
        self._current_share = 0
        self._total_written = 0
        self._last_notified = 0
        self._error: BaseException | None = None

    @property
    def current_share(self) -> int:
        """Number of the next erasure share to be read."""
        return self._current_share

    def _is_empty(self) -> bool:
        return not self._full and self._rpos == self._wpos

    def _raise_error(self) -> None:
        assert self._error is not None
        raise self._error.with_traceback(None)

    def read(self, size: int) -> bytes:
        """Read up to size bytes, blocking while the buffer is empty.

        Once the buffer is drained, the error set with set_error is raised.
        """
        if size < 0:
            raise ValueError("size must not be negative")
        with self._cond:
            try:
                while self._is_empty():
                    if self._error is not None:
                        self._raise_error()
                    self._cond.wait()

                out = bytearray()
                length = len(self._buf)
                if self._rpos >= self._wpos:
                    chunk = self._buf[self._rpos:self._rpos + size]
                    out += chunk
                    self._rpos = (self._rpos + len(chunk)) % length
                    size -= len(chunk)
                if self._rpos < self._wpos:
                    chunk = self._buf[self._rpos:min(self._wpos, self._rpos + size)]
                    out += chunk
                    self._rpos += len(chunk)
                if out:
                    self._full = False
                return bytes(out)
            finally:
                self._cond.notify_all()

    def skip(self, n: int) -> None:
        """Advance the read position by n bytes, blocking until they are written."""
        with self._cond:
            try:
                length = len(self._buf)
                while n > 0:
                    while self._is_empty():
                        if self._error is not None:
                            self._raise_error()
                        self._cond.wait()

                    if self._rpos >= self._wpos:
                        if length - self._rpos > n:
                            self._rpos = (self._rpos + n) % length
                            n = 0
                        else:
                            n -= length - self._rpos
                            self._rpos = 0
                    elif self._wpos - self._rpos > n:
                        self._rpos += n
                        n = 0
                    else:
                        n -= self._wpos - self._rpos
                        self._rpos = self._wpos

                    self._full = False
            finally:
                self._cond.notify_all()

    def write(self, data: bytes) -> int:
        """Write all of data, blocking while the buffer is full.

        Raises the error set with set_error if the buffer is full when it is set.
        """
        data = memoryview(bytes(data))
        written = 0
        while written < len(data):
            count = self._write_some(data[written:])
            written += count
            self._total_written += count
            if (self._total_written // self._share_size
                    - self._last_notified // self._share_size) > 0:
                self._last_notified = self._total_written
                self._notify_new_data()
        return written

    def _write_some(self, data: memoryview) -> int:
        with self._cond:
            try:
                while self._full:
                    if self._error is not None:
                        self._raise_error()
                    self._cond.wait()

                if self._wpos < self._rpos:
                    space = self._rpos - self._wpos
                else:
                    space = len(self._buf) - self._wpos
                count = min(space, len(data))
                self._buf[self._wpos:self._wpos + count] = data[:count]
                self._wpos = (self._wpos + count) % len(self._buf)
                if self._wpos == self._rpos:
                    self._full = True
                return count
            finally:
                self._cond.notify_all()

    def close(self) -> None:
        """Mark the pipe closed, stopping further writes and blocking reads."""
        self.set_error(BrokenPipeError(_CLOSED_PIPE))

    def set_error(self, err: BaseException) -> None:
        """Set the error raised by reads once drained and by writes when full."""
        with self._cond:
            self._error = err
            self._cond.notify_all()
        self._notify_new_data()

    def _get_error(self) -> BaseException | None:
        with self._cond:
            return self._error

    def _notify_new_data(self) -> None:
        with self._new_data:
            self._new_data.notify_all()

    def _buffered(self) -> int:
        with self._cond:
            if self._rpos < self._wpos:
                return self._wpos - self._rpos
            if self._rpos > self._wpos:
                return len(self._buf) + self._wpos - self._rpos
            if self._full:
                return len(self._buf)
            return 0

    def has_share(self, num: int) -> bool:
        """Tell whether share num can be read without blocking.

        Older shares in the buffer are discarded to make room for newer ones.
        """
        if num < self._current_share:
            raise EestreamError("requested erasure share was already read")

        if self._get_error() is not None:
            # the piece is finished; reading will report what happened
            return True

        buffered_shares = self._buffered() // self._share_size
        ahead = num - self._current_share
        if ahead > 0:
            target = num if buffered_shares > ahead else self._current_share + buffered_shares
            try:
                self._discard_until(target)
            except Exception:
                pass
            buffered_shares = self._buffered() // self._share_size

        return buffered_shares > num - self._current_share

    def read_share(self, num: int) -> bytes:
        """Return share num, discarding any earlier shares still buffered."""
        if num < self._current_share:
            raise EestreamError("requested erasure share was already read")

        self._discard_until(num)

        share = bytearray()
        while len(share) < self._share_size:
            try:
                share += self.read(self._share_size - len(share))
            except EOFError:
                if share:
                    raise EOFError("unexpected EOF") from None
                raise

        self._current_share += 1
        return bytes(share)

    def _discard_until(self, num: int) -> None:
        if num <= self._current_share:
            return
        self.skip((num - self._current_share) * self._share_size)
        self._current_share = num