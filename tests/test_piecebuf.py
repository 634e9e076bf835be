import threading
import time

import pytest

from uplink.piecebuf import PieceBuffer
from uplink.rs import EestreamError


def make_buffer(size=8, share_size=4):
    return PieceBuffer(size, share_size, threading.Condition())


def test_write_then_read_round_trip():
    buf = make_buffer()
    assert buf.write(b"abcdef") == 6
    assert buf.read(10) == b"abcdef"


def test_read_wraps_around_ring():
    buf = make_buffer()
    buf.write(b"01234567")
    assert buf.read(4) == b"0123"
    buf.write(b"89ab")
    assert buf.read(8) == b"456789ab"


def test_read_returns_data_before_error():
    buf = make_buffer()
    buf.write(b"xy")
    buf.set_error(EOFError("EOF"))
    assert buf.read(5) == b"xy"
    with pytest.raises(EOFError):
        buf.read(5)


def test_close_makes_reads_fail():
    buf = make_buffer()
    buf.close()
    with pytest.raises(BrokenPipeError, match="closed pipe"):
        buf.read(1)


def test_write_to_full_closed_buffer_fails():
    buf = make_buffer()
    buf.write(b"01234567")
    buf.close()
    with pytest.raises(BrokenPipeError):
        buf.write(b"z")


def test_skip_advances_read_position():
    buf = make_buffer()
    buf.write(b"01234567")
    buf.skip(3)
    assert buf.read(8) == b"34567"


def test_read_share_discards_earlier_shares():
    buf = make_buffer()
    buf.write(b"aaaabbbb")
    assert buf.has_share(0) is True
    assert buf.has_share(1) is True
    assert buf.read_share(1) == b"bbbb"
    assert buf.current_share == 2


def test_already_read_share_is_an_error():
    buf = make_buffer()
    buf.write(b"aaaabbbb")
    buf.read_share(1)
    with pytest.raises(EestreamError, match="already read"):
        buf.has_share(0)
    with pytest.raises(EestreamError, match="already read"):
        buf.read_share(1)


def test_has_share_far_ahead_discards_buffered_shares():
    buf = make_buffer()
    buf.write(b"aaaabbbb")
    assert buf.has_share(5) is False
    assert buf.current_share == 2
    with pytest.raises(EestreamError):
        buf.has_share(1)


def test_has_share_true_once_error_set():
    buf = make_buffer()
    buf.set_error(EOFError("EOF"))
    assert buf.has_share(3) is True


def test_partial_share_then_eof_is_unexpected_eof():
    buf = make_buffer()
    buf.write(b"aa")
    buf.set_error(EOFError("EOF"))
    with pytest.raises(EOFError, match="unexpected EOF"):
        buf.read_share(0)


def test_invalid_sizes_rejected():
    with pytest.raises(ValueError):
        PieceBuffer(0, 4, threading.Condition())
    with pytest.raises(ValueError):
        PieceBuffer(8, 0, threading.Condition())


def test_complete_share_notifies_new_data():
    cond = threading.Condition()
    buf = PieceBuffer(8, 4, cond)
    with cond:
        writer = threading.Thread(target=buf.write, args=(b"abcd",), daemon=True)
        writer.start()
        assert cond.wait(timeout=5) is True
    writer.join(timeout=5)
    assert buf.read_share(0) == b"abcd"


def test_read_blocks_until_data_written():
    buf = make_buffer()

    def late_write():
        time.sleep(0.05)
        buf.write(b"late")

    writer = threading.Thread(target=late_write, daemon=True)
    writer.start()
    assert buf.read(4) == b"late"
    writer.join(timeout=5)


def test_write_blocks_until_space_available():
    buf = make_buffer(size=4, share_size=4)
    writer = threading.Thread(target=buf.write, args=(b"01234567",), daemon=True)
    writer.start()
    collected = bytearray()
    while len(collected) < 8:
        collected += buf.read(8)
    writer.join(timeout=5)
    assert bytes(collected) == b"01234567"