import io
import random
import time

import pytest

from uplink.decode import decode, decode_readers
from uplink.encode import ByteRanger, encode_reader, new_redundancy_strategy
from uplink.rs import FEC, EestreamError, RSScheme

SLOW_DELAY = 2.0


def _random_bytes(size, seed=7):
    return random.Random(seed).randbytes(size)


def _strategy(required, total, share_size):
    return new_redundancy_strategy(RSScheme(FEC(required, total), share_size), 0, 0)


def _encode(data, strategy):
    pieces = encode_reader(io.BytesIO(data), strategy)
    result = [piece.read() for piece in pieces]
    for piece in pieces:
        piece.close()
    return result


class _ErrorPiece:
    def read(self, size=-1):
        raise OSError("I am an error piece")

    def close(self):
        pass


class _SlowReader:
    def __init__(self, data, delay):
        self._inner = io.BytesIO(data)
        self._delay = delay

    def read(self, size=-1):
        time.sleep(self._delay)
        return self._inner.read(size)

    def close(self):
        pass


def test_rs_round_trip():
    data = _random_bytes(32 * 1024)
    strategy = _strategy(2, 4, 8 * 1024)
    pieces = encode_reader(io.BytesIO(data), strategy)
    decoder = decode_readers(dict(enumerate(pieces)), strategy, 32 * 1024, 0, False)
    result = decoder.read()
    decoder.close()
    assert result == data


def test_rs_reading_past_end_returns_available_data():
    data = _random_bytes(32 * 1024)
    strategy = _strategy(2, 4, 8 * 1024)
    pieces = encode_reader(io.BytesIO(data), strategy)
    with decode_readers(dict(enumerate(pieces)), strategy, 32 * 1024, 0, False) as decoder:
        collected = bytearray()
        while chunk := decoder.read(len(data) + 1024):
            collected += chunk
        assert len(collected) == len(data)
        assert decoder.read(10) == b""


def test_rs_ranger():
    data = _random_bytes(32 * 1024)
    strategy = _strategy(2, 4, 8 * 1024)
    pieces = _encode(data, strategy)
    rangers = {i: ByteRanger(piece) for i, piece in enumerate(pieces)}
    ranger = decode(rangers, strategy, 0, False)
    assert ranger.size() == len(data)
    with ranger.range(0, ranger.size()) as reader:
        assert reader.read() == data
    with ranger.range(100, 20000) as reader:
        assert reader.read() == data[100:20100]


CASES_ERRORS = [
    (4 * 1024, 1024, 1, 1, 0, False),
    (4 * 1024, 1024, 1, 1, 1, True),
    (4 * 1024, 1024, 1, 2, 0, False),
    (4 * 1024, 1024, 1, 2, 1, False),
    (4 * 1024, 1024, 1, 2, 2, True),
    (4 * 1024, 1024, 2, 4, 0, False),
    (4 * 1024, 1024, 2, 4, 1, False),
    (4 * 1024, 1024, 2, 4, 2, False),
    (4 * 1024, 1024, 2, 4, 3, True),
    (4 * 1024, 1024, 2, 4, 4, True),
    (6 * 1024, 1024, 3, 7, 0, False),
    (6 * 1024, 1024, 3, 7, 1, False),
    (6 * 1024, 1024, 3, 7, 2, False),
    (6 * 1024, 1024, 3, 7, 3, False),
    (6 * 1024, 1024, 3, 7, 4, False),
    (6 * 1024, 1024, 3, 7, 5, True),
    (6 * 1024, 1024, 3, 7, 6, True),
    (6 * 1024, 1024, 3, 7, 7, True),
]

CASES_LATE_EOF = [case[:5] + (False,) for case in CASES_ERRORS]

CASES_RANDOM = [
    (4 * 1024, 1024, 1, 1, 0, False),
    (4 * 1024, 1024, 1, 1, 1, True),
    (4 * 1024, 1024, 1, 2, 0, False),
    (4 * 1024, 1024, 1, 2, 1, True),
    (4 * 1024, 1024, 1, 2, 2, True),
    (4 * 1024, 1024, 2, 4, 0, False),
    (4 * 1024, 1024, 2, 4, 1, False),
    (4 * 1024, 1024, 2, 4, 2, True),
    (4 * 1024, 1024, 2, 4, 3, True),
    (4 * 1024, 1024, 2, 4, 4, True),
    (6 * 1024, 1024, 3, 7, 0, False),
    (6 * 1024, 1024, 3, 7, 1, False),
    (6 * 1024, 1024, 3, 7, 2, False),
    (6 * 1024, 1024, 3, 7, 4, True),
    (6 * 1024, 1024, 3, 7, 5, True),
    (6 * 1024, 1024, 3, 7, 6, True),
    (6 * 1024, 1024, 3, 7, 7, True),
]

CASES_SLOW = [
    (4 * 1024, 1024, 1, 1, 0, False),
    (4 * 1024, 1024, 1, 2, 0, False),
    (4 * 1024, 1024, 2, 4, 0, False),
    (4 * 1024, 1024, 2, 4, 1, False),
    (6 * 1024, 1024, 3, 7, 0, False),
    (6 * 1024, 1024, 3, 7, 1, False),
    (6 * 1024, 1024, 3, 7, 2, False),
    (6 * 1024, 1024, 3, 7, 3, False),
]


def _run_problematic(case, make_reader):
    data_size, share_size, required, total, problematic, _ = case
    data = _random_bytes(data_size)
    strategy = _strategy(required, total, share_size)
    pieces = _encode(data, strategy)
    readers = {
        i: make_reader(pieces[i]) if i < problematic else io.BytesIO(pieces[i])
        for i in range(total)
    }
    decoder = decode_readers(readers, strategy, data_size, 3 * 1024, False)
    try:
        result, error = decoder.read(), None
    except Exception as err:
        result, error = None, err
    decoder.close()
    return data, result, error


def _check(case, data, result, error):
    if case[5]:
        assert error is not None or result != data
    else:
        assert error is None
        assert result == data


@pytest.mark.parametrize("case", CASES_ERRORS)
def test_rs_errors(case):
    data, result, error = _run_problematic(case, lambda piece: _ErrorPiece())
    _check(case, data, result, error)


@pytest.mark.parametrize("case", CASES_ERRORS)
def test_rs_eof(case):
    data, result, error = _run_problematic(case, lambda piece: io.BytesIO(b""))
    _check(case, data, result, error)


@pytest.mark.parametrize("case", CASES_ERRORS)
def test_rs_early_eof(case):
    data, result, error = _run_problematic(case, lambda piece: io.BytesIO(piece[:500]))
    _check(case, data, result, error)


@pytest.mark.parametrize("case", CASES_LATE_EOF)
def test_rs_late_eof(case):
    rng = random.Random(11)

    def extended(piece):
        return io.BytesIO(piece + rng.randbytes(1 + rng.randrange(10000)))

    data, result, error = _run_problematic(case, extended)
    _check(case, data, result, error)


@pytest.mark.parametrize("case", CASES_RANDOM)
def test_rs_random_data(case):
    rng = random.Random(13)
    data, result, error = _run_problematic(case, lambda piece: io.BytesIO(rng.randbytes(len(piece))))
    _check(case, data, result, error)


@pytest.mark.parametrize("case", CASES_SLOW)
def test_rs_slow(case):
    start = time.monotonic()
    data, result, error = _run_problematic(case, lambda piece: _SlowReader(piece, SLOW_DELAY))
    _check(case, data, result, error)
    assert time.monotonic() - start < SLOW_DELAY


def test_decoder_error_with_stalled_readers():
    data = _random_bytes(10 * 1024)
    strategy = _strategy(10, 20, 1024)
    pieces = _encode(data, strategy)
    readers = {}
    for i in range(4):
        readers[i] = io.BytesIO(pieces[i])
    for i in range(4, 7):
        readers[i] = _SlowReader(pieces[i], SLOW_DELAY)
    for i in range(7, 20):
        readers[i] = _ErrorPiece()
    decoder = decode_readers(readers, strategy, 10 * 1024, 0, False)
    start = time.monotonic()
    with pytest.raises(EestreamError, match="failed to download stripe 0"):
        decoder.read()
    assert time.monotonic() - start < SLOW_DELAY
    decoder.close()


def test_stored_error_is_raised_again():
    strategy = _strategy(2, 4, 1024)
    readers = {i: _ErrorPiece() for i in range(4)}
    decoder = decode_readers(readers, strategy, 2048, 0, False)
    with pytest.raises(EestreamError) as first:
        decoder.read(10)
    with pytest.raises(EestreamError) as second:
        decoder.read(10)
    assert second.value is first.value
    decoder.close()


def test_decode_readers_validation():
    strategy = _strategy(2, 4, 1024)
    with pytest.raises(EestreamError, match="negative expected size"):
        decode_readers({}, strategy, -1, 0, False)
    with pytest.raises(EestreamError, match=r"expected size \(100\) not a factor decoded block size \(2048\)"):
        decode_readers({}, strategy, 100, 0, False)
    with pytest.raises(EestreamError, match="negative max buffer memory"):
        decode_readers({}, strategy, 2048, -1, False)


def test_decode_validation():
    strategy = _strategy(2, 4, 1024)
    with pytest.raises(EestreamError, match="negative max buffer memory"):
        decode({}, strategy, -1, False)
    with pytest.raises(EestreamError) as info:
        decode({0: ByteRanger(b"x" * 1024)}, strategy, 0, False)
    assert str(info.value) == "eestream: not enough readers to reconstruct data!"
    with pytest.raises(EestreamError, match="sizes don't all match"):
        decode({0: ByteRanger(b"x" * 1024), 1: ByteRanger(b"x" * 2048)}, strategy, 0, False)
    with pytest.raises(EestreamError, match="must be a multiple of erasure encoder block size"):
        decode({0: ByteRanger(b"x" * 100), 1: ByteRanger(b"x" * 100)}, strategy, 0, False)