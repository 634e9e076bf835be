import hashlib
import io
import os

from uplink.etag import HashReader


def test_hash_reader_reads_all():
    data = os.urandom(1024)
    reader = HashReader(io.BytesIO(data), hashlib.sha256())
    assert reader.read() == data
    assert reader.current_etag() == hashlib.sha256(data).digest()


def test_hash_reader_in_chunks():
    data = os.urandom(1024)
    reader = HashReader(io.BytesIO(data), hashlib.sha256())
    chunks = []
    while chunk := reader.read(100):
        chunks.append(chunk)
    assert b"".join(chunks) == data
    assert reader.current_etag() == hashlib.sha256(data).digest()


def test_etag_tracks_partial_reads():
    data = os.urandom(64)
    reader = HashReader(io.BytesIO(data), hashlib.sha256())
    assert reader.current_etag() == hashlib.sha256(b"").digest()
    reader.read(10)
    assert reader.current_etag() == hashlib.sha256(data[:10]).digest()
    reader.read(10)
    assert reader.current_etag() == hashlib.sha256(data[:20]).digest()