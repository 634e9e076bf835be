"""Reed-Solomon erasure coding, stripe decoding, ETags, metadata and errors for object storage clients."""

__version__ = "0.1.0"

__all__ = [
    "decode",
    "ecclient",
    "encode",
    "errors",
    "etag",
    "metadata",
    "piecebuf",
    "rs",
    "stripe",
]