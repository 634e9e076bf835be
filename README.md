# uplink

Building blocks for a client of a decentralized object store: Reed-Solomon
erasure coding of data streams, stripe-by-stripe decoding from unreliable
piece readers, piece buffers, ETag hashing, custom metadata checks and the
error types for bucket and object operations. It uses only the standard
library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `uplink.rs` – `FEC`, a systematic Reed-Solomon code over GF(2^8) with
  error correction (`decode`) and plain reconstruction (`rebuild`);
  the `ErasureScheme` interface and its `RSScheme` (error correcting) and
  `UnsafeRSScheme` (no error correction) implementations; `EestreamError`,
  `NotEnoughSharesError` and `TooManyErrorsError`.
- `uplink.encode` – `RedundancyStrategy`, `new_redundancy_strategy`,
  `encode_reader`, `EncodedPiece`, `ByteRanger`, `EncodedRanger` and
  `calc_piece_size`.
- `uplink.decode` – `decode_readers` / `DecodedReader` for streams and
  `decode` / `DecodedRanger` for random access.
- `uplink.stripe` – `StripeReader`, which reads shares from all pieces in
  background threads and decodes a stripe as soon as enough have arrived.
- `uplink.piecebuf` – `PieceBuffer`, the thread-safe ring buffer of shares
  behind each piece.
- `uplink.etag` – `HashReader`.
- `uplink.metadata` – `CustomMetadata`, `SystemMetadata` and `Object`.
- `uplink.errors` – `UplinkError`, its subclasses and `named_error`.
- `uplink.ecclient` – `AddressedOrderLimit`, `unique`, `calc_padded`,
  `non_nil_count` and `EcClientError`.

## Erasure coding a stream

```python
import io

from uplink.rs import FEC, RSScheme
from uplink.encode import new_redundancy_strategy, encode_reader
from uplink.decode import decode_readers

data = bytes(range(256)) * 128          # 32 KiB, a multiple of the stripe size
scheme = RSScheme(FEC(2, 4), 8 * 1024)  # 2 of 4 pieces are enough
strategy = new_redundancy_strategy(scheme, 0, 0)

pieces = [piece.read(-1) for piece in encode_reader(io.BytesIO(data), strategy)]

# Any two pieces are enough to get the data back.
readers = {num: io.BytesIO(pieces[num]) for num in (1, 3)}
decoder = decode_readers(readers, strategy, len(data), 0, False)
assert decoder.read(-1) == data
decoder.close()
```

`new_redundancy_strategy` replaces a threshold of 0 with the scheme's total
count and raises `uplink.rs.EestreamError` when the repair and optimal
thresholds do not fit the scheme. `decode_readers` raises the same error for
a negative expected size, a size that is not a multiple of the stripe size,
or negative buffer memory. With `force_error_detection` set, one share more
than the required count is always waited for, so corrupted pieces are
detected. When too few pieces can be read, reading the decoder raises an
`EestreamError` listing the error of each failed piece.

`calc_piece_size(data_size, scheme)` gives the size of each piece produced
by encoding `data_size` bytes once padded with a four-byte length to a whole
number of stripes.

Random-access reads work through rangers: `ByteRanger` wraps bytes,
`EncodedRanger.range(offset, length)` returns one reader per piece for a
range of piece bytes, and `uplink.decode.decode(rangers, scheme, 0, False)`
joins piece rangers into a `DecodedRanger` whose `range` returns a reader of
the decoded bytes.

## Custom metadata

```python
from uplink.metadata import CustomMetadata

meta = CustomMetadata({"image-board:title": "sunset"})
meta.verify()   # raises ValueError for empty keys, zero bytes or invalid UTF-8
copy = meta.clone()
```

## ETags

```python
import hashlib, io
from uplink.etag import HashReader

reader = HashReader(io.BytesIO(b"content"), hashlib.sha256())
reader.read(-1)
reader.current_etag()   # the SHA-256 digest of what was read so far
```

## Errors

Every library error in `uplink.errors` derives from `UplinkError`, whose
message starts with `uplink: `. Specific conditions have their own
subclasses: `BucketNameInvalidError`, `BucketAlreadyExistsError`,
`BucketNotEmptyError`, `BucketNotFoundError`, `ObjectKeyInvalidError`,
`ObjectNotFoundError`, `UploadIDInvalidError`, `TooManyRequestsError`,
`BandwidthLimitExceededError` and `PermissionDeniedError`.
`named_error(BucketNotFoundError, "photos")` builds one whose message names
the bucket or key: `uplink: bucket not found ("photos")`.

## What this package does not do

It has no network client. It does not talk to satellites or storage nodes,
parse or create access grants, open projects, or create, list, upload,
download or delete buckets and objects. The error and metadata types are
provided for code that does, and `uplink.ecclient` holds only the checks on
order limits and the padding arithmetic, not the piece upload or download.