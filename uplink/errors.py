"""Error types raised by the uplink library."""

from __future__ import annotations

__all__ = [
    "UplinkError",
    "BucketNameInvalidError",
    "BucketAlreadyExistsError",
    "BucketNotEmptyError",
    "BucketNotFoundError",
    "ObjectKeyInvalidError",
    "ObjectNotFoundError",
    "UploadIDInvalidError",
    "TooManyRequestsError",
    "BandwidthLimitExceededError",
    "PermissionDeniedError",
    "named_error",
]


class UplinkError(Exception):
    """Base class of every error the library raises."""

    description = ""

    def __init__(self, message: str | None = None) -> None:
        if message is None:
            message = self.description
        super().__init__(message)

    def __str__(self) -> str:
        message = super().__str__()
        return f"uplink: {message}" if message else "uplink"


class BucketNameInvalidError(UplinkError):
    """The bucket name is invalid."""

    description = "bucket name invalid"


class BucketAlreadyExistsError(UplinkError):
    """The bucket already exists during creation."""

    description = "bucket already exists"


class BucketNotEmptyError(UplinkError):
    """The bucket is not empty during deletion."""

    description = "bucket not empty"


class BucketNotFoundError(UplinkError):
    """The bucket was not found."""

    description = "bucket not found"


class ObjectKeyInvalidError(UplinkError):
    """The object key is invalid."""

    description = "object key invalid"


class ObjectNotFoundError(UplinkError):
    """The object was not found."""

    description = "object not found"


class UploadIDInvalidError(UplinkError):
    """The upload ID is invalid."""

    description = "upload ID invalid"


class TooManyRequestsError(UplinkError):
    """Too many requests were sent in a given amount of time."""

    description = "too many requests"


class BandwidthLimitExceededError(UplinkError):
    """The project would exceed its bandwidth limit."""

    description = "bandwidth limit exceeded"


class PermissionDeniedError(UplinkError):
    """The request was denied due to invalid permissions."""

    description = "permission denied"


_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
}


def _quote(text: str) -> str:
    """Return text as a double-quoted, escaped string literal."""
    parts = ['"']
    for char in text:
        if char in _ESCAPES:
            parts.append(_ESCAPES[char])
        elif char.isprintable():
            parts.append(char)
        else:
            code = ord(char)
            if code < 0x80:
                parts.append(f"\\x{code:02x}")
            elif code < 0x10000:
                parts.append(f"\\u{code:04x}")
            else:
                parts.append(f"\\U{code:08x}")
    parts.append('"')
    return "".join(parts)


def named_error(error_class: type[UplinkError], name: str) -> UplinkError:
    """Build an error of error_class naming the bucket or key it concerns."""
    if not isinstance(error_class, type) or not issubclass(error_class, UplinkError):
        raise TypeError("error_class must be a subclass of UplinkError")
    return error_class(f"{error_class.description} ({_quote(name)})")