"""Object information and user metadata."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Union

__all__ = ["CustomMetadata", "SystemMetadata", "Object"]

_Text = Union[str, bytes]


def _is_valid_utf8(value: _Text) -> bool:
    try:
        if isinstance(value, (bytes, bytearray)):
            value.decode("utf-8")
        else:
            value.encode("utf-8")
    except UnicodeError:
        return False
    return True


def _has_zero_byte(value: _Text) -> bool:
    if isinstance(value, (bytes, bytearray)):
        return 0 in value
    return "\x00" in value


class CustomMetadata(dict):
    """Custom user metadata about an object.

    Keys and values are expected to be valid UTF-8. Application keys are best
    given a prefix, such as "image-board:title".
    """

    def clone(self) -> "CustomMetadata":
        """Return an independent copy."""
        return CustomMetadata(self)

    def verify(self) -> None:
        """Raise ValueError unless every pair is valid UTF-8 without zero bytes."""
        invalid = []
        for key, value in self.items():
            if not _is_valid_utf8(key) or not _is_valid_utf8(value):
                invalid.append(f"not utf-8 {key!r}={value!r}")
            if _has_zero_byte(key) or _has_zero_byte(value):
                invalid.append(f"contains 0 byte: {key!r}={value!r}")
            if len(key) == 0:
                invalid.append("empty key")
        if invalid:
            raise ValueError(f"invalid pairs [{' '.join(invalid)}]")


@dataclass
class SystemMetadata:
    """Information about an object that cannot be changed directly."""

    created: datetime | None = None
    expires: datetime | None = None
    content_length: int = 0


@dataclass
class Object:
    """Information about an object."""

    key: str = ""
    is_prefix: bool = False
    system: SystemMetadata = field(default_factory=SystemMetadata)
    custom: CustomMetadata = field(default_factory=CustomMetadata)