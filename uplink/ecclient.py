"""Helpers of the erasure coding client for storing pieces on storage nodes."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

__all__ = [
    "EcClientError",
    "AddressedOrderLimit",
    "unique",
    "calc_padded",
    "non_nil_count",
]

NODE_ID_SIZE = 32
_ZERO_NODE_ID = bytes(NODE_ID_SIZE)


class EcClientError(Exception):
    """Error raised by the erasure coding client."""

    def __str__(self) -> str:
        message = super().__str__()
        return f"ecclient: {message}" if message else "ecclient"


@dataclass(frozen=True)
class AddressedOrderLimit:
    """An order limit for one storage node together with the node's address."""

    storage_node_id: bytes
    storage_node_address: str = ""

    def __post_init__(self) -> None:
        node_id = bytes(self.storage_node_id)
        if len(node_id) != NODE_ID_SIZE:
            raise EcClientError(
                f"node id must be {NODE_ID_SIZE} bytes, got {len(node_id)}"
            )
        object.__setattr__(self, "storage_node_id", node_id)


def unique(limits: Sequence[AddressedOrderLimit | None] | None) -> bool:
    """Tell whether no storage node appears twice among the limits.

    Missing limits and zero node ids never count as duplicates.
    """
    if not limits or len(limits) < 2:
        return True
    ids = sorted(
        _ZERO_NODE_ID if limit is None else limit.storage_node_id for limit in limits
    )
    return not any(
        current != _ZERO_NODE_ID and current == previous
        for previous, current in zip(ids, ids[1:])
    )


def calc_padded(size: int, block_size: int) -> int:
    """Round size up to the next multiple of block_size."""
    if block_size <= 0:
        raise ValueError("block size must be positive")
    mod = abs(size) % block_size
    if size < 0:
        mod = -mod
    if mod == 0:
        return size
    return size + block_size - mod


def non_nil_count(limits: Sequence[AddressedOrderLimit | None] | None) -> int:
    """Count the limits that are present."""
    return sum(1 for limit in limits or () if limit is not None)