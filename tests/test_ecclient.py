import pytest

from uplink.ecclient import (
    AddressedOrderLimit,
    EcClientError,
    calc_padded,
    non_nil_count,
    unique,
)

LIMITS = [
    AddressedOrderLimit(bytes([n]) * 32, f"node{n}.example.com:7777") for n in (7, 3, 9, 1)
]


@pytest.mark.parametrize(
    "indexes, expected",
    [
        (None, True),
        ([], True),
        ([0], True),
        ([0, 1], True),
        ([0, 0], False),
        ([0, 1, 0], False),
        ([1, 0, 0], False),
        ([0, 0, 1], False),
        ([2, 0, 1], True),
        ([2, 0, 3, 1], True),
        ([2, 0, 2, 1], False),
        ([1, 0, 3, 1], False),
    ],
)
def test_unique(indexes, expected):
    limits = None if indexes is None else [LIMITS[i] for i in indexes]
    assert unique(limits) is expected


def test_unique_ignores_missing_limits():
    assert unique([None, LIMITS[0], None, LIMITS[1]]) is True
    assert unique([None, LIMITS[0], None, LIMITS[0]]) is False


def test_unique_ignores_zero_node_ids():
    zero = AddressedOrderLimit(bytes(32))
    assert unique([zero, zero, LIMITS[0]]) is True


@pytest.mark.parametrize(
    "size, block, expected",
    [(0, 16, 0), (1, 16, 16), (16, 16, 16), (17, 16, 32), (100, 7, 105)],
)
def test_calc_padded(size, block, expected):
    assert calc_padded(size, block) == expected


def test_calc_padded_rejects_bad_block_size():
    with pytest.raises(ValueError):
        calc_padded(10, 0)


def test_non_nil_count():
    assert non_nil_count([None, LIMITS[0], None, LIMITS[1], LIMITS[2]]) == 3
    assert non_nil_count([]) == 0
    assert non_nil_count(None) == 0


def test_invalid_node_id_length():
    with pytest.raises(EcClientError) as info:
        AddressedOrderLimit(b"\x01\x02")
    assert str(info.value).startswith("ecclient: ")


def test_error_prefix():
    assert str(EcClientError("duplicated nodes are not allowed")) == (
        "ecclient: duplicated nodes are not allowed"
    )