"""Reed-Solomon forward error correction and the erasure schemes built on it."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Mapping, Sequence

__all__ = [
    "EestreamError",
    "NotEnoughSharesError",
    "TooManyErrorsError",
    "FEC",
    "ErasureScheme",
    "RSScheme",
    "UnsafeRSScheme",
]


class EestreamError(Exception):
    """Error raised by the erasure stream code."""

    def __str__(self) -> str:
        message = super().__str__()
        return f"eestream: {message}" if message else "eestream"


class NotEnoughSharesError(Exception):
    """Fewer shares were given than decoding requires."""


class TooManyErrorsError(Exception):
    """The shares hold more errors than can be corrected."""


# GF(2^8) arithmetic with the polynomial x^8 + x^4 + x^3 + x^2 + 1.
_EXP = [0] * 510
_LOG = [0] * 256


def _build_tables() -> None:
    value = 1
    for power in range(255):
        _EXP[power] = value
        _LOG[value] = power
        value <<= 1
        if value & 0x100:
            value ^= 0x11D
    for power in range(255, 510):
        _EXP[power] = _EXP[power - 255]


_build_tables()


def _mul(a: int, b: int) -> int:
    if a == 0 or b == 0:
        return 0
    return _EXP[_LOG[a] + _LOG[b]]


def _inv(a: int) -> int:
    if a == 0:
        raise ZeroDivisionError("zero has no inverse")
    return _EXP[255 - _LOG[a]]


def _pow(base: int, exponent: int) -> int:
    if exponent == 0:
        return 1
    if base == 0:
        return 0
    return _EXP[(_LOG[base] * exponent) % 255]


_MUL_TABLES = [bytes(_mul(c, v) for v in range(256)) for c in range(256)]


def _combine(coefficients: Sequence[int], vectors: Sequence[bytes], size: int) -> bytes:
    """Return the GF(2^8) linear combination of equally long byte vectors."""
    accumulator = 0
    for coefficient, vector in zip(coefficients, vectors):
        if coefficient:
            accumulator ^= int.from_bytes(vector.translate(_MUL_TABLES[coefficient]), "big")
    return accumulator.to_bytes(size, "big")


def _solve(rows: list[list[int]], unknowns: int) -> list[int] | None:
    """Solve an augmented linear system; None when it is inconsistent."""
    rows = [list(row) for row in rows]
    pivots: list[int] = []
    rank = 0
    for column in range(unknowns):
        if rank == len(rows):
            break
        pivot = next((i for i in range(rank, len(rows)) if rows[i][column]), None)
        if pivot is None:
            continue
        rows[rank], rows[pivot] = rows[pivot], rows[rank]
        inverse = _inv(rows[rank][column])
        rows[rank] = [_mul(v, inverse) for v in rows[rank]]
        for i, row in enumerate(rows):
            factor = row[column]
            if i != rank and factor:
                rows[i] = [a ^ _mul(factor, b) for a, b in zip(row, rows[rank])]
        pivots.append(column)
        rank += 1
    if any(row[unknowns] for row in rows[rank:]):
        return None
    solution = [0] * unknowns
    for row, column in zip(rows, pivots):
        solution[column] = row[unknowns]
    return solution


def _invert(matrix: Sequence[Sequence[int]]) -> list[list[int]]:
    size = len(matrix)
    rows = [list(row) + [int(i == j) for j in range(size)] for i, row in enumerate(matrix)]
    for column in range(size):
        pivot = next((i for i in range(column, size) if rows[i][column]), None)
        if pivot is None:
            raise ValueError("matrix is singular")
        rows[column], rows[pivot] = rows[pivot], rows[column]
        inverse = _inv(rows[column][column])
        rows[column] = [_mul(v, inverse) for v in rows[column]]
        for i, row in enumerate(rows):
            factor = row[column]
            if i != column and factor:
                rows[i] = [a ^ _mul(factor, b) for a, b in zip(row, rows[column])]
    return [row[size:] for row in rows]


def _poly_divmod(numerator: Sequence[int], denominator: Sequence[int]) -> tuple[list[int], list[int]]:
    """Divide polynomials (lowest coefficient first) by a monic denominator."""
    remainder = list(numerator)
    degree = len(denominator) - 1
    if len(remainder) - 1 < degree:
        return [0], remainder
    quotient = [0] * (len(remainder) - degree)
    for i in range(len(quotient) - 1, -1, -1):
        coefficient = remainder[i + degree]
        quotient[i] = coefficient
        if coefficient:
            for j, d in enumerate(denominator):
                remainder[i + j] ^= _mul(coefficient, d)
    return quotient, remainder[:degree]


def _poly_eval(polynomial: Sequence[int], x: int) -> int:
    result = 0
    for coefficient in reversed(polynomial):
        result = _mul(result, x) ^ coefficient
    return result


class FEC:
    """Systematic Reed-Solomon code producing total shares from required."""

    def __init__(self, required: int, total: int) -> None:
        if not 1 <= required <= total <= 256:
            raise ValueError("requires 1 <= required <= total <= 256")
        self.required = required
        self.total = total
        vandermonde = [[_pow(x, j) for j in range(required)] for x in range(total)]
        top_inverse = _invert(vandermonde[:required])
        self._matrix = [
            [self._dot(row, [top_inverse[l][j] for l in range(required)]) for j in range(required)]
            for row in vandermonde
        ]

    @staticmethod
    def _dot(left: Sequence[int], right: Sequence[int]) -> int:
        result = 0
        for a, b in zip(left, right):
            result ^= _mul(a, b)
        return result

    def _split(self, data: bytes) -> list[bytes]:
        data = bytes(data)
        if len(data) % self.required:
            raise ValueError("input length must be a multiple of the required count")
        size = len(data) // self.required
        return [data[j * size:(j + 1) * size] for j in range(self.required)]

    def _share(self, num: int, chunks: Sequence[bytes]) -> bytes:
        if num < self.required:
            return chunks[num]
        return _combine(self._matrix[num], chunks, len(chunks[0]))

    def encode(self, data: bytes) -> list[bytes]:
        """Return all total shares of data, indexed by share number."""
        chunks = self._split(data)
        return [self._share(num, chunks) for num in range(self.total)]

    def encode_single(self, data: bytes, num: int) -> bytes:
        """Return share num of data."""
        if not 0 <= num < self.total:
            raise ValueError(f"share number {num} out of range")
        return self._share(num, self._split(data))

    def _normalize(self, shares: Mapping[int, bytes]) -> dict[int, bytes]:
        received = {num: bytes(data) for num, data in shares.items()}
        for num in received:
            if not 0 <= num < self.total:
                raise ValueError(f"invalid share number {num}")
        if len({len(data) for data in received.values()}) > 1:
            raise ValueError("shares must all have the same length")
        if len(received) < self.required:
            raise NotEnoughSharesError(
                f"got {len(received)} shares, need {self.required}"
            )
        return received

    def _interpolate(self, received: Mapping[int, bytes], trusted: Sequence[int]) -> list[bytes]:
        values = [received[num] for num in trusted]
        if list(trusted) == list(range(self.required)):
            return values
        inverse = _invert([self._matrix[num] for num in trusted])
        size = len(values[0])
        return [_combine(inverse[j], values, size) for j in range(self.required)]

    def _bad_columns(
        self,
        received: Mapping[int, bytes],
        verify: Sequence[int],
        chunks: Sequence[bytes],
        max_errors: int,
    ) -> list[int]:
        counts: Counter[int] = Counter()
        for num in verify:
            expected = self._share(num, chunks)
            actual = received[num]
            if expected != actual:
                counts.update(col for col, (a, b) in enumerate(zip(expected, actual)) if a != b)
        return sorted(col for col, count in counts.items() if count > max_errors)

    def _correct_column(
        self, received: Mapping[int, bytes], numbers: Sequence[int], column: int
    ) -> tuple[list[int], set[int]]:
        """Berlekamp-Welch decode of one byte column; data values and bad shares."""
        required = self.required
        ys = [received[num][column] for num in numbers]
        errors_allowed = (len(numbers) - required) // 2
        rows = []
        for x, y in zip(numbers, ys):
            row = [_pow(x, j) for j in range(required + errors_allowed)]
            row.extend(_mul(y, _pow(x, j)) for j in range(errors_allowed))
            row.append(_mul(y, _pow(x, errors_allowed)))
            rows.append(row)
        solution = _solve(rows, required + 2 * errors_allowed)
        if solution is None:
            raise TooManyErrorsError("too many errors to reconstruct")
        numerator = solution[: required + errors_allowed]
        locator = solution[required + errors_allowed:] + [1]
        polynomial, remainder = _poly_divmod(numerator, locator)
        if any(remainder):
            raise TooManyErrorsError("too many errors to reconstruct")
        errors = {num for num, y in zip(numbers, ys) if _poly_eval(polynomial, num) != y}
        if len(errors) > errors_allowed:
            raise TooManyErrorsError("too many errors to reconstruct")
        return [_poly_eval(polynomial, j) for j in range(required)], errors

    def decode(self, shares: Mapping[int, bytes]) -> bytes:
        """Reconstruct the original data, correcting errors where possible."""
        received = self._normalize(shares)
        numbers = sorted(received)
        max_errors = (len(numbers) - self.required) // 2
        trusted = numbers[: self.required]
        chunks = self._interpolate(received, trusted)
        verify = numbers[self.required:]
        bad = self._bad_columns(received, verify, chunks, max_errors)
        if bad:
            _, errors = self._correct_column(received, numbers, bad[0])
            if errors & set(trusted):
                usable = [num for num in numbers if num not in errors]
                trusted = usable[: self.required]
                chunks = self._interpolate(received, trusted)
                verify = [num for num in numbers if num not in set(trusted)]
                bad = self._bad_columns(received, verify, chunks, max_errors)
        if not bad:
            return b"".join(chunks)
        columns = [bytearray(chunk) for chunk in chunks]
        for column in bad:
            values, _ = self._correct_column(received, numbers, column)
            for chunk, value in zip(columns, values):
                chunk[column] = value
        return b"".join(bytes(chunk) for chunk in columns)

    def rebuild(self, shares: Mapping[int, bytes]) -> dict[int, bytes]:
        """Recover the required data shares without error correction."""
        received = self._normalize(shares)
        trusted = sorted(received)[: self.required]
        return dict(enumerate(self._interpolate(received, trusted)))


class ErasureScheme(ABC):
    """General form of an erasure coding algorithm."""

    @abstractmethod
    def encode(self, data: bytes) -> list[bytes]:
        """Return the erasure shares of data, indexed by piece number."""

    @abstractmethod
    def encode_single(self, data: bytes, num: int) -> bytes:
        """Return the erasure share of data for piece num."""

    @abstractmethod
    def decode(self, shares: Mapping[int, bytes]) -> bytes:
        """Combine erasure shares keyed by piece number into the stripe."""

    @abstractmethod
    def erasure_share_size(self) -> int:
        """Size of each erasure share."""

    @abstractmethod
    def stripe_size(self) -> int:
        """Size of the stripes passed to encode and returned by decode."""

    @abstractmethod
    def total_count(self) -> int:
        """Number of erasure shares produced."""

    @abstractmethod
    def required_count(self) -> int:
        """Number of erasure shares needed to decode."""


class RSScheme(ErasureScheme):
    """Reed-Solomon erasure scheme with error correction."""

    def __init__(self, fec: FEC, erasure_share_size: int) -> None:
        self.fec = fec
        self._erasure_share_size = erasure_share_size

    def encode(self, data: bytes) -> list[bytes]:
        return self.fec.encode(data)

    def encode_single(self, data: bytes, num: int) -> bytes:
        return self.fec.encode_single(data, num)

    def decode(self, shares: Mapping[int, bytes]) -> bytes:
        return self.fec.decode(shares)

    def erasure_share_size(self) -> int:
        return self._erasure_share_size

    def stripe_size(self) -> int:
        return self._erasure_share_size * self.fec.required

    def total_count(self) -> int:
        return self.fec.total

    def required_count(self) -> int:
        return self.fec.required


class UnsafeRSScheme(RSScheme):
    """Reed-Solomon erasure scheme without error correction."""

    def __init__(self, fec: FEC, erasure_share_size: int) -> None:
        super().__init__(fec, erasure_share_size)

    def encode(self, data: bytes) -> list[bytes]:
        return self.fec.encode(data)

    def encode_single(self, data: bytes, num: int) -> bytes:
        return self.fec.encode_single(data, num)

    def decode(self, shares: Mapping[int, bytes]) -> bytes:
        rebuilt = self.fec.rebuild(shares)
        return b"".join(rebuilt[num] for num in range(self.fec.required))

    def erasure_share_size(self) -> int:
        return self._erasure_share_size

    def stripe_size(self) -> int:
        return self._erasure_share_size * self.fec.required

    def total_count(self) -> int:
        return self.fec.total

    def required_count(self) -> int:
        return self.fec.required