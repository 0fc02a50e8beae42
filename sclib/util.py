"""Small numeric helpers: RC4 pseudo random bytes, powers of two, sizes."""

from __future__ import annotations

import re

_UINT64_MAX = (1 << 64) - 1
_INT64_MAX = (1 << 63) - 1
_INT64_MIN = -(1 << 63)

_SIZE_SUFFIXES = ("KB", "MB", "GB", "TB", "PB", "EB")
_UNIT_MULTIPLIERS = {
    "b": 1,
    "k": 1024,
    "m": 1024**2,
    "g": 1024**3,
    "t": 1024**4,
    "p": 1024**5,
    "e": 1024**6,
}
_LEADING_INT = re.compile(r"[ \t\n\v\f\r]*[+-]?[0-9]+")


class RC4Random:
    """RC4 based pseudo random byte generator seeded with 256 bytes."""

    SEED_SIZE = 256

    def __init__(self, seed: bytes) -> None:
        seed = bytes(seed)
        if len(seed) != self.SEED_SIZE:
            raise ValueError(f"seed must be {self.SEED_SIZE} bytes long")
        state = list(seed)
        j = 0
        for i, seed_byte in enumerate(seed):
            j = (j + state[i] + seed_byte) & 0xFF
            state[i], state[j] = state[j], state[i]
        self._state = state
        self._i = 0
        self._j = j

    def read(self, size: int) -> bytes:
        """Return ``size`` pseudo random bytes; nothing if size is not positive."""
        if size <= 0:
            return b""
        state = self._state
        i, j = self._i, self._j
        out = bytearray(size)
        for k in range(size):
            i = (i + 1) & 0xFF
            t = state[i]
            j = (j + t) & 0xFF
            state[i] = state[j]
            state[j] = t
            out[k] = state[(t + state[i]) & 0xFF]
        self._i, self._j = i, j
        return bytes(out)


def is_pow2(num: int) -> bool:
    """Return True if ``num`` is a power of two."""
    return num != 0 and (num & (num - 1)) == 0


def to_pow2(size: int) -> int:
    """Return the smallest power of two not less than ``size`` (64-bit)."""
    if not 0 <= size <= _UINT64_MAX:
        raise ValueError("size must fit in an unsigned 64-bit integer")
    if size == 0:
        return 1
    # Values above 2**63 wrap to zero, as in 64-bit arithmetic.
    return (1 << (size - 1).bit_length()) & _UINT64_MAX


def bytes_to_size(val: int) -> str:
    """Format a byte count in human readable form, e.g. 1024 -> '1.00 KB'."""
    if not 0 <= val <= _UINT64_MAX:
        raise ValueError("value must fit in an unsigned 64-bit integer")
    if val < 1024:
        return f"{val} B"

    n = 0
    count = val
    for shift in (40, 30, 20, 10, 0):
        if val <= 0xFFFCCCCCCCCCCCC >> shift:
            break
        n += 1
        count >>= 10

    return f"{count / 1024:.2f} {_SIZE_SUFFIXES[n]}"


def size_to_bytes(text: str) -> int:
    """Parse a human readable size, e.g. '1kb' -> 1024."""
    match = _LEADING_INT.match(text)
    if match is None:
        raise ValueError(f"no number in {text!r}")
    val = int(match.group())
    if not _INT64_MIN <= val <= _INT64_MAX:
        raise ValueError(f"number out of range in {text!r}")

    rest = text[match.end():]
    if not rest:
        return val
    if len(rest) > 2 or (len(rest) == 2 and rest[1].lower() != "b"):
        raise ValueError(f"invalid size suffix in {text!r}")

    multiplier = _UNIT_MULTIPLIERS.get(rest[0].lower())
    if multiplier is None:
        raise ValueError(f"invalid size unit in {text!r}")

    result = val * multiplier
    if not _INT64_MIN <= result <= _INT64_MAX:
        raise ValueError(f"size too large in {text!r}")
    return result