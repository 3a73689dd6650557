"""Deterministic byte cursor over a fuzzer-supplied buffer.

Every ``take_*`` call either consumes exactly the requested number of bytes
or raises :class:`Exhausted` and leaves the offset untouched.
"""

from __future__ import annotations

from kzgfuzz.core.errors import Exhausted


class ByteCursor:
    """Typed reads from a borrowed byte buffer."""

    def __init__(self, data: bytes) -> None:
        self._data = memoryview(data)
        self._offset = 0

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def take_bytes(self, n: int) -> bytes:
        if n < 0:
            raise ValueError(f"cannot take a negative number of bytes: {n}")
        if n > self.remaining:
            raise Exhausted(n, self.remaining)
        start = self._offset
        self._offset += n
        return bytes(self._data[start:self._offset])

    def take_byte(self) -> int:
        return self.take_bytes(1)[0]

    def take_bool(self) -> bool:
        return bool(self.take_byte() & 1)

    def take_uint64(self) -> int:
        return int.from_bytes(self.take_bytes(8), "little", signed=False)

    def take_int64(self) -> int:
        return int.from_bytes(self.take_bytes(8), "little", signed=True)

    def __repr__(self) -> str:
        return f"ByteCursor(offset={self._offset}, remaining={self.remaining})"
