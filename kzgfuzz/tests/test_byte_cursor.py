"""Tests for kzgfuzz.fuzzer.byte_cursor."""

from __future__ import annotations

import pytest

from kzgfuzz.core.errors import ErrorCode, Exhausted
from kzgfuzz.fuzzer.byte_cursor import ByteCursor


class TestTakeBytes:
    def test_consumes_in_order(self):
        cursor = ByteCursor(b"abcdef")
        assert cursor.take_bytes(2) == b"ab"
        assert cursor.take_bytes(3) == b"cde"
        assert cursor.offset == 5
        assert cursor.remaining == 1

    def test_zero_length_take(self):
        cursor = ByteCursor(b"")
        assert cursor.take_bytes(0) == b""
        assert cursor.offset == 0

    @pytest.mark.parametrize("size,request_", [(0, 1), (3, 4), (31, 32), (4095, 4096)])
    def test_short_buffer_raises_without_advancing(self, size, request_):
        cursor = ByteCursor(b"\x01" * size)
        with pytest.raises(Exhausted) as exc_info:
            cursor.take_bytes(request_)
        assert cursor.offset == 0
        assert exc_info.value.requested == request_
        assert exc_info.value.remaining == size
        assert exc_info.value.code is ErrorCode.EXHAUSTED

    def test_failed_take_leaves_later_takes_possible(self):
        cursor = ByteCursor(b"xyz")
        cursor.take_bytes(1)
        with pytest.raises(Exhausted):
            cursor.take_bytes(5)
        assert cursor.take_bytes(2) == b"yz"

    def test_negative_size_rejected(self):
        with pytest.raises(ValueError):
            ByteCursor(b"abc").take_bytes(-1)

    def test_returns_immutable_copy(self):
        source = bytearray(b"\x00\x01")
        cursor = ByteCursor(source)
        taken = cursor.take_bytes(2)
        assert isinstance(taken, bytes)
        assert taken == b"\x00\x01"


class TestTypedReads:
    def test_take_byte(self):
        cursor = ByteCursor(b"\xff\x00")
        assert cursor.take_byte() == 255
        assert cursor.take_byte() == 0

    def test_take_bool_uses_low_bit(self):
        cursor = ByteCursor(b"\x01\x02\x03")
        assert [cursor.take_bool() for _ in range(3)] == [True, False, True]

    def test_take_uint64_little_endian(self):
        cursor = ByteCursor(b"\x02" + b"\x00" * 7 + b"\xff" * 8)
        assert cursor.take_uint64() == 2
        assert cursor.take_uint64() == 2**64 - 1

    def test_take_int64_signed(self):
        cursor = ByteCursor(b"\xff" * 8 + b"\x05" + b"\x00" * 7)
        assert cursor.take_int64() == -1
        assert cursor.take_int64() == 5

    def test_uint64_needs_eight_bytes(self):
        cursor = ByteCursor(b"\x00" * 7)
        with pytest.raises(Exhausted):
            cursor.take_uint64()
        assert cursor.offset == 0

    def test_repr(self):
        cursor = ByteCursor(b"abcd")
        cursor.take_byte()
        assert repr(cursor) == "ByteCursor(offset=1, remaining=3)"
