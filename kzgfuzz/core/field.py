"""BLS12-381 scalar-field helpers shared by generators and backends.

All integers are plain Python ints reduced mod ``BLS_MODULUS``; encodings
are 32-byte big-endian.
"""

from __future__ import annotations

import hashlib

from kzgfuzz.core.types import BLS_MODULUS, BYTES_PER_FIELD_ELEMENT

PRIMITIVE_ROOT_OF_UNITY = 7


def canonicalize(element: bytes) -> bytes:
    """Reduce a 32-byte big-endian value mod the field modulus."""
    value = int.from_bytes(element, "big") % BLS_MODULUS
    return value.to_bytes(BYTES_PER_FIELD_ELEMENT, "big")


def bytes_to_bls_field(element: bytes) -> int:
    """Decode a canonical field element; raise ``ValueError`` otherwise."""
    if len(element) != BYTES_PER_FIELD_ELEMENT:
        raise ValueError(f"expected {BYTES_PER_FIELD_ELEMENT} bytes, got {len(element)}")
    value = int.from_bytes(element, "big")
    if value >= BLS_MODULUS:
        raise ValueError("field element is not canonical")
    return value


def bls_field_to_bytes(value: int) -> bytes:
    return (value % BLS_MODULUS).to_bytes(BYTES_PER_FIELD_ELEMENT, "big")


def hash_to_bls_field(data: bytes) -> int:
    return int.from_bytes(hashlib.sha256(data).digest(), "big") % BLS_MODULUS


def inverse(value: int) -> int:
    if value % BLS_MODULUS == 0:
        raise ZeroDivisionError("zero has no inverse in the scalar field")
    return pow(value, -1, BLS_MODULUS)


def is_power_of_two(value: int) -> bool:
    return value > 0 and value & (value - 1) == 0


def reverse_bits(n: int, order: int) -> int:
    """Reverse the low ``log2(order)`` bits of ``n``."""
    width = order.bit_length() - 1
    return int(format(n, f"0{width}b")[::-1], 2) if width else 0


def bit_reversal_permutation(sequence: list) -> list:
    return [sequence[reverse_bits(i, len(sequence))] for i in range(len(sequence))]


def compute_powers(x: int, n: int) -> list[int]:
    current = 1
    powers = []
    for _ in range(n):
        powers.append(current)
        current = current * x % BLS_MODULUS
    return powers


def compute_roots_of_unity(order: int) -> list[int]:
    """The ``order``-th roots of unity in natural order."""
    if (BLS_MODULUS - 1) % order != 0:
        raise ValueError(f"no subgroup of order {order} in the scalar field")
    root = pow(PRIMITIVE_ROOT_OF_UNITY, (BLS_MODULUS - 1) // order, BLS_MODULUS)
    return compute_powers(root, order)
