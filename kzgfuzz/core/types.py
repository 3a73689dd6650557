"""Shared enums, constants and value types used across the harness."""

from __future__ import annotations

import enum


# ── EIP-4844 constants ───────────────────────────────────────────────────────

# BLS12-381 scalar field modulus (curve order r)
BLS_MODULUS = 52435875175126190479447740508185965837690552500527637822603658699938581184513

BYTES_PER_FIELD_ELEMENT = 32
BYTES_PER_G1 = 48
BYTES_PER_G2 = 96
BYTES_PER_COMMITMENT = BYTES_PER_G1
BYTES_PER_PROOF = BYTES_PER_G1
FIELD_ELEMENTS_PER_BLOB = 4096

# Compressed encoding of the G1 point at infinity
G1_IDENTITY = b"\xc0" + b"\x00" * (BYTES_PER_G1 - 1)


# ── Enums ────────────────────────────────────────────────────────────────────


class Mode(str, enum.Enum):
    """How a generator derives a value from the cursor."""

    RANDOM = "random"
    VALID = "valid"
    MUTATED = "mutated"


class ModePolicy(str, enum.Enum):
    """How a drawn seed maps onto a generation mode."""

    THREE_WAY = "three_way"  # seed % 3 -> random / valid / mutated
    TWO_WAY = "two_way"      # seed % 2 -> random / valid


class BlobLayout(str, enum.Enum):
    """How blob slots are filled from the cursor."""

    FULL = "full"        # every slot drawn independently
    TILED = "tiled"      # one element repeated across all slots
    PARTIAL = "partial"  # fill while entropy lasts, zero the rest


class MutationGranularity(str, enum.Enum):
    """Where bit mutation is applied to a blob in MUTATED mode."""

    PER_ELEMENT = "per_element"
    WHOLE_BLOB = "whole_blob"


class Operation(str, enum.Enum):
    """Operations every implementation under test must provide.

    The value doubles as the backend method name.
    """

    BLOB_TO_KZG_COMMITMENT = "blob_to_kzg_commitment"
    COMPUTE_KZG_PROOF = "compute_kzg_proof"
    COMPUTE_BLOB_KZG_PROOF = "compute_blob_kzg_proof"
    VERIFY_KZG_PROOF = "verify_kzg_proof"
    VERIFY_BLOB_KZG_PROOF = "verify_blob_kzg_proof"
    VERIFY_BLOB_KZG_PROOF_BATCH = "verify_blob_kzg_proof_batch"


class CaseStatus(str, enum.Enum):
    """Final state of one fuzz case."""

    PASSED = "passed"
    SKIPPED = "skipped"
    FAILED = "failed"


# ── Helpers ──────────────────────────────────────────────────────────────────


def is_canonical(element: bytes) -> bool:
    return int.from_bytes(element, "big") < BLS_MODULUS


def split_elements(blob: bytes) -> list[bytes]:
    return [
        blob[i:i + BYTES_PER_FIELD_ELEMENT]
        for i in range(0, len(blob), BYTES_PER_FIELD_ELEMENT)
    ]


def is_all_zero(data: bytes) -> bool:
    return not any(data)


def is_constant_blob(blob: bytes) -> bool:
    """True when every field element of ``blob`` has the same encoding."""
    elements = split_elements(blob)
    return all(e == elements[0] for e in elements[1:])
