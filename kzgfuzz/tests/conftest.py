"""Shared fixtures for the kzgfuzz test suite."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Iterator, Sequence

import pytest

from kzgfuzz.backends.base import KzgBackend
from kzgfuzz.core.errors import ImplementationError
from kzgfuzz.core.field import canonicalize
from kzgfuzz.core.types import (
    BYTES_PER_FIELD_ELEMENT,
    BYTES_PER_G1,
    G1_IDENTITY,
    Mode,
    Operation,
    is_canonical,
    split_elements,
)
from kzgfuzz.fuzzer.generators import GeneratorConfig
from kzgfuzz.fuzzer.harness import HarnessContext

SMALL_N = 4
DEV_SECRET = 1337


# ── Input builders ───────────────────────────────────────────────────────────


def mode_seed(mode: Mode) -> bytes:
    """8-byte little-endian seed that selects ``mode`` under the three-way policy."""
    index = {Mode.RANDOM: 0, Mode.VALID: 1, Mode.MUTATED: 2}[mode]
    return index.to_bytes(8, "little")


def element(value: int) -> bytes:
    return value.to_bytes(BYTES_PER_FIELD_ELEMENT, "big")


def blob_of(*values: int) -> bytes:
    return b"".join(element(v) for v in values)


# ── Deterministic test doubles ───────────────────────────────────────────────


class FakeBackend(KzgBackend):
    """Deterministic stand-in for a KZG library.

    Outputs are hashes of the inputs, so two instances agree byte for byte.
    Proofs are bound to the commitment, which lets ``verify_*`` accept exactly
    what ``compute_*`` produced. Input validation mirrors the real libraries:
    wrong sizes, non-canonical scalars and uncompressed G1 encodings are
    typed failures.

    ``bug`` injects a divergence:
        identity_commitment   every commitment is the identity point
        identity_proof        every proof is the identity point
        accept_noncanonical   non-canonical scalars are reduced instead of rejected
        verify_always_true    every verification succeeds
    """

    def __init__(self, name: str = "fake", n: int = SMALL_N, bug: str | None = None) -> None:
        super().__init__()
        self.name = name
        self.n = n
        self.bug = bug
        self.calls: list[Operation] = []

    def _load(self, path: Path) -> int:
        return self.n

    def _release(self) -> None:
        pass

    # ── Validation ───────────────────────────────────────────────────────

    def _fail(self, op: Operation, message: str) -> None:
        raise ImplementationError(self.name, op.value, message)

    def _scalar(self, op: Operation, value: bytes) -> bytes:
        if len(value) != BYTES_PER_FIELD_ELEMENT:
            self._fail(op, "bad scalar length")
        if not is_canonical(value):
            if self.bug != "accept_noncanonical":
                self._fail(op, "non-canonical scalar")
            value = canonicalize(value)
        return value

    def _blob(self, op: Operation, blob: bytes) -> bytes:
        if len(blob) != self.bytes_per_blob:
            self._fail(op, "bad blob length")
        return b"".join(self._scalar(op, e) for e in split_elements(blob))

    def _g1(self, op: Operation, encoding: bytes) -> bytes:
        if len(encoding) != BYTES_PER_G1:
            self._fail(op, "bad G1 length")
        if not encoding[0] & 0x80:
            self._fail(op, "G1 encoding is not compressed")
        return encoding

    @staticmethod
    def _point(tag: bytes, *parts: bytes) -> bytes:
        h = hashlib.sha256(tag + b"".join(parts)).digest()
        h += hashlib.sha256(h).digest()
        # Compression flag set, infinity flag clear: never the identity
        return bytes([0x80 | (h[0] & 0x1F)]) + h[1:BYTES_PER_G1]

    def _commit(self, blob: bytes) -> bytes:
        if self.bug == "identity_commitment":
            return G1_IDENTITY
        return self._point(b"C", blob)

    @staticmethod
    def _evaluation(commitment: bytes, z: bytes) -> bytes:
        return canonicalize(hashlib.sha256(b"Y" + commitment + z).digest())

    # ── Operations ───────────────────────────────────────────────────────

    def blob_to_kzg_commitment(self, blob: bytes) -> bytes:
        op = Operation.BLOB_TO_KZG_COMMITMENT
        self.calls.append(op)
        return self._commit(self._blob(op, blob))

    def compute_kzg_proof(self, blob: bytes, z: bytes) -> tuple[bytes, bytes]:
        op = Operation.COMPUTE_KZG_PROOF
        self.calls.append(op)
        commitment = self._commit(self._blob(op, blob))
        z = self._scalar(op, z)
        proof = G1_IDENTITY if self.bug == "identity_proof" else self._point(b"P", commitment, z)
        return proof, self._evaluation(commitment, z)

    def compute_blob_kzg_proof(self, blob: bytes, commitment: bytes) -> bytes:
        op = Operation.COMPUTE_BLOB_KZG_PROOF
        self.calls.append(op)
        blob = self._blob(op, blob)
        commitment = self._g1(op, commitment)
        if self.bug == "identity_proof":
            return G1_IDENTITY
        return self._point(b"B", blob, commitment)

    def verify_kzg_proof(self, commitment: bytes, z: bytes, y: bytes, proof: bytes) -> bool:
        op = Operation.VERIFY_KZG_PROOF
        self.calls.append(op)
        commitment = self._g1(op, commitment)
        z, y = self._scalar(op, z), self._scalar(op, y)
        proof = self._g1(op, proof)
        if self.bug == "verify_always_true":
            return True
        return proof == self._point(b"P", commitment, z) and y == self._evaluation(commitment, z)

    def verify_blob_kzg_proof(self, blob: bytes, commitment: bytes, proof: bytes) -> bool:
        op = Operation.VERIFY_BLOB_KZG_PROOF
        self.calls.append(op)
        blob = self._blob(op, blob)
        commitment, proof = self._g1(op, commitment), self._g1(op, proof)
        if self.bug == "verify_always_true":
            return True
        return commitment == self._commit(blob) and proof == self._point(b"B", blob, commitment)

    def verify_blob_kzg_proof_batch(
        self,
        blobs: Sequence[bytes],
        commitments: Sequence[bytes],
        proofs: Sequence[bytes],
    ) -> bool:
        op = Operation.VERIFY_BLOB_KZG_PROOF_BATCH
        self.calls.append(op)
        if not len(blobs) == len(commitments) == len(proofs):
            self._fail(op, "batch length mismatch")
        results = [
            self.verify_blob_kzg_proof(b, c, p) for b, c, p in zip(blobs, commitments, proofs)
        ]
        return all(results)


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def setup_file(tmp_path: Path) -> Path:
    path = tmp_path / "setup.txt"
    path.write_text("unused by fakes\n")
    return path


def _loaded(backend: KzgBackend, path: Path) -> KzgBackend:
    backend.load_trusted_setup(path)
    return backend


@pytest.fixture
def fake_pair(setup_file: Path) -> tuple[FakeBackend, FakeBackend]:
    """Two agreeing loaded fakes."""
    return (
        _loaded(FakeBackend("fake_a"), setup_file),
        _loaded(FakeBackend("fake_b"), setup_file),
    )


@pytest.fixture
def generator_config() -> GeneratorConfig:
    return GeneratorConfig(field_elements_per_blob=SMALL_N)


@pytest.fixture
def fake_ctx(fake_pair, generator_config) -> HarnessContext:
    return HarnessContext.from_backends(fake_pair, config=generator_config)


@pytest.fixture
def make_ctx(setup_file: Path):
    """Factory: context over fakes with the given bugs on the second side."""

    def _make(bug: str | None = None, **config) -> HarnessContext:
        config.setdefault("field_elements_per_blob", SMALL_N)
        backends = [
            _loaded(FakeBackend("fake_a"), setup_file),
            _loaded(FakeBackend("fake_b", bug=bug), setup_file),
        ]
        return HarnessContext.from_backends(backends, config=GeneratorConfig(**config))

    return _make


@pytest.fixture(scope="session")
def dev_setup_path(tmp_path_factory) -> Path:
    """A 4-point INSECURE setup with a known secret."""
    from kzgfuzz.backends.trusted_setup import write_insecure_setup

    path = tmp_path_factory.mktemp("setup") / "dev_setup.txt"
    write_insecure_setup(path, DEV_SECRET, SMALL_N)
    return path


@pytest.fixture
def reference_backend(dev_setup_path: Path) -> Iterator[KzgBackend]:
    from kzgfuzz.backends.reference import ReferenceBackend

    backend = ReferenceBackend()
    backend.load_trusted_setup(dev_setup_path)
    yield backend
    backend.release()
