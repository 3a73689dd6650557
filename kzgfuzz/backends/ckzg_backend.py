"""Adapter over the c-kzg-4844 Python bindings (``ckzg``)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Sequence

import ckzg

from kzgfuzz.backends.base import KzgBackend
from kzgfuzz.core.errors import ImplementationError, SetupError
from kzgfuzz.core.types import FIELD_ELEMENTS_PER_BLOB, Operation

logger = logging.getLogger(__name__)


class CkzgBackend(KzgBackend):
    """c-kzg-4844, compiled for 4096 field elements per blob.

    ckzg raises ``RuntimeError`` for ``C_KZG_BADARGS``/``C_KZG_ERROR`` and
    ``ValueError``/``TypeError`` for malformed argument sizes; all three are
    typed failures of the implementation.
    """

    name = "ckzg"

    def __init__(self, precompute: int = 0) -> None:
        super().__init__()
        self.precompute = precompute
        self._settings: Any = None

    def _load(self, path: Path) -> int:
        try:
            self._settings = ckzg.load_trusted_setup(str(path), self.precompute)
        except (RuntimeError, ValueError, OSError) as exc:
            raise SetupError(f"ckzg could not load trusted setup {path}: {exc}") from exc
        return FIELD_ELEMENTS_PER_BLOB

    def _release(self) -> None:
        # KZGSettings are freed when the capsule is collected
        self._settings = None

    def _call(self, operation: Operation, fn: Callable[..., Any], *args: Any) -> Any:
        if self._settings is None:
            raise SetupError(f"{self.name}: trusted setup isn't loaded")
        try:
            return fn(*args, self._settings)
        except (RuntimeError, ValueError, TypeError) as exc:
            raise ImplementationError(self.name, operation.value, str(exc) or type(exc).__name__) from exc

    # ── Operations ───────────────────────────────────────────────────────

    def blob_to_kzg_commitment(self, blob: bytes) -> bytes:
        return self._call(Operation.BLOB_TO_KZG_COMMITMENT, ckzg.blob_to_kzg_commitment, blob)

    def compute_kzg_proof(self, blob: bytes, z: bytes) -> tuple[bytes, bytes]:
        proof, y = self._call(Operation.COMPUTE_KZG_PROOF, ckzg.compute_kzg_proof, blob, z)
        return bytes(proof), bytes(y)

    def compute_blob_kzg_proof(self, blob: bytes, commitment: bytes) -> bytes:
        return self._call(
            Operation.COMPUTE_BLOB_KZG_PROOF, ckzg.compute_blob_kzg_proof, blob, commitment
        )

    def verify_kzg_proof(self, commitment: bytes, z: bytes, y: bytes, proof: bytes) -> bool:
        return bool(
            self._call(Operation.VERIFY_KZG_PROOF, ckzg.verify_kzg_proof, commitment, z, y, proof)
        )

    def verify_blob_kzg_proof(self, blob: bytes, commitment: bytes, proof: bytes) -> bool:
        return bool(
            self._call(
                Operation.VERIFY_BLOB_KZG_PROOF, ckzg.verify_blob_kzg_proof, blob, commitment, proof
            )
        )

    def verify_blob_kzg_proof_batch(
        self,
        blobs: Sequence[bytes],
        commitments: Sequence[bytes],
        proofs: Sequence[bytes],
    ) -> bool:
        # The bindings take each sequence as one concatenated buffer
        return bool(
            self._call(
                Operation.VERIFY_BLOB_KZG_PROOF_BATCH,
                ckzg.verify_blob_kzg_proof_batch,
                b"".join(blobs),
                b"".join(commitments),
                b"".join(proofs),
            )
        )
