"""Common interface for KZG implementations under test.

Each backend owns its trusted-setup state. Loading is a one-time,
initialization-boundary action: loading twice or releasing an unloaded
backend raises :class:`SetupError` instead of corrupting per-case state.

Operations take and return the harness encodings (``bytes``); adapters
re-encode to their library's native representation and translate library
failures into :class:`ImplementationError`.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence

from kzgfuzz.core.errors import SetupError
from kzgfuzz.core.types import BYTES_PER_FIELD_ELEMENT

logger = logging.getLogger(__name__)


class KzgBackend(ABC):
    """A KZG library wrapped for differential comparison."""

    name: str = "backend"

    def __init__(self) -> None:
        self._loaded = False
        self._field_elements_per_blob = 0

    # ── Setup lifecycle ──────────────────────────────────────────────────

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def field_elements_per_blob(self) -> int:
        if not self._loaded:
            raise SetupError(f"{self.name}: trusted setup isn't loaded")
        return self._field_elements_per_blob

    @property
    def bytes_per_blob(self) -> int:
        return self.field_elements_per_blob * BYTES_PER_FIELD_ELEMENT

    def load_trusted_setup(self, path: str | Path) -> None:
        if self._loaded:
            raise SetupError(f"{self.name}: trusted setup is already loaded")
        self._field_elements_per_blob = self._load(Path(path))
        self._loaded = True
        logger.info(
            "Loaded trusted setup into %s (%d field elements per blob)",
            self.name,
            self._field_elements_per_blob,
            extra={"implementation": self.name},
        )

    def release(self) -> None:
        if not self._loaded:
            raise SetupError(f"{self.name}: trusted setup isn't loaded")
        self._release()
        self._loaded = False
        logger.debug("Released trusted setup of %s", self.name)

    @abstractmethod
    def _load(self, path: Path) -> int:
        """Load the setup at ``path``; return the field elements per blob."""

    @abstractmethod
    def _release(self) -> None: ...

    # ── Operations under test ────────────────────────────────────────────

    @abstractmethod
    def blob_to_kzg_commitment(self, blob: bytes) -> bytes: ...

    @abstractmethod
    def compute_kzg_proof(self, blob: bytes, z: bytes) -> tuple[bytes, bytes]: ...

    @abstractmethod
    def compute_blob_kzg_proof(self, blob: bytes, commitment: bytes) -> bytes: ...

    @abstractmethod
    def verify_kzg_proof(self, commitment: bytes, z: bytes, y: bytes, proof: bytes) -> bool: ...

    @abstractmethod
    def verify_blob_kzg_proof(self, blob: bytes, commitment: bytes, proof: bytes) -> bool: ...

    @abstractmethod
    def verify_blob_kzg_proof_batch(
        self,
        blobs: Sequence[bytes],
        commitments: Sequence[bytes],
        proofs: Sequence[bytes],
    ) -> bool: ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, loaded={self._loaded})"
