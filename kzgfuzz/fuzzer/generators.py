"""Three-mode value generators driven by a :class:`ByteCursor`.

Every generator understands the same three modes:

    RANDOM   raw cursor bytes, no validation at all
    VALID    canonical field elements; group elements computed by the
             reference implementation from a canonical blob
    MUTATED  the VALID value, then a bounded bit mutation

The mode is drawn once per top-level generation (see :class:`ModeSelector`)
and threaded through nested generations, so a VALID blob is VALID in every
slot. Fixed-size values are always drawn before blobs so that a
``partial`` blob layout, which consumes all remaining entropy, does not
starve them.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any

from kzgfuzz.backends.base import KzgBackend
from kzgfuzz.core.config import Settings
from kzgfuzz.core.errors import Exhausted, GenerationFailed, ImplementationError
from kzgfuzz.core.field import canonicalize
from kzgfuzz.core.types import (
    BYTES_PER_FIELD_ELEMENT,
    BYTES_PER_G1,
    FIELD_ELEMENTS_PER_BLOB,
    BlobLayout,
    Mode,
    ModePolicy,
    MutationGranularity,
    Operation,
)
from kzgfuzz.fuzzer.bit_mutator import DEFAULT_MUTATION_RATE, BitMutator
from kzgfuzz.fuzzer.byte_cursor import ByteCursor

logger = logging.getLogger(__name__)

ZERO_ELEMENT = b"\x00" * BYTES_PER_FIELD_ELEMENT


# ── Configuration ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class GeneratorConfig:
    """Harness-variant knobs for input derivation."""

    field_elements_per_blob: int = FIELD_ELEMENTS_PER_BLOB
    mode_policy: ModePolicy = ModePolicy.THREE_WAY
    blob_layout: BlobLayout = BlobLayout.FULL
    mutation_granularity: MutationGranularity = MutationGranularity.PER_ELEMENT
    mutation_rate: float = DEFAULT_MUTATION_RATE
    max_batch_size: int = 5

    @classmethod
    def from_settings(cls, settings: Settings, field_elements_per_blob: int) -> GeneratorConfig:
        return cls(
            field_elements_per_blob=field_elements_per_blob,
            mode_policy=settings.mode_policy,
            blob_layout=settings.blob_layout,
            mutation_granularity=settings.mutation_granularity,
            mutation_rate=settings.mutation_rate,
            max_batch_size=settings.max_batch_size,
        )


# ── Mode selection ───────────────────────────────────────────────────────────


class ModeSelector:
    """Map a 64-bit seed drawn from the cursor onto a generation mode."""

    _MODES = {
        ModePolicy.THREE_WAY: (Mode.RANDOM, Mode.VALID, Mode.MUTATED),
        ModePolicy.TWO_WAY: (Mode.RANDOM, Mode.VALID),
    }

    def __init__(self, policy: ModePolicy = ModePolicy.THREE_WAY) -> None:
        self.policy = policy
        self._modes = self._MODES[policy]

    def mode_for(self, seed: int) -> Mode:
        return self._modes[seed % len(self._modes)]

    def select(self, cursor: ByteCursor) -> Mode:
        return self.mode_for(cursor.take_uint64())


def draw_mutation_seed(cursor: ByteCursor, fallback: bytes) -> int:
    """Take a mutation seed from the cursor, or derive one from ``fallback``."""
    try:
        return cursor.take_int64()
    except Exhausted:
        return random.Random(fallback).getrandbits(63)


# ── Derived value bundles ────────────────────────────────────────────────────


@dataclass(frozen=True)
class BlobOpening:
    """A blob with a commitment and a blob proof (valid or not)."""

    blob: bytes
    commitment: bytes
    proof: bytes

    def as_inputs(self) -> dict[str, Any]:
        return {"blob": self.blob, "commitment": self.commitment, "proof": self.proof}


@dataclass(frozen=True)
class PointOpening:
    """A commitment opened at ``z`` to ``y`` with ``proof`` (valid or not)."""

    commitment: bytes
    z: bytes
    y: bytes
    proof: bytes

    def as_inputs(self) -> dict[str, Any]:
        return {"commitment": self.commitment, "z": self.z, "y": self.y, "proof": self.proof}


# ── Generators ───────────────────────────────────────────────────────────────


class ScalarFieldGenerator:
    """32-byte field element encodings."""

    def __init__(self, mutator: BitMutator) -> None:
        self.mutator = mutator

    def generate(self, cursor: ByteCursor, mode: Mode) -> bytes:
        raw = cursor.take_bytes(BYTES_PER_FIELD_ELEMENT)
        if mode is Mode.RANDOM:
            return raw
        canonical = canonicalize(raw)
        if mode is Mode.MUTATED:
            return self.mutator.mutated(canonical, draw_mutation_seed(cursor, canonical))
        return canonical


class BlobGenerator:
    """Blobs of ``field_elements_per_blob`` elements sharing one mode."""

    def __init__(
        self,
        config: GeneratorConfig,
        scalars: ScalarFieldGenerator,
        mutator: BitMutator,
    ) -> None:
        self.config = config
        self.scalars = scalars
        self.mutator = mutator

    @property
    def whole_blob_mutation(self) -> bool:
        return self.config.mutation_granularity is MutationGranularity.WHOLE_BLOB

    def generate(self, cursor: ByteCursor, mode: Mode) -> bytes:
        element_mode = mode
        if mode is Mode.MUTATED and self.whole_blob_mutation:
            element_mode = Mode.VALID

        layout = self.config.blob_layout
        if layout is BlobLayout.TILED:
            elements = self._tiled(cursor, element_mode)
        elif layout is BlobLayout.PARTIAL:
            elements = self._partial(cursor, element_mode)
        else:
            elements = self._full(cursor, element_mode)
        blob = b"".join(elements)

        if mode is Mode.MUTATED and self.whole_blob_mutation:
            blob = self.mutator.mutated(blob, draw_mutation_seed(cursor, blob))
        return blob

    def _full(self, cursor: ByteCursor, mode: Mode) -> list[bytes]:
        return [
            self.scalars.generate(cursor, mode)
            for _ in range(self.config.field_elements_per_blob)
        ]

    def _tiled(self, cursor: ByteCursor, mode: Mode) -> list[bytes]:
        return [self.scalars.generate(cursor, mode)] * self.config.field_elements_per_blob

    def _partial(self, cursor: ByteCursor, mode: Mode) -> list[bytes]:
        # The first slot must be drawn; its Exhausted propagates
        elements = [self.scalars.generate(cursor, mode)]
        while len(elements) < self.config.field_elements_per_blob:
            try:
                elements.append(self.scalars.generate(cursor, mode))
            except Exhausted:
                break
        filled = len(elements)
        elements.extend([ZERO_ELEMENT] * (self.config.field_elements_per_blob - filled))
        if filled < self.config.field_elements_per_blob:
            logger.debug("Partial blob: %d/%d slots filled", filled, self.config.field_elements_per_blob)
        return elements


class GroupElementGenerator:
    """48-byte compressed G1 encodings used as commitments and proofs.

    VALID encodings can only be obtained from a real implementation, so
    this generator holds the reference backend. Failures of that backend
    during derivation become :class:`GenerationFailed` (a skip, not a bug).
    """

    def __init__(
        self,
        reference: KzgBackend,
        blobs: BlobGenerator,
        scalars: ScalarFieldGenerator,
        mutator: BitMutator,
    ) -> None:
        self.reference = reference
        self.blobs = blobs
        self.scalars = scalars
        self.mutator = mutator

    def _derive(self, operation: Operation, **inputs: Any) -> Any:
        try:
            return getattr(self.reference, operation.value)(**inputs)
        except ImplementationError as exc:
            raise GenerationFailed(
                f"{self.reference.name} failed to derive {operation.value}: {exc.reason}"
            ) from exc

    def _finish(self, encoding: bytes, mode: Mode, cursor: ByteCursor) -> bytes:
        if mode is Mode.MUTATED:
            return self.mutator.mutated(encoding, draw_mutation_seed(cursor, encoding))
        return encoding

    def _valid_blob_commitment(self, cursor: ByteCursor) -> tuple[bytes, bytes]:
        blob = self.blobs.generate(cursor, Mode.VALID)
        return blob, self._derive(Operation.BLOB_TO_KZG_COMMITMENT, blob=blob)

    def blob_commitment(self, cursor: ByteCursor, mode: Mode) -> tuple[bytes, bytes]:
        """A blob and a commitment to it; only the commitment is mutated."""
        if mode is Mode.RANDOM:
            commitment = cursor.take_bytes(BYTES_PER_G1)
            return self.blobs.generate(cursor, Mode.RANDOM), commitment
        blob, commitment = self._valid_blob_commitment(cursor)
        return blob, self._finish(commitment, mode, cursor)

    def commitment(self, cursor: ByteCursor, mode: Mode) -> bytes:
        if mode is Mode.RANDOM:
            return cursor.take_bytes(BYTES_PER_G1)
        return self.blob_commitment(cursor, mode)[1]

    def proof(self, cursor: ByteCursor, mode: Mode) -> bytes:
        if mode is Mode.RANDOM:
            return cursor.take_bytes(BYTES_PER_G1)
        return self.blob_opening(cursor, mode).proof

    def blob_opening(self, cursor: ByteCursor, mode: Mode) -> BlobOpening:
        if mode is Mode.RANDOM:
            commitment = cursor.take_bytes(BYTES_PER_G1)
            proof = cursor.take_bytes(BYTES_PER_G1)
            return BlobOpening(self.blobs.generate(cursor, Mode.RANDOM), commitment, proof)

        # Proofs are derived from the unmutated commitment
        blob, commitment = self._valid_blob_commitment(cursor)
        proof = self._derive(Operation.COMPUTE_BLOB_KZG_PROOF, blob=blob, commitment=commitment)
        return BlobOpening(
            blob=blob,
            commitment=self._finish(commitment, mode, cursor),
            proof=self._finish(proof, mode, cursor),
        )

    def point_opening(self, cursor: ByteCursor, mode: Mode) -> PointOpening:
        if mode is Mode.RANDOM:
            return PointOpening(
                commitment=cursor.take_bytes(BYTES_PER_G1),
                z=self.scalars.generate(cursor, Mode.RANDOM),
                y=self.scalars.generate(cursor, Mode.RANDOM),
                proof=cursor.take_bytes(BYTES_PER_G1),
            )

        z = self.scalars.generate(cursor, Mode.VALID)
        blob, commitment = self._valid_blob_commitment(cursor)
        proof, y = self._derive(Operation.COMPUTE_KZG_PROOF, blob=blob, z=z)
        return PointOpening(
            commitment=self._finish(commitment, mode, cursor),
            z=z,
            y=y,
            proof=self._finish(proof, mode, cursor),
        )


class Generators:
    """All generators wired to one configuration and reference backend."""

    def __init__(self, config: GeneratorConfig, reference: KzgBackend) -> None:
        self.config = config
        self.mutator = BitMutator(config.mutation_rate)
        self.modes = ModeSelector(config.mode_policy)
        self.scalars = ScalarFieldGenerator(self.mutator)
        self.blobs = BlobGenerator(config, self.scalars, self.mutator)
        self.groups = GroupElementGenerator(reference, self.blobs, self.scalars, self.mutator)
