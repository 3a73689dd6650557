"""Tests for kzgfuzz.fuzzer.generators: three-mode input derivation."""

from __future__ import annotations

import random
from unittest.mock import patch

import pytest

from kzgfuzz.core.config import Settings
from kzgfuzz.core.errors import Exhausted, GenerationFailed, ImplementationError
from kzgfuzz.core.field import canonicalize
from kzgfuzz.core.types import (
    BLS_MODULUS,
    BlobLayout,
    Mode,
    ModePolicy,
    MutationGranularity,
    is_canonical,
    is_constant_blob,
    split_elements,
)
from kzgfuzz.fuzzer.bit_mutator import BitMutator
from kzgfuzz.fuzzer.byte_cursor import ByteCursor
from kzgfuzz.fuzzer.generators import (
    ZERO_ELEMENT,
    GeneratorConfig,
    Generators,
    ModeSelector,
    draw_mutation_seed,
)
from kzgfuzz.tests.conftest import SMALL_N, blob_of, element

OVERSIZED = b"\xff" * 32  # > modulus
SEED = (77).to_bytes(8, "little")


def _generators(reference, **config) -> Generators:
    config.setdefault("field_elements_per_blob", SMALL_N)
    return Generators(GeneratorConfig(**config), reference)


# ── Mode selection ───────────────────────────────────────────────────────────


class TestModeSelector:
    def test_three_way(self):
        selector = ModeSelector(ModePolicy.THREE_WAY)
        assert [selector.mode_for(s) for s in range(4)] == [
            Mode.RANDOM, Mode.VALID, Mode.MUTATED, Mode.RANDOM,
        ]

    def test_two_way_never_mutates(self):
        selector = ModeSelector(ModePolicy.TWO_WAY)
        assert {selector.mode_for(s) for s in range(10)} == {Mode.RANDOM, Mode.VALID}
        assert selector.mode_for(2) is Mode.RANDOM

    def test_select_draws_uint64(self):
        cursor = ByteCursor((5).to_bytes(8, "little") + b"rest")
        assert ModeSelector().select(cursor) is Mode.MUTATED
        assert cursor.offset == 8

    def test_select_exhausted(self):
        with pytest.raises(Exhausted):
            ModeSelector().select(ByteCursor(b"\x00" * 7))


class TestMutationSeed:
    def test_drawn_from_cursor(self):
        assert draw_mutation_seed(ByteCursor(SEED), b"x") == 77

    def test_fallback_is_deterministic(self):
        a = draw_mutation_seed(ByteCursor(b""), b"fallback")
        b = draw_mutation_seed(ByteCursor(b""), b"fallback")
        assert a == b == random.Random(b"fallback").getrandbits(63)


class TestGeneratorConfig:
    def test_from_settings(self):
        settings = Settings(
            mode_policy="two_way",
            blob_layout="tiled",
            mutation_granularity="whole_blob",
            mutation_rate=0.05,
            max_batch_size=3,
        )
        config = GeneratorConfig.from_settings(settings, 16)
        assert config.field_elements_per_blob == 16
        assert config.mode_policy is ModePolicy.TWO_WAY
        assert config.blob_layout is BlobLayout.TILED
        assert config.mutation_granularity is MutationGranularity.WHOLE_BLOB
        assert config.mutation_rate == 0.05
        assert config.max_batch_size == 3


# ── Scalars ──────────────────────────────────────────────────────────────────


class TestScalarFieldGenerator:
    def test_random_returns_raw(self, fake_ctx):
        scalars = fake_ctx.generators.scalars
        assert scalars.generate(ByteCursor(OVERSIZED), Mode.RANDOM) == OVERSIZED

    def test_valid_is_canonical_reduction(self, fake_ctx):
        scalars = fake_ctx.generators.scalars
        value = scalars.generate(ByteCursor(OVERSIZED), Mode.VALID)
        assert value == canonicalize(OVERSIZED)
        assert is_canonical(value)

    def test_mutated_applies_mutator_with_cursor_seed(self, fake_ctx):
        scalars = fake_ctx.generators.scalars
        cursor = ByteCursor(OVERSIZED + SEED)
        value = scalars.generate(cursor, Mode.MUTATED)
        assert value == BitMutator().mutated(canonicalize(OVERSIZED), 77)
        assert cursor.remaining == 0

    def test_mutated_falls_back_when_exhausted(self, fake_ctx):
        scalars = fake_ctx.generators.scalars
        canonical = canonicalize(OVERSIZED)
        value = scalars.generate(ByteCursor(OVERSIZED), Mode.MUTATED)
        expected_seed = random.Random(canonical).getrandbits(63)
        assert value == BitMutator().mutated(canonical, expected_seed)

    @pytest.mark.parametrize("mode", list(Mode))
    def test_short_input_exhausts(self, fake_ctx, mode):
        with pytest.raises(Exhausted):
            fake_ctx.generators.scalars.generate(ByteCursor(b"\x00" * 31), mode)


# ── Blobs ────────────────────────────────────────────────────────────────────


class TestBlobGenerator:
    def test_full_valid_blob(self, fake_ctx):
        raw = OVERSIZED * SMALL_N
        blob = fake_ctx.generators.blobs.generate(ByteCursor(raw), Mode.VALID)
        assert len(blob) == SMALL_N * 32
        assert all(is_canonical(e) for e in split_elements(blob))

    def test_full_random_blob_is_raw(self, fake_ctx):
        raw = bytes(range(128))
        assert fake_ctx.generators.blobs.generate(ByteCursor(raw), Mode.RANDOM) == raw

    def test_full_blob_needs_every_slot(self, fake_ctx):
        with pytest.raises(Exhausted):
            fake_ctx.generators.blobs.generate(ByteCursor(b"\x00" * 32 * (SMALL_N - 1)), Mode.VALID)

    def test_full_mutated_blob_mutates_each_element(self, fake_ctx):
        raw = b"".join(element(i + 1) + (i + 10).to_bytes(8, "little") for i in range(SMALL_N))
        blob = fake_ctx.generators.blobs.generate(ByteCursor(raw), Mode.MUTATED)
        expected = b"".join(
            BitMutator().mutated(element(i + 1), i + 10) for i in range(SMALL_N)
        )
        assert blob == expected

    def test_tiled_repeats_one_element(self, reference_free_gens):
        gens = reference_free_gens(blob_layout=BlobLayout.TILED)
        cursor = ByteCursor(element(9) + b"unused")
        blob = gens.blobs.generate(cursor, Mode.VALID)
        assert blob == element(9) * SMALL_N
        assert is_constant_blob(blob)
        assert cursor.offset == 32

    def test_partial_zero_fills(self, reference_free_gens):
        gens = reference_free_gens(blob_layout=BlobLayout.PARTIAL)
        blob = gens.blobs.generate(ByteCursor(element(1) + element(2) + b"\x01"), Mode.VALID)
        assert split_elements(blob) == [element(1), element(2), ZERO_ELEMENT, ZERO_ELEMENT]

    def test_partial_needs_one_slot(self, reference_free_gens):
        gens = reference_free_gens(blob_layout=BlobLayout.PARTIAL)
        with pytest.raises(Exhausted):
            gens.blobs.generate(ByteCursor(b"\x00" * 31), Mode.VALID)

    def test_whole_blob_mutation(self, reference_free_gens):
        gens = reference_free_gens(mutation_granularity=MutationGranularity.WHOLE_BLOB)
        elements = [OVERSIZED] * SMALL_N
        blob = gens.blobs.generate(ByteCursor(b"".join(elements) + SEED), Mode.MUTATED)
        canonical = canonicalize(OVERSIZED) * SMALL_N
        assert blob == BitMutator().mutated(canonical, 77)

    def test_whole_blob_mode_leaves_valid_untouched(self, reference_free_gens):
        gens = reference_free_gens(mutation_granularity=MutationGranularity.WHOLE_BLOB)
        blob = gens.blobs.generate(ByteCursor(OVERSIZED * SMALL_N), Mode.VALID)
        assert blob == canonicalize(OVERSIZED) * SMALL_N


@pytest.fixture
def reference_free_gens(fake_pair):
    """Generators over the first fake with per-test configuration."""

    def _make(**config) -> Generators:
        return _generators(fake_pair[0], **config)

    return _make


# ── Group elements ───────────────────────────────────────────────────────────


class TestGroupElementGenerator:
    def test_random_commitment_is_raw(self, fake_ctx):
        raw = bytes(range(48))
        assert fake_ctx.generators.groups.commitment(ByteCursor(raw), Mode.RANDOM) == raw

    def test_valid_commitment_comes_from_reference(self, fake_ctx):
        blob = blob_of(1, 2, 3, 4)
        commitment = fake_ctx.generators.groups.commitment(ByteCursor(blob), Mode.VALID)
        assert commitment == fake_ctx.reference.blob_to_kzg_commitment(blob)

    def test_mutated_commitment_is_near_valid(self, fake_ctx):
        blob = blob_of(1, 2, 3, 4)
        valid = fake_ctx.reference.blob_to_kzg_commitment(blob)
        mutated = fake_ctx.generators.groups.commitment(ByteCursor(blob + SEED), Mode.MUTATED)
        assert mutated == BitMutator().mutated(valid, 77)

    def test_valid_blob_commitment_pair(self, fake_ctx):
        blob = blob_of(5, 6, 7, 8)
        got_blob, commitment = fake_ctx.generators.groups.blob_commitment(ByteCursor(blob), Mode.VALID)
        assert got_blob == blob
        assert commitment == fake_ctx.reference.blob_to_kzg_commitment(blob)

    def test_random_blob_commitment_draws_commitment_first(self, fake_ctx):
        raw = b"\xaa" * 48 + b"\xbb" * 32 * SMALL_N
        blob, commitment = fake_ctx.generators.groups.blob_commitment(ByteCursor(raw), Mode.RANDOM)
        assert commitment == b"\xaa" * 48
        assert blob == b"\xbb" * 32 * SMALL_N

    def test_valid_proof_verifies(self, fake_ctx):
        blob = blob_of(1, 1, 2, 3)
        proof = fake_ctx.generators.groups.proof(ByteCursor(blob), Mode.VALID)
        commitment = fake_ctx.reference.blob_to_kzg_commitment(blob)
        assert fake_ctx.reference.verify_blob_kzg_proof(blob, commitment, proof) is True

    def test_valid_blob_opening_verifies_everywhere(self, fake_ctx):
        opening = fake_ctx.generators.groups.blob_opening(ByteCursor(blob_of(9, 8, 7, 6)), Mode.VALID)
        for impl in fake_ctx.implementations:
            assert impl.verify_blob_kzg_proof(**opening.as_inputs()) is True

    def test_valid_point_opening_verifies(self, fake_ctx):
        opening = fake_ctx.generators.groups.point_opening(
            ByteCursor(element(42) + blob_of(1, 2, 3, 4)), Mode.VALID
        )
        assert opening.z == element(42)
        for impl in fake_ctx.implementations:
            assert impl.verify_kzg_proof(**opening.as_inputs()) is True

    def test_random_point_opening_is_raw(self, fake_ctx):
        raw = b"\x01" * 48 + b"\x02" * 32 + b"\x03" * 32 + b"\x04" * 48
        opening = fake_ctx.generators.groups.point_opening(ByteCursor(raw), Mode.RANDOM)
        assert opening.as_inputs() == {
            "commitment": b"\x01" * 48,
            "z": b"\x02" * 32,
            "y": b"\x03" * 32,
            "proof": b"\x04" * 48,
        }

    def test_mutated_opening_keeps_blob_valid(self, fake_ctx):
        blob = blob_of(1, 2, 3, 4)
        opening = fake_ctx.generators.groups.blob_opening(
            ByteCursor(blob + SEED + (78).to_bytes(8, "little")), Mode.MUTATED
        )
        assert opening.blob == blob
        valid_commitment = fake_ctx.reference.blob_to_kzg_commitment(blob)
        valid_proof = fake_ctx.reference.compute_blob_kzg_proof(blob, valid_commitment)
        assert opening.commitment == BitMutator().mutated(valid_commitment, 77)
        assert opening.proof == BitMutator().mutated(valid_proof, 78)

    def test_reference_failure_is_generation_failed(self, fake_ctx):
        failure = ImplementationError("fake_a", "blob_to_kzg_commitment", "boom")
        with patch.object(fake_ctx.reference, "blob_to_kzg_commitment", side_effect=failure):
            with pytest.raises(GenerationFailed, match="boom"):
                fake_ctx.generators.groups.commitment(ByteCursor(blob_of(1, 2, 3, 4)), Mode.VALID)

    def test_valid_values_stay_in_field(self, fake_ctx):
        z = fake_ctx.generators.scalars.generate(ByteCursor(b"\xff" * 32), Mode.VALID)
        assert int.from_bytes(z, "big") < BLS_MODULUS
