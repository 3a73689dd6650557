"""Fuzz targets: one per operation under test, plus decoder targets.

A target turns a :class:`ByteCursor` into operation inputs using the
context's generators, then hands them to the oracle. :func:`run_case`
wraps a target for a single fuzzer input:

    Exhausted / GenerationFailed  -> SKIPPED (no assertion ran)
    Inequivalence                 -> propagates, with the raw input attached
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from kzgfuzz.core.errors import Exhausted, GenerationFailed, Inequivalence, UnknownTarget
from kzgfuzz.core.types import G1_IDENTITY, CaseStatus, Mode, Operation, is_all_zero, is_constant_blob
from kzgfuzz.fuzzer.byte_cursor import ByteCursor
from kzgfuzz.fuzzer.differential import Verdict
from kzgfuzz.fuzzer.generators import ZERO_ELEMENT
from kzgfuzz.fuzzer.harness import HarnessContext

logger = logging.getLogger(__name__)

TargetFn = Callable[[HarnessContext, ByteCursor], Verdict]


@dataclass(frozen=True)
class FuzzTarget:
    name: str
    operation: Operation
    description: str
    fn: TargetFn


TARGETS: dict[str, FuzzTarget] = {}


def fuzz_target(
    operation: Operation, description: str, name: str | None = None
) -> Callable[[TargetFn], TargetFn]:
    """Register a target under ``name``, or its operation name by default."""

    def decorator(fn: TargetFn) -> TargetFn:
        key = name or operation.value
        TARGETS[key] = FuzzTarget(key, operation, description, fn)
        return fn

    return decorator


def get_target(name: str) -> FuzzTarget:
    try:
        return TARGETS[name]
    except KeyError:
        raise UnknownTarget(
            f"unknown target '{name}' (available: {', '.join(sorted(TARGETS))})"
        ) from None


# ── Targets ──────────────────────────────────────────────────────────────────


@fuzz_target(Operation.BLOB_TO_KZG_COMMITMENT, "Commit to a generated blob")
def blob_to_kzg_commitment(ctx: HarnessContext, cursor: ByteCursor) -> Verdict:
    gens = ctx.generators
    mode = gens.modes.select(cursor)
    blob = gens.blobs.generate(cursor, mode)
    return ctx.oracle.compare(
        Operation.BLOB_TO_KZG_COMMITMENT,
        {"blob": blob},
        forbid_identity=not is_all_zero(blob),
    )


@fuzz_target(Operation.COMPUTE_KZG_PROOF, "Open a generated blob at a generated point")
def compute_kzg_proof(ctx: HarnessContext, cursor: ByteCursor) -> Verdict:
    gens = ctx.generators
    mode = gens.modes.select(cursor)
    z = gens.scalars.generate(cursor, mode)
    blob = gens.blobs.generate(cursor, mode)
    # A constant polynomial has a zero quotient, so its proof is the identity
    return ctx.oracle.compare(
        Operation.COMPUTE_KZG_PROOF,
        {"blob": blob, "z": z},
        forbid_identity=not is_constant_blob(blob),
    )


@fuzz_target(Operation.COMPUTE_BLOB_KZG_PROOF, "Blob proof for a blob and a (possibly broken) commitment")
def compute_blob_kzg_proof(ctx: HarnessContext, cursor: ByteCursor) -> Verdict:
    gens = ctx.generators
    mode = gens.modes.select(cursor)
    blob, commitment = gens.groups.blob_commitment(cursor, mode)
    return ctx.oracle.compare(
        Operation.COMPUTE_BLOB_KZG_PROOF,
        {"blob": blob, "commitment": commitment},
        forbid_identity=not is_constant_blob(blob),
    )


@fuzz_target(Operation.VERIFY_KZG_PROOF, "Verify a point-evaluation opening")
def verify_kzg_proof(ctx: HarnessContext, cursor: ByteCursor) -> Verdict:
    gens = ctx.generators
    mode = gens.modes.select(cursor)
    opening = gens.groups.point_opening(cursor, mode)
    return ctx.oracle.compare(Operation.VERIFY_KZG_PROOF, opening.as_inputs())


@fuzz_target(Operation.VERIFY_BLOB_KZG_PROOF, "Verify a blob proof")
def verify_blob_kzg_proof(ctx: HarnessContext, cursor: ByteCursor) -> Verdict:
    gens = ctx.generators
    mode = gens.modes.select(cursor)
    opening = gens.groups.blob_opening(cursor, mode)
    return ctx.oracle.compare(Operation.VERIFY_BLOB_KZG_PROOF, opening.as_inputs())


@fuzz_target(Operation.VERIFY_BLOB_KZG_PROOF_BATCH, "Batch-verify 1..N blob proofs, each with its own mode")
def verify_blob_kzg_proof_batch(ctx: HarnessContext, cursor: ByteCursor) -> Verdict:
    gens = ctx.generators
    count = 1 + cursor.take_byte() % gens.config.max_batch_size

    blobs: list[bytes] = []
    commitments: list[bytes] = []
    proofs: list[bytes] = []
    modes: list[Mode] = []
    for _ in range(count):
        try:
            mode = gens.modes.select(cursor)
            opening = gens.groups.blob_opening(cursor, mode)
        except Exhausted:
            if not blobs:
                raise
            break
        blobs.append(opening.blob)
        commitments.append(opening.commitment)
        proofs.append(opening.proof)
        modes.append(mode)

    logger.debug("Batch of %d/%d triples: %s", len(blobs), count, [m.value for m in modes])
    return ctx.oracle.compare(
        Operation.VERIFY_BLOB_KZG_PROOF_BATCH,
        {"blobs": blobs, "commitments": commitments, "proofs": proofs},
    )


# ── Decoder targets ──────────────────────────────────────────────────────────
#
# Neither library exposes its decoders directly, so acceptance is read off a
# point-evaluation check that decodes the value under test.


@fuzz_target(
    Operation.VERIFY_KZG_PROOF, "Decode G1 bytes as commitment and proof", name="bytes_to_g1"
)
def bytes_to_g1(ctx: HarnessContext, cursor: ByteCursor) -> Verdict:
    gens = ctx.generators
    mode = gens.modes.select(cursor)
    encoding = gens.groups.commitment(cursor, mode)
    inputs = {"commitment": encoding, "z": ZERO_ELEMENT, "y": ZERO_ELEMENT, "proof": encoding}
    verdict = ctx.oracle.compare(Operation.VERIFY_KZG_PROOF, inputs)
    if verdict.all_succeeded:
        ctx.oracle.check_g1_roundtrip(verdict, encoding, inputs)
    return verdict


@fuzz_target(
    Operation.VERIFY_KZG_PROOF, "Decode a scalar as evaluation point and value", name="bytes_to_bls_field"
)
def bytes_to_bls_field(ctx: HarnessContext, cursor: ByteCursor) -> Verdict:
    gens = ctx.generators
    mode = gens.modes.select(cursor)
    scalar = gens.scalars.generate(cursor, mode)
    return ctx.oracle.compare(
        Operation.VERIFY_KZG_PROOF,
        {"commitment": G1_IDENTITY, "z": scalar, "y": scalar, "proof": G1_IDENTITY},
    )


# ── Case runner ──────────────────────────────────────────────────────────────


@dataclass
class CaseResult:
    """Outcome of running one fuzzer input through one target."""

    target: str
    status: CaseStatus
    verdict: Verdict | None = None
    reason: str = ""
    consumed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "status": self.status.value,
            "reason": self.reason,
            "consumed": self.consumed,
            "verdict": self.verdict.to_dict() if self.verdict else None,
        }


def run_case(target: FuzzTarget | str, data: bytes, ctx: HarnessContext) -> CaseResult:
    """Run one fuzzer input through ``target``."""
    if isinstance(target, str):
        target = get_target(target)
    cursor = ByteCursor(data)

    try:
        verdict = target.fn(ctx, cursor)
    except (Exhausted, GenerationFailed) as exc:
        logger.debug(
            "Skipped case: %s",
            exc.message,
            extra={"target": target.name, "case_status": CaseStatus.SKIPPED.value, "input_len": len(data)},
        )
        return CaseResult(
            target=target.name,
            status=CaseStatus.SKIPPED,
            reason=f"{exc.code.value}: {exc.message}",
            consumed=cursor.offset,
        )
    except Inequivalence as exc:
        exc.input_bytes = bytes(data)
        exc.target = target.name
        logger.error(
            "Finding on %s (%s)",
            target.name,
            exc.diff_type,
            extra={
                "target": target.name,
                "diff_type": exc.diff_type,
                "case_status": CaseStatus.FAILED.value,
                "input_len": len(data),
                "input_bytes": exc.input_bytes.hex(),
            },
        )
        raise

    return CaseResult(
        target=target.name,
        status=CaseStatus.PASSED,
        verdict=verdict,
        consumed=cursor.offset,
    )
