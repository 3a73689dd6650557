"""Differential oracle for KZG implementations.

Runs one logical operation on every implementation and compares outcomes:

  1. Success alignment: all implementations accept, or all reject
  2. Output equality:   on mutual success, serialized outputs are byte-equal
  3. Identity guard:    optionally, a commitment/proof output must not be
                         the G1 identity (catches "return infinity on
                         internal failure" bugs)
  4. Round trip:        for decoder targets, accepted G1 bytes must
                         re-encode unchanged

The first implementation is the reference side of every comparison. Any
violation raises :class:`Inequivalence` with the full outcome set; nothing
is retried or suppressed.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence

from kzgfuzz.backends.base import KzgBackend
from kzgfuzz.core.errors import ImplementationError, Inequivalence
from kzgfuzz.core.types import BYTES_PER_G1, G1_IDENTITY, Operation

logger = logging.getLogger(__name__)


# ── Types ────────────────────────────────────────────────────────────────────


class DiffType(str, Enum):
    """Kinds of divergence the oracle reports."""

    SUCCESS_DIVERGENCE = "success_divergence"  # one rejects, the other doesn't
    OUTPUT_MISMATCH = "output_mismatch"
    IDENTITY_OUTPUT = "identity_output"
    ROUNDTRIP_MISMATCH = "roundtrip_mismatch"  # decode then encode changed the bytes


@dataclass(frozen=True)
class Outcome:
    """Result of one implementation on one input."""

    implementation: str
    success: bool
    output: bytes = b""
    error: str = ""
    execution_time_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "implementation": self.implementation,
            "success": self.success,
            "output": self.output.hex(),
            "error": self.error,
            "execution_time_ms": round(self.execution_time_ms, 3),
        }


@dataclass(frozen=True)
class Verdict:
    """Outcomes of all implementations for one operation, in order."""

    operation: Operation
    outcomes: tuple[Outcome, ...] = field(default_factory=tuple)

    @property
    def all_succeeded(self) -> bool:
        return all(o.success for o in self.outcomes)

    @property
    def passed(self) -> bool:
        if not self.outcomes:
            return True
        ref = self.outcomes[0]
        return all(
            o.success == ref.success and (not ref.success or o.output == ref.output)
            for o in self.outcomes[1:]
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation.value,
            "passed": self.passed,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


def serialize_output(result: Any) -> bytes:
    """Flatten an operation result into the bytes compared across implementations."""
    if isinstance(result, bool):
        return b"\x01" if result else b"\x00"
    if isinstance(result, (bytes, bytearray)):
        return bytes(result)
    if isinstance(result, tuple):
        return b"".join(serialize_output(part) for part in result)
    raise TypeError(f"cannot serialize output of type {type(result).__name__}")


# ── Oracle ───────────────────────────────────────────────────────────────────


class DifferentialOracle:
    """Compare two or more KZG implementations operation by operation."""

    def __init__(self, implementations: Sequence[KzgBackend]) -> None:
        if len(implementations) < 2:
            raise ValueError("Need at least 2 implementations for differential fuzzing")
        self.implementations = tuple(implementations)

    def execute(self, implementation: KzgBackend, operation: Operation, inputs: Mapping[str, Any]) -> Outcome:
        """Run ``operation`` on one implementation, capturing typed failures."""
        start = time.perf_counter()
        try:
            result = getattr(implementation, operation.value)(**inputs)
        except ImplementationError as exc:
            logger.debug(
                "%s rejected %s: %s",
                implementation.name,
                operation.value,
                exc.reason,
                extra={"implementation": implementation.name, "operation": operation.value},
            )
            return Outcome(
                implementation=implementation.name,
                success=False,
                error=exc.reason,
                execution_time_ms=(time.perf_counter() - start) * 1000,
            )
        return Outcome(
            implementation=implementation.name,
            success=True,
            output=serialize_output(result),
            execution_time_ms=(time.perf_counter() - start) * 1000,
        )

    def compare(
        self,
        operation: Operation,
        inputs: Mapping[str, Any],
        *,
        forbid_identity: bool = False,
    ) -> Verdict:
        """Run ``operation`` everywhere and enforce equivalence.

        Raises:
            Inequivalence: on success divergence, output mismatch, or an
                identity output when ``forbid_identity`` is set.
        """
        outcomes = tuple(self.execute(impl, operation, inputs) for impl in self.implementations)
        verdict = Verdict(operation=operation, outcomes=outcomes)
        self._check(verdict, inputs, forbid_identity)
        return verdict

    def check_g1_roundtrip(self, verdict: Verdict, encoding: bytes, inputs: Mapping[str, Any]) -> None:
        """Require accepted G1 bytes to re-encode unchanged.

        Only implementations exposing ``g1_roundtrip`` take part; call this
        after every implementation has accepted ``encoding``.
        """
        for impl in self.implementations:
            roundtrip = getattr(impl, "g1_roundtrip", None)
            if roundtrip is None:
                continue
            reencoded = roundtrip(encoding)
            if reencoded != encoding:
                self._fail(
                    DiffType.ROUNDTRIP_MISMATCH,
                    f"'{impl.name}' re-encodes {encoding.hex()} as {reencoded.hex()}",
                    verdict,
                    inputs,
                )

    def _check(self, verdict: Verdict, inputs: Mapping[str, Any], forbid_identity: bool) -> None:
        ref = verdict.outcomes[0]

        for other in verdict.outcomes[1:]:
            # Check 1: success alignment
            if ref.success != other.success:
                self._fail(
                    DiffType.SUCCESS_DIVERGENCE,
                    f"'{ref.implementation}' {'succeeds' if ref.success else 'fails'} "
                    f"but '{other.implementation}' {'succeeds' if other.success else 'fails'} "
                    f"on {verdict.operation.value}",
                    verdict,
                    inputs,
                )

            # Check 2: byte-exact output
            if ref.success and ref.output != other.output:
                self._fail(
                    DiffType.OUTPUT_MISMATCH,
                    f"'{ref.implementation}' and '{other.implementation}' return different "
                    f"outputs for {verdict.operation.value}",
                    verdict,
                    inputs,
                )

        # Check 3: identity regression guard
        if forbid_identity and ref.success:
            for outcome in verdict.outcomes:
                if outcome.output[:BYTES_PER_G1] == G1_IDENTITY:
                    self._fail(
                        DiffType.IDENTITY_OUTPUT,
                        f"'{outcome.implementation}' returned the identity point from "
                        f"{verdict.operation.value} on an input that cannot produce it",
                        verdict,
                        inputs,
                    )

    @staticmethod
    def _fail(diff_type: DiffType, message: str, verdict: Verdict, inputs: Mapping[str, Any]) -> None:
        exc = Inequivalence(
            message,
            diff_type=diff_type.value,
            operation=verdict.operation.value,
            inputs=dict(inputs),
            outcomes=[o.to_dict() for o in verdict.outcomes],
        )
        details = exc.to_dict()
        logger.error(
            "Inequivalence: %s",
            message,
            extra={
                "operation": exc.operation,
                "diff_type": exc.diff_type,
                "inputs": details["inputs"],
                "outcomes": details["outcomes"],
            },
        )
        raise exc


def compare(
    operation: Operation,
    implementation_a: KzgBackend,
    implementation_b: KzgBackend,
    inputs: Mapping[str, Any],
    *,
    forbid_identity: bool = False,
) -> Verdict:
    """Pairwise form of :meth:`DifferentialOracle.compare`."""
    oracle = DifferentialOracle([implementation_a, implementation_b])
    return oracle.compare(operation, inputs, forbid_identity=forbid_identity)
