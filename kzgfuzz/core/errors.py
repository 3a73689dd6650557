"""Error taxonomy for the KZG differential fuzzer.

Two families of errors exist:

    Skip signals      raised while *deriving* inputs from fuzzer bytes.
                      The case is abandoned without running any assertion.
                        - Exhausted         cursor ran out of bytes
                        - GenerationFailed  reference library failed during derivation

    Comparison errors raised while *comparing* implementations.
                        - ImplementationError  typed failure of one implementation,
                                               recorded as an outcome and compared
                        - Inequivalence        implementations disagree (fatal)

SetupError is reserved for the initialization boundary (trusted setup
loading/release) and never reaches per-case logic.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable codes attached to every harness error."""

    EXHAUSTED = "EXHAUSTED"
    GENERATION_FAILED = "GENERATION_FAILED"
    IMPLEMENTATION_ERROR = "IMPLEMENTATION_ERROR"
    INEQUIVALENCE = "INEQUIVALENCE"
    SETUP_ERROR = "SETUP_ERROR"
    UNKNOWN_TARGET = "UNKNOWN_TARGET"


class KzgFuzzError(Exception):
    """Base class for all harness errors."""

    code: ErrorCode = ErrorCode.IMPLEMENTATION_ERROR

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code.value, "message": self.message}


# ── Skip signals ─────────────────────────────────────────────────────────────


class Exhausted(KzgFuzzError):
    """The byte cursor holds fewer bytes than requested."""

    code = ErrorCode.EXHAUSTED

    def __init__(self, requested: int, remaining: int) -> None:
        super().__init__(f"requested {requested} bytes, {remaining} remaining")
        self.requested = requested
        self.remaining = remaining


class GenerationFailed(KzgFuzzError):
    """A reference library call used for input derivation failed."""

    code = ErrorCode.GENERATION_FAILED


# ── Comparison errors ────────────────────────────────────────────────────────


class ImplementationError(KzgFuzzError):
    """An implementation under test rejected its input."""

    code = ErrorCode.IMPLEMENTATION_ERROR

    def __init__(self, implementation: str, operation: str, message: str) -> None:
        super().__init__(f"{implementation}.{operation}: {message}")
        self.implementation = implementation
        self.operation = operation
        self.reason = message


class Inequivalence(KzgFuzzError):
    """Two implementations disagree on the same logical input.

    Carries the full diagnostic context: the diff kind, the operation, the
    derived inputs and every implementation's outcome. ``input_bytes`` is
    attached by the case runner once the raw fuzzer input is known.
    """

    code = ErrorCode.INEQUIVALENCE

    def __init__(
        self,
        message: str,
        *,
        diff_type: str,
        operation: str,
        inputs: dict[str, Any],
        outcomes: list[dict[str, Any]],
    ) -> None:
        super().__init__(message)
        self.diff_type = diff_type
        self.operation = operation
        self.inputs = inputs
        self.outcomes = outcomes
        self.input_bytes: bytes = b""
        self.target: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "diff_type": self.diff_type,
            "operation": self.operation,
            "target": self.target,
            "input_bytes": self.input_bytes.hex(),
            "inputs": {k: _hexify(v) for k, v in self.inputs.items()},
            "outcomes": self.outcomes,
        }


class SetupError(KzgFuzzError):
    """Trusted-setup misuse or an unreadable setup file."""

    code = ErrorCode.SETUP_ERROR


class UnknownTarget(KzgFuzzError):
    code = ErrorCode.UNKNOWN_TARGET


def _hexify(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return [_hexify(v) for v in value]
    return value
