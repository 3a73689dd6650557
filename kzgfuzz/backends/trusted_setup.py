"""Trusted-setup text files in the c-kzg-4844 format.

Layout (whitespace separated)::

    n1
    n2
    <n1 hex-encoded compressed G1 points, Lagrange basis, natural order>
    <n2 hex-encoded compressed G2 points, monomial basis>
    <n1 hex-encoded compressed G1 points, monomial basis>   (optional)

``write_insecure_setup`` derives a setup from a *known* secret. Anyone
holding the secret can forge openings, so such files are for tests and
local development only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from py_ecc.bls.g2_primitives import G1_to_pubkey, G2_to_signature
from py_ecc.optimized_bls12_381 import G1, G2, multiply

from kzgfuzz.core.errors import SetupError
from kzgfuzz.core.field import compute_powers, compute_roots_of_unity, inverse, is_power_of_two
from kzgfuzz.core.types import BLS_MODULUS, BYTES_PER_G1, BYTES_PER_G2

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrustedSetup:
    """Raw compressed points of a KZG trusted setup."""

    g1_lagrange: tuple[bytes, ...]
    g2_monomial: tuple[bytes, ...]
    g1_monomial: tuple[bytes, ...] = ()

    @property
    def field_elements_per_blob(self) -> int:
        return len(self.g1_lagrange)

    def to_text(self) -> str:
        lines = [str(len(self.g1_lagrange)), str(len(self.g2_monomial))]
        lines.extend(p.hex() for p in self.g1_lagrange)
        lines.extend(p.hex() for p in self.g2_monomial)
        lines.extend(p.hex() for p in self.g1_monomial)
        return "\n".join(lines) + "\n"


def _decode_points(tokens: list[str], width: int, kind: str) -> tuple[bytes, ...]:
    points = []
    for token in tokens:
        try:
            point = bytes.fromhex(token)
        except ValueError as exc:
            raise SetupError(f"invalid hex in {kind} point: {token[:16]}…") from exc
        if len(point) != width:
            raise SetupError(f"{kind} point has {len(point)} bytes, expected {width}")
        points.append(point)
    return tuple(points)


def parse_trusted_setup(path: str | Path) -> TrustedSetup:
    """Parse and shape-check a trusted-setup file."""
    try:
        tokens = Path(path).read_text().split()
    except OSError as exc:
        raise SetupError(f"cannot read trusted setup {path}: {exc}") from exc

    if len(tokens) < 2:
        raise SetupError(f"trusted setup {path} is missing its point counts")
    try:
        n1, n2 = int(tokens[0]), int(tokens[1])
    except ValueError as exc:
        raise SetupError(f"trusted setup {path} has non-numeric point counts") from exc

    if not is_power_of_two(n1):
        raise SetupError(f"G1 point count {n1} is not a power of two")
    if n2 < 2:
        raise SetupError(f"G2 point count {n2} is too small (need at least 2)")

    body = tokens[2:]
    if len(body) not in (n1 + n2, 2 * n1 + n2):
        raise SetupError(
            f"trusted setup {path} has {len(body)} points, expected {n1 + n2} or {2 * n1 + n2}"
        )

    return TrustedSetup(
        g1_lagrange=_decode_points(body[:n1], BYTES_PER_G1, "G1 Lagrange"),
        g2_monomial=_decode_points(body[n1:n1 + n2], BYTES_PER_G2, "G2 monomial"),
        g1_monomial=_decode_points(body[n1 + n2:], BYTES_PER_G1, "G1 monomial"),
    )


def generate_insecure_setup(secret: int, size: int, g2_size: int = 2) -> TrustedSetup:
    """Build a setup of ``size`` Lagrange points from a known ``secret``."""
    if not is_power_of_two(size):
        raise ValueError(f"setup size must be a power of two, got {size}")
    s = secret % BLS_MODULUS
    roots = compute_roots_of_unity(size)
    if s in roots:
        raise ValueError("secret must not be a root of unity of the evaluation domain")

    # L_i(s) = w_i / n * (s^n - 1) / (s - w_i)
    vanishing = (pow(s, size, BLS_MODULUS) - 1) % BLS_MODULUS
    inv_size = inverse(size)
    lagrange = [
        w * inv_size % BLS_MODULUS * vanishing % BLS_MODULUS * inverse(s - w) % BLS_MODULUS
        for w in roots
    ]

    s_powers = compute_powers(s, max(size, g2_size))
    return TrustedSetup(
        g1_lagrange=tuple(G1_to_pubkey(multiply(G1, l)) for l in lagrange),
        g2_monomial=tuple(G2_to_signature(multiply(G2, p)) for p in s_powers[:g2_size]),
        g1_monomial=tuple(G1_to_pubkey(multiply(G1, p)) for p in s_powers[:size]),
    )


def write_insecure_setup(path: str | Path, secret: int, size: int, g2_size: int = 2) -> TrustedSetup:
    setup = generate_insecure_setup(secret, size, g2_size)
    Path(path).write_text(setup.to_text())
    logger.warning(
        "Wrote INSECURE trusted setup (%d G1 points) to %s; do not use outside development",
        size,
        path,
    )
    return setup
