"""Pure-Python EIP-4844 KZG built on ``py_ecc``'s BLS12-381 arithmetic.

Follows the consensus-layer polynomial-commitment algorithms:

    commitment  C = sum_i p_i * [L_i(s)]_1          (bit-reversed Lagrange basis)
    opening     q(X) = (p(X) - y) / (X - z),  proof = [q(s)]_1
    check       e(C - [y]_1, -[1]_2) * e(proof, [s]_2 - [z]_2) == 1
    blob proof  z = H(domain || n || blob || C)      (Fiat-Shamir)
    batch       random linear combination with r = H(domain || n || k || transcript)

Slow (a full 4096-element commitment is thousands of scalar multiplications)
but independent of any C library, which is what makes it a useful second
opinion. ``g1_roundtrip`` additionally exposes point decompression and
recompression.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Sequence

from py_ecc.bls.g2_primitives import G1_to_pubkey, is_inf, pubkey_to_G1, signature_to_G2, subgroup_check
from py_ecc.optimized_bls12_381 import FQ12, G1, G2, Z1, add, final_exponentiate, multiply, neg, pairing

from kzgfuzz.backends.base import KzgBackend
from kzgfuzz.backends.trusted_setup import parse_trusted_setup
from kzgfuzz.core.errors import ImplementationError, SetupError
from kzgfuzz.core.field import (
    bit_reversal_permutation,
    bls_field_to_bytes,
    bytes_to_bls_field,
    compute_powers,
    compute_roots_of_unity,
    hash_to_bls_field,
    inverse,
)
from kzgfuzz.core.types import (
    BLS_MODULUS,
    BYTES_PER_G1,
    G1_IDENTITY,
    Operation,
    split_elements,
)

logger = logging.getLogger(__name__)

FIAT_SHAMIR_PROTOCOL_DOMAIN = b"FSBLOBVERIFY_V1_"
RANDOM_CHALLENGE_KZG_BATCH_DOMAIN = b"RCKZGBATCH___V1_"

G1Point = Any  # opaque py_ecc optimized point
G2Point = Any


def g1_lincomb(points: Sequence[G1Point], scalars: Sequence[int]) -> G1Point:
    result = Z1
    for point, scalar in zip(points, scalars):
        if scalar:
            result = add(result, multiply(point, scalar))
    return result


def pairing_check(pairs: Sequence[tuple[G1Point, G2Point]]) -> bool:
    """True iff the product of e(P_i, Q_i) is the identity in GT."""
    acc = FQ12.one()
    for p, q in pairs:
        acc = acc * pairing(q, p, final_exponentiate=False)
    return final_exponentiate(acc) == FQ12.one()


class ReferenceBackend(KzgBackend):
    """EIP-4844 KZG over py_ecc, parameterized by the loaded setup size."""

    name = "reference"

    def __init__(self) -> None:
        super().__init__()
        self._g1_lagrange_brp: list[G1Point] = []
        self._s_g2: G2Point = None
        self._roots_brp: list[int] = []
        self._root_index: dict[int, int] = {}

    # ── Setup ────────────────────────────────────────────────────────────

    def _load(self, path: Path) -> int:
        setup = parse_trusted_setup(path)
        n = setup.field_elements_per_blob
        try:
            g1_lagrange = [pubkey_to_G1(p) for p in setup.g1_lagrange]
            self._s_g2 = signature_to_G2(setup.g2_monomial[1])
            roots = compute_roots_of_unity(n)
        except ValueError as exc:
            raise SetupError(f"invalid trusted setup {path}: {exc}") from exc

        self._g1_lagrange_brp = bit_reversal_permutation(g1_lagrange)
        self._roots_brp = bit_reversal_permutation(roots)
        self._root_index = {w: i for i, w in enumerate(self._roots_brp)}
        return n

    def _release(self) -> None:
        self._g1_lagrange_brp = []
        self._s_g2 = None
        self._roots_brp = []
        self._root_index = {}

    def _call(self, operation: Operation, fn: Callable[..., Any], *args: Any) -> Any:
        if not self._loaded:
            raise SetupError(f"{self.name}: trusted setup isn't loaded")
        try:
            return fn(*args)
        except (ValueError, ZeroDivisionError) as exc:
            raise ImplementationError(self.name, operation.value, str(exc)) from exc

    # ── Decoding ─────────────────────────────────────────────────────────

    def _blob_to_polynomial(self, blob: bytes) -> list[int]:
        if len(blob) != self.bytes_per_blob:
            raise ValueError(f"blob has {len(blob)} bytes, expected {self.bytes_per_blob}")
        return [bytes_to_bls_field(e) for e in split_elements(blob)]

    @staticmethod
    def _to_g1(encoding: bytes) -> G1Point:
        """Decompress and subgroup-check a commitment or proof."""
        if len(encoding) != BYTES_PER_G1:
            raise ValueError(f"G1 encoding has {len(encoding)} bytes, expected {BYTES_PER_G1}")
        if encoding == G1_IDENTITY:
            return Z1
        point = pubkey_to_G1(encoding)
        # Only the canonical infinity encoding above is accepted
        if is_inf(point):
            raise ValueError("non-canonical encoding of the point at infinity")
        if not subgroup_check(point):
            raise ValueError("G1 point is not in the prime-order subgroup")
        return point

    # ── Polynomial arithmetic ────────────────────────────────────────────

    def _compute_challenge(self, blob: bytes, commitment: bytes) -> int:
        degree_poly = self.field_elements_per_blob.to_bytes(16, "big")
        return hash_to_bls_field(FIAT_SHAMIR_PROTOCOL_DOMAIN + degree_poly + blob + commitment)

    def _evaluate(self, polynomial: list[int], z: int) -> int:
        """Barycentric evaluation of an evaluation-form polynomial at ``z``."""
        if z in self._root_index:
            return polynomial[self._root_index[z]]
        width = len(polynomial)
        result = 0
        for p_i, w_i in zip(polynomial, self._roots_brp):
            result += p_i * w_i % BLS_MODULUS * inverse(z - w_i)
        result %= BLS_MODULUS
        return result * (pow(z, width, BLS_MODULUS) - 1) % BLS_MODULUS * inverse(width) % BLS_MODULUS

    def _quotient_within_domain(self, z: int, polynomial: list[int], y: int) -> int:
        result = 0
        for p_i, w_i in zip(polynomial, self._roots_brp):
            if w_i == z:
                continue
            numerator = (p_i - y) * w_i % BLS_MODULUS
            denominator = z * (z - w_i) % BLS_MODULUS
            result += numerator * inverse(denominator)
        return result % BLS_MODULUS

    def _open(self, polynomial: list[int], z: int) -> tuple[bytes, int]:
        y = self._evaluate(polynomial, z)
        quotient = []
        for p_i, w_i in zip(polynomial, self._roots_brp):
            if w_i == z:
                quotient.append(self._quotient_within_domain(z, polynomial, y))
            else:
                quotient.append((p_i - y) * inverse(w_i - z) % BLS_MODULUS)
        return G1_to_pubkey(g1_lincomb(self._g1_lagrange_brp, quotient)), y

    def _check_opening(self, commitment: G1Point, z: int, y: int, proof: G1Point) -> bool:
        x_minus_z = add(self._s_g2, multiply(G2, (BLS_MODULUS - z) % BLS_MODULUS))
        p_minus_y = add(commitment, multiply(G1, (BLS_MODULUS - y) % BLS_MODULUS))
        return pairing_check([(p_minus_y, neg(G2)), (proof, x_minus_z)])

    # ── Operation bodies ─────────────────────────────────────────────────

    def _commit(self, blob: bytes) -> bytes:
        polynomial = self._blob_to_polynomial(blob)
        return G1_to_pubkey(g1_lincomb(self._g1_lagrange_brp, polynomial))

    def _compute_proof(self, blob: bytes, z: bytes) -> tuple[bytes, bytes]:
        polynomial = self._blob_to_polynomial(blob)
        proof, y = self._open(polynomial, bytes_to_bls_field(z))
        return proof, bls_field_to_bytes(y)

    def _compute_blob_proof(self, blob: bytes, commitment: bytes) -> bytes:
        self._to_g1(commitment)
        polynomial = self._blob_to_polynomial(blob)
        proof, _ = self._open(polynomial, self._compute_challenge(blob, commitment))
        return proof

    def _verify_proof(self, commitment: bytes, z: bytes, y: bytes, proof: bytes) -> bool:
        commitment_point = self._to_g1(commitment)
        z_value = bytes_to_bls_field(z)
        y_value = bytes_to_bls_field(y)
        return self._check_opening(commitment_point, z_value, y_value, self._to_g1(proof))

    def _verify_blob_proof(self, blob: bytes, commitment: bytes, proof: bytes) -> bool:
        commitment_point = self._to_g1(commitment)
        polynomial = self._blob_to_polynomial(blob)
        z = self._compute_challenge(blob, commitment)
        y = self._evaluate(polynomial, z)
        return self._check_opening(commitment_point, z, y, self._to_g1(proof))

    def _verify_batch(
        self,
        blobs: Sequence[bytes],
        commitments: Sequence[bytes],
        proofs: Sequence[bytes],
    ) -> bool:
        if not len(blobs) == len(commitments) == len(proofs):
            raise ValueError("blobs, commitments and proofs differ in length")

        commitment_points, zs, ys, proof_points = [], [], [], []
        for blob, commitment, proof in zip(blobs, commitments, proofs):
            commitment_points.append(self._to_g1(commitment))
            polynomial = self._blob_to_polynomial(blob)
            z = self._compute_challenge(blob, commitment)
            zs.append(z)
            ys.append(self._evaluate(polynomial, z))
            proof_points.append(self._to_g1(proof))

        data = (
            RANDOM_CHALLENGE_KZG_BATCH_DOMAIN
            + self.field_elements_per_blob.to_bytes(8, "big")
            + len(commitments).to_bytes(8, "big")
        )
        for commitment, z, y, proof in zip(commitments, zs, ys, proofs):
            data += commitment + bls_field_to_bytes(z) + bls_field_to_bytes(y) + proof
        r_powers = compute_powers(hash_to_bls_field(data), len(commitments))

        proof_lincomb = g1_lincomb(proof_points, r_powers)
        proof_z_lincomb = g1_lincomb(
            proof_points, [z * r % BLS_MODULUS for z, r in zip(zs, r_powers)]
        )
        c_minus_ys = [
            add(c, multiply(G1, (BLS_MODULUS - y) % BLS_MODULUS))
            for c, y in zip(commitment_points, ys)
        ]
        c_minus_y_lincomb = g1_lincomb(c_minus_ys, r_powers)
        return pairing_check([
            (proof_lincomb, neg(self._s_g2)),
            (add(c_minus_y_lincomb, proof_z_lincomb), G2),
        ])

    # ── Operations ───────────────────────────────────────────────────────

    def blob_to_kzg_commitment(self, blob: bytes) -> bytes:
        return self._call(Operation.BLOB_TO_KZG_COMMITMENT, self._commit, blob)

    def compute_kzg_proof(self, blob: bytes, z: bytes) -> tuple[bytes, bytes]:
        return self._call(Operation.COMPUTE_KZG_PROOF, self._compute_proof, blob, z)

    def compute_blob_kzg_proof(self, blob: bytes, commitment: bytes) -> bytes:
        return self._call(Operation.COMPUTE_BLOB_KZG_PROOF, self._compute_blob_proof, blob, commitment)

    def verify_kzg_proof(self, commitment: bytes, z: bytes, y: bytes, proof: bytes) -> bool:
        return self._call(Operation.VERIFY_KZG_PROOF, self._verify_proof, commitment, z, y, proof)

    def verify_blob_kzg_proof(self, blob: bytes, commitment: bytes, proof: bytes) -> bool:
        return self._call(
            Operation.VERIFY_BLOB_KZG_PROOF, self._verify_blob_proof, blob, commitment, proof
        )

    def verify_blob_kzg_proof_batch(
        self,
        blobs: Sequence[bytes],
        commitments: Sequence[bytes],
        proofs: Sequence[bytes],
    ) -> bool:
        return self._call(
            Operation.VERIFY_BLOB_KZG_PROOF_BATCH, self._verify_batch, blobs, commitments, proofs
        )

    # ── Extra capability ─────────────────────────────────────────────────

    def g1_roundtrip(self, encoding: bytes) -> bytes:
        """Decompress ``encoding`` and compress it again."""
        return G1_to_pubkey(self._to_g1(encoding))
