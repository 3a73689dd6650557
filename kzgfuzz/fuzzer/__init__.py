"""Structured-input differential fuzzing for EIP-4844 KZG libraries.

Implements:
  - Byte cursor that carves typed values out of fuzzer input
  - Bounded bit mutation for near-valid inputs
  - Three-mode generators for field elements, blobs, commitments and proofs
  - Differential oracle comparing implementations outcome-for-outcome
  - Per-operation fuzz targets and a case runner
"""
