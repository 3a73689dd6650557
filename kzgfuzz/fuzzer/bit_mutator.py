"""Bounded, seed-deterministic bit flipping.

A mutated canonical value is the "near-valid" input class: it usually
leaves the canonical range, the curve, or the subgroup by a few bits.
"""

from __future__ import annotations

import logging
import math
import random

logger = logging.getLogger(__name__)

DEFAULT_MUTATION_RATE = 0.01


class BitMutator:
    """Flip ``floor(rate * total_bits)`` randomly chosen bits in place.

    Flips are independent, so the same bit may be hit twice; the contract
    is "mutate at most ``rate`` of the bits", not "at least one".
    """

    def __init__(self, rate: float = DEFAULT_MUTATION_RATE) -> None:
        if not 0.0 < rate <= 1.0:
            raise ValueError(f"mutation rate must be in (0, 1], got {rate}")
        self.rate = rate

    def flip_count(self, length: int) -> int:
        return math.floor(self.rate * 8 * length)

    def mutate(self, buffer: bytearray, seed: int) -> bytearray:
        if not buffer:
            return buffer
        rng = random.Random(seed)
        count = self.flip_count(len(buffer))
        for _ in range(count):
            index = rng.randrange(len(buffer))
            bit = rng.randrange(8)
            buffer[index] ^= 1 << bit
        logger.debug("Flipped %d bits over %d bytes (seed=%d)", count, len(buffer), seed)
        return buffer

    def mutated(self, data: bytes, seed: int) -> bytes:
        """Return a mutated copy of ``data``."""
        return bytes(self.mutate(bytearray(data), seed))
