"""Core configuration for the KZG differential fuzzer."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from kzgfuzz.core.types import BlobLayout, ModePolicy, MutationGranularity


class Settings(BaseSettings):
    """Harness settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="KZGFUZZ_",
        case_sensitive=False,
    )

    # ── App ──────────────────────────────────────────────────────────────
    app_name: str = "kzgfuzz"
    app_env: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # ── Implementations under test ───────────────────────────────────────
    # The first implementation is also the reference used to derive
    # VALID commitments and proofs.
    # The py_ecc reference takes tens of seconds per case on the 4096-point
    # production setup; point trusted_setup_path at a small `kzgfuzz
    # gen-setup` file for throughput.
    implementation_a: str = "ckzg"
    implementation_b: str = "reference"
    trusted_setup_path: str = "trusted_setup.txt"
    ckzg_precompute: int = Field(default=0, ge=0, le=15)

    # ── Input derivation ─────────────────────────────────────────────────
    mode_policy: ModePolicy = ModePolicy.THREE_WAY
    blob_layout: BlobLayout = BlobLayout.FULL
    mutation_granularity: MutationGranularity = MutationGranularity.PER_ELEMENT
    mutation_rate: float = Field(default=0.01, gt=0.0, le=1.0)
    max_batch_size: int = Field(default=5, ge=1)

    # ── Replay ───────────────────────────────────────────────────────────
    replay_max_findings: int = 50


@lru_cache
def get_settings() -> Settings:
    """Return cached settings singleton."""
    return Settings()
