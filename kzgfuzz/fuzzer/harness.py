"""Process-wide harness context.

The trusted setup of every implementation is loaded exactly once, before
any case runs, and released once afterwards. The resulting
:class:`HarnessContext` is passed explicitly to every case; nothing here is
module-level mutable state.

Usage::

    with open_context(get_settings()) as ctx:
        run_case("blob_to_kzg_commitment", data, ctx)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Sequence

from kzgfuzz.backends import create_backend
from kzgfuzz.backends.base import KzgBackend
from kzgfuzz.core.config import Settings, get_settings
from kzgfuzz.core.errors import SetupError
from kzgfuzz.fuzzer.differential import DifferentialOracle
from kzgfuzz.fuzzer.generators import GeneratorConfig, Generators

logger = logging.getLogger(__name__)


@dataclass
class HarnessContext:
    """Loaded implementations plus the generators and oracle built on them."""

    implementations: tuple[KzgBackend, ...]
    generators: Generators
    oracle: DifferentialOracle

    @property
    def reference(self) -> KzgBackend:
        return self.implementations[0]

    @property
    def field_elements_per_blob(self) -> int:
        return self.generators.config.field_elements_per_blob

    @classmethod
    def from_backends(
        cls,
        implementations: Sequence[KzgBackend],
        settings: Settings | None = None,
        config: GeneratorConfig | None = None,
    ) -> HarnessContext:
        """Wire loaded backends into a context.

        All backends must agree on the blob size; it is taken from the
        loaded setups rather than from configuration.
        """
        sizes = {impl.name: impl.field_elements_per_blob for impl in implementations}
        if len(set(sizes.values())) != 1:
            raise SetupError(f"implementations disagree on field elements per blob: {sizes}")
        n = next(iter(sizes.values()))

        if config is None:
            config = GeneratorConfig.from_settings(settings or get_settings(), n)
        elif config.field_elements_per_blob != n:
            raise SetupError(
                f"generator expects {config.field_elements_per_blob} field elements per blob, "
                f"implementations use {n}"
            )

        return cls(
            implementations=tuple(implementations),
            generators=Generators(config, implementations[0]),
            oracle=DifferentialOracle(implementations),
        )


def _backend_options(name: str, settings: Settings) -> dict[str, Any]:
    if name == "ckzg":
        return {"precompute": settings.ckzg_precompute}
    return {}


@contextmanager
def open_context(settings: Settings | None = None) -> Iterator[HarnessContext]:
    """Load every configured implementation, yield a context, then release."""
    settings = settings or get_settings()
    names = [settings.implementation_a, settings.implementation_b]
    backends = [create_backend(name, **_backend_options(name, settings)) for name in names]

    loaded: list[KzgBackend] = []
    try:
        for backend in backends:
            backend.load_trusted_setup(settings.trusted_setup_path)
            loaded.append(backend)
        ctx = HarnessContext.from_backends(loaded, settings)
        logger.info(
            "Harness ready: %s (%d field elements per blob, %s policy, %s layout)",
            " vs ".join(names),
            ctx.field_elements_per_blob,
            settings.mode_policy.value,
            settings.blob_layout.value,
        )
        yield ctx
    finally:
        for backend in reversed(loaded):
            backend.release()
