"""KZG implementations under test and their registry.

Backends are imported lazily so that selecting ``reference`` twice, for
example, never loads the C bindings.
"""

from __future__ import annotations

import importlib
from typing import Any

from kzgfuzz.backends.base import KzgBackend
from kzgfuzz.core.errors import SetupError

BACKENDS: dict[str, str] = {
    "ckzg": "kzgfuzz.backends.ckzg_backend:CkzgBackend",
    "reference": "kzgfuzz.backends.reference:ReferenceBackend",
}


def available_backends() -> list[str]:
    return sorted(BACKENDS)


def create_backend(name: str, **options: Any) -> KzgBackend:
    """Instantiate the backend registered under ``name``."""
    try:
        target = BACKENDS[name]
    except KeyError:
        raise SetupError(
            f"unknown implementation '{name}' (available: {', '.join(available_backends())})"
        ) from None
    module_name, class_name = target.split(":", 1)
    backend_cls = getattr(importlib.import_module(module_name), class_name)
    return backend_cls(**options)


__all__ = ["BACKENDS", "KzgBackend", "available_backends", "create_backend"]
