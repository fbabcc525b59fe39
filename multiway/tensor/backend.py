"""
Tensor construction backends.

Algorithms create their initial tensors (zeros, ones, random draws) through
a backend object instead of calling numpy directly, so alternative array
providers can be injected at construction time.

Backends are registered by name; the default backend is resolved once and
cached. The numpy backend is registered when this module is imported.
"""

import warnings
from typing import Dict, Optional, Protocol, Sequence, runtime_checkable

import numpy as np

from multiway.exceptions import NoTensorBackendFoundError


@runtime_checkable
class TensorBackend(Protocol):
    """Factory for float64 tensors."""

    def zeros(self, shape: Sequence[int]) -> np.ndarray: ...

    def ones(self, shape: Sequence[int]) -> np.ndarray: ...

    def randn(self, shape: Sequence[int], seed: int) -> np.ndarray: ...


class NumpyBackend:
    """Backend producing numpy arrays; random draws use ``default_rng(seed)``."""

    def zeros(self, shape: Sequence[int]) -> np.ndarray:
        return np.zeros(tuple(shape), dtype=np.float64)

    def ones(self, shape: Sequence[int]) -> np.ndarray:
        return np.ones(tuple(shape), dtype=np.float64)

    def randn(self, shape: Sequence[int], seed: int) -> np.ndarray:
        rng = np.random.default_rng(seed)
        return rng.standard_normal(tuple(shape))

    def __repr__(self) -> str:
        return "NumpyBackend()"


_REGISTRY: Dict[str, TensorBackend] = {}
_DEFAULT: Optional[TensorBackend] = None


def register_backend(name: str, backend: TensorBackend) -> None:
    """Register a backend under ``name`` (replacing any previous entry)."""
    if not isinstance(backend, TensorBackend):
        raise TypeError(f"{backend!r} does not implement zeros/ones/randn")
    _REGISTRY[name] = backend


def unregister_backend(name: str) -> None:
    """Remove a registered backend and clear the cached default."""
    _REGISTRY.pop(name, None)
    reset_backend_cache()


def registered_backends() -> list[str]:
    """Names of registered backends in registration order."""
    return list(_REGISTRY)


def set_default_backend(backend: TensorBackend) -> None:
    """Force the default backend, bypassing registry resolution."""
    global _DEFAULT
    if not isinstance(backend, TensorBackend):
        raise TypeError(f"{backend!r} does not implement zeros/ones/randn")
    _DEFAULT = backend


def reset_backend_cache() -> None:
    """Forget the resolved default so the next lookup consults the registry."""
    global _DEFAULT
    _DEFAULT = None


def get_default_backend() -> TensorBackend:
    """
    Resolve the default backend.

    Raises
    ------
    NoTensorBackendFoundError
        If no backend is registered

    Warns
    -----
    UserWarning
        If several backends are registered; the first one is used
    """
    global _DEFAULT
    if _DEFAULT is not None:
        return _DEFAULT

    if not _REGISTRY:
        raise NoTensorBackendFoundError(
            "No tensor backend found. Register one with register_backend()."
        )
    names = list(_REGISTRY)
    if len(names) > 1:
        warnings.warn(
            f"Multiple tensor backends registered ({', '.join(names)}), using '{names[0]}'",
            UserWarning,
            stacklevel=2,
        )
    _DEFAULT = _REGISTRY[names[0]]
    return _DEFAULT


register_backend("numpy", NumpyBackend())
