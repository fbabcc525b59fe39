"""
Tensor algebra primitives and tensor backends.

- ops: unfolding, vectorization, Khatri-Rao and outer products
- linalg: inversion, SVD, Gram-Schmidt, generalized eigenvectors
- backend: injectable tensor factories (zeros/ones/randn)
"""

from multiway.tensor.ops import (
    center,
    fold,
    invert_matricize,
    invert_vectorize,
    khatri_rao,
    khatri_rao_many,
    kruskal_to_tensor,
    matricize,
    mean_squared_error,
    outer,
    standardize,
    vectorize,
)
from multiway.tensor.linalg import (
    SingularMatrixError,
    SVDResult,
    generalized_eigenvectors,
    invert,
    largest_magnitude_signs,
    orth,
    project,
    pseudo_invert,
    pseudo_invert2,
    robust_invert,
    svd,
    unit,
)
from multiway.tensor.backend import (
    NumpyBackend,
    TensorBackend,
    get_default_backend,
    register_backend,
    registered_backends,
    reset_backend_cache,
    set_default_backend,
    unregister_backend,
)

__all__ = [
    "NumpyBackend",
    "SVDResult",
    "SingularMatrixError",
    "TensorBackend",
    "center",
    "fold",
    "generalized_eigenvectors",
    "get_default_backend",
    "invert",
    "invert_matricize",
    "invert_vectorize",
    "khatri_rao",
    "khatri_rao_many",
    "kruskal_to_tensor",
    "largest_magnitude_signs",
    "matricize",
    "mean_squared_error",
    "orth",
    "outer",
    "project",
    "pseudo_invert",
    "pseudo_invert2",
    "register_backend",
    "registered_backends",
    "reset_backend_cache",
    "robust_invert",
    "set_default_backend",
    "standardize",
    "svd",
    "unit",
    "unregister_backend",
    "vectorize",
]
