"""
Multiway decomposition and regression for chemometrics.

This package provides tools for analysing data arranged in three or more
modes (samples x variables x conditions), such as excitation-emission
fluorescence or hyphenated spectroscopy.

Features:
---------
- PARAFAC and non-negative tensor factorization (NTF)
- PLS2, mixed-norm PLS (MNPLS), N-PLS and multi-block SO-N-PLS regression
- Two-way PCA
- Composable stopping criteria with thread-safe cancellation
- Injectable tensor backends

Typical usage:
--------------
    from multiway import PARAFAC, MultiLinearPLS

    parafac = PARAFAC(num_components=3)
    msg = parafac.build(X)            # None on success
    A = parafac.loading_matrices["A"]

    npls = MultiLinearPLS(num_components=4)
    npls.build(X_train, Y_train)
    Y_hat = npls.predict(X_test)
"""

from multiway.core import FORCE_STOPPED
from multiway.exceptions import (
    DimensionMismatchError,
    InvalidInputError,
    ModelNotBuiltError,
    NoTensorBackendFoundError,
    UnsupportedStoppingCriterionError,
)
from multiway.models import (
    MNPLS,
    NTF,
    PARAFAC,
    PLS2,
    SONPLS,
    Adam,
    MultiLinearPLS,
    NPLSConfig,
    NTFConfig,
    PARAFACConfig,
    PCAConfig,
    PLSConfig,
    SONPLSConfig,
    Sgd,
    TwoWayPCA,
)
from multiway.stopping import CriterionType

__version__ = "0.1.0"

__all__ = [
    # Models
    "MNPLS",
    "MultiLinearPLS",
    "NTF",
    "PARAFAC",
    "PLS2",
    "SONPLS",
    "TwoWayPCA",
    # Configuration
    "Adam",
    "NPLSConfig",
    "NTFConfig",
    "PARAFACConfig",
    "PCAConfig",
    "PLSConfig",
    "SONPLSConfig",
    "Sgd",
    # Stopping
    "CriterionType",
    "FORCE_STOPPED",
    # Exceptions
    "DimensionMismatchError",
    "InvalidInputError",
    "ModelNotBuiltError",
    "NoTensorBackendFoundError",
    "UnsupportedStoppingCriterionError",
]
