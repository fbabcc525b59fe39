"""
Multiway decomposition and regression models.

This module provides the algorithms of the package:
- PARAFAC: trilinear decomposition by alternating least squares
- NTF: non-negative tensor factorization of N-way data
- TwoWayPCA: principal component analysis of two-way data
- PLS2: NIPALS partial least squares with multiple responses
- MNPLS: PLS2 with mixed-norm penalized weights
- MultiLinearPLS: N-PLS regression on three-way predictors
- SONPLS: sequential and orthogonalized N-PLS for several predictor blocks
"""

from multiway.models.mnpls import MNPLS
from multiway.models.npls import MultiLinearPLS, NPLSConfig
from multiway.models.ntf import NTF, NTFConfig
from multiway.models.parafac import PARAFAC, PARAFACConfig
from multiway.models.pca import PCAConfig, TwoWayPCA
from multiway.models.pls2 import PLS2, PLSConfig
from multiway.models.sonpls import SONPLS, SONPLSConfig
from multiway.models.updaters import Adam, Sgd

__all__ = [
    "Adam",
    "MNPLS",
    "MultiLinearPLS",
    "NPLSConfig",
    "NTF",
    "NTFConfig",
    "PARAFAC",
    "PARAFACConfig",
    "PCAConfig",
    "PLS2",
    "PLSConfig",
    "SONPLS",
    "SONPLSConfig",
    "Sgd",
    "TwoWayPCA",
]
