"""
Two-way principal component analysis.

Components are obtained from the SVD of the sample covariance. Whichever of
X^T X and X X^T is smaller is decomposed; in the second case the
eigenvectors are mapped back through X^T and normalized.

Used on its own and by MultiLinearPLS to initialize the Y-score vector of
every latent component.
"""

from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from multiway.core import UnsupervisedAlgorithm
from multiway.tensor import svd
from multiway.tensor.backend import TensorBackend
from multiway.utils.shapes import as_tensor, check_variables, validate_tensor


@dataclass
class PCAConfig:
    """
    Configuration for TwoWayPCA.

    Parameters
    ----------
    whiten : bool, default=False
        Divide filtered scores by the square root of the explained variance
    """

    whiten: bool = False


class TwoWayPCA(UnsupervisedAlgorithm):
    """
    PCA of a samples x variables matrix.

    Attributes
    ----------
    num_components : int
        Number of principal components F
    explained_variance : np.ndarray
        Variance captured by each component, shape (F,) (after build)

    Loading matrices: 'T' (I, F) scores, 'COMPONENTS' (J, F).

    No stopping criteria are supported.
    """

    supported_criteria = frozenset()

    def __init__(
        self,
        num_components: int = 3,
        config: Optional[PCAConfig] = None,
        backend: Optional[TensorBackend] = None,
    ):
        if num_components < 1:
            raise ValueError(f"num_components must be >= 1, got {num_components}")
        super().__init__(backend)
        self.num_components = num_components
        self.config = config or PCAConfig()
        self._clear_outputs()

    def _clear_outputs(self) -> None:
        self.T_: Optional[np.ndarray] = None
        self.components_: Optional[np.ndarray] = None
        self.x_mean_: Optional[np.ndarray] = None
        self._explained_variance: Optional[np.ndarray] = None

    @property
    def explained_variance(self) -> np.ndarray:
        self._check_built()
        return self._explained_variance.copy()

    def _check(self, X: np.ndarray) -> None:
        validate_tensor(X, "X", ndims=(2,), algorithm="TwoWayPCA")
        I, J = X.shape
        if I < 2:
            raise ValueError(f"TwoWayPCA needs at least 2 samples, got {I}")
        if self.num_components > min(I, J):
            raise ValueError(
                f"num_components={self.num_components} exceeds min(samples, variables)="
                f"{min(I, J)}"
            )

    def _do_build(self, X: np.ndarray) -> Optional[str]:
        F = self.num_components
        self.x_mean_ = X.mean(axis=0)
        X = X - self.x_mean_
        I, nx = X.shape

        if nx < I:
            decomposition = svd(X.T @ X / (I - 1))
            components = decomposition.V[:, :F]
        else:
            decomposition = svd(X @ X.T / (I - 1))
            V = X.T @ decomposition.V[:, :F]
            norms = np.linalg.norm(V, axis=0)
            norms[norms == 0] = 1.0
            components = V / norms

        self.components_ = components
        self._explained_variance = decomposition.singular_values[:F, 0].copy()
        self.T_ = X @ components
        return None

    def filter(self, X) -> np.ndarray:
        """
        Project new samples onto the principal components.

        Raises
        ------
        ModelNotBuiltError
            If the model has not been built successfully
        """
        self._check_built()
        X = as_tensor(X, "X")
        validate_tensor(X, "X", ndims=(2,), algorithm="TwoWayPCA")
        check_variables(X, (self.components_.shape[0],))
        scores = (X - self.x_mean_) @ self.components_
        if self.config.whiten:
            scale = np.sqrt(self._explained_variance)
            scale[scale == 0] = 1.0
            scores = scores / scale
        return scores

    def _loading_matrices(self) -> Dict[str, np.ndarray]:
        return {"T": self.T_, "COMPONENTS": self.components_}

    def _describe(self) -> str:
        return f"F={self.num_components}, whiten={self.config.whiten}"
