"""
Shared algorithm core.

- loop: run_until_converged, the iterative-optimizer loop
- base: build/predict front-ends for unsupervised, supervised and
  multi-block algorithms
"""

from multiway.core.loop import LoopResult, run_until_converged
from multiway.core.base import (
    FORCE_STOPPED,
    Algorithm,
    MultiBlockAlgorithm,
    SupervisedAlgorithm,
    UnsupervisedAlgorithm,
)

__all__ = [
    "FORCE_STOPPED",
    "Algorithm",
    "LoopResult",
    "MultiBlockAlgorithm",
    "SupervisedAlgorithm",
    "UnsupervisedAlgorithm",
    "run_until_converged",
]
