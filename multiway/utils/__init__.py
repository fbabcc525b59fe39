"""
Utility functions for multiway algorithms.

This module provides helper functions for:
- Conversion of array-like input to float64 tensors
- Shape and value validation of predictor/target data
"""

from multiway.utils.shapes import (
    as_tensor,
    canonicalize_targets,
    check_variables,
    validate_samples,
    validate_tensor,
)

__all__ = [
    "as_tensor",
    "canonicalize_targets",
    "check_variables",
    "validate_samples",
    "validate_tensor",
]
