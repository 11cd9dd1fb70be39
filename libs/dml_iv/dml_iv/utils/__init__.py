"""Utility functions for the partialling pipeline."""

from .validation import (
    as_design_matrix,
    as_target_array,
    validate_fold_count,
    validate_partialling_inputs,
)

__all__ = [
    "as_design_matrix",
    "as_target_array",
    "validate_fold_count",
    "validate_partialling_inputs",
]
