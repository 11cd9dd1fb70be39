"""Data loading, sample preparation and design matrix construction."""

from .design_matrix import build_design_matrix, indicator_block, orthogonal_polynomial
from .preprocessing import load_dataset, prepare_sample, trend_columns

__all__ = [
    "build_design_matrix",
    "indicator_block",
    "load_dataset",
    "orthogonal_polynomial",
    "prepare_sample",
    "trend_columns",
]
