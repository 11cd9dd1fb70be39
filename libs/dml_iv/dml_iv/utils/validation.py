"""Validation utilities for partialling inputs.

This module provides the input checks shared by the model selection and
cross-fitting stages.
"""

from typing import Any

import numpy as np
import pandas as pd
import scipy.sparse as sp
from numpy.typing import NDArray

from ..core.base import DesignMatrix, InputShapeError, TargetData

Matrix = NDArray[np.float64] | sp.csr_matrix


def as_target_array(y: Any) -> NDArray[np.float64]:
    """Convert a target vector to a flat float array.

    Single-column matrices are accepted and flattened.

    Raises:
        InputShapeError: If ``y`` is not numeric or has more than one column
    """
    try:
        if isinstance(y, TargetData):
            array = y.to_array()
        else:
            if isinstance(y, (pd.DataFrame, pd.Series)):
                y = y.to_numpy()
            array = np.asarray(y, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InputShapeError(f"Target cannot be converted to float: {e}") from e

    if array.ndim == 2 and array.shape[1] == 1:
        array = array[:, 0]
    if array.ndim != 1:
        raise InputShapeError(
            f"Target must be a vector or single-column matrix. Got shape {array.shape}."
        )
    return array


def as_design_matrix(x: Any) -> Matrix:
    """Convert a design matrix to float64, keeping sparse inputs as CSR.

    Raises:
        InputShapeError: If ``x`` is not numeric or not two-dimensional
    """
    try:
        if isinstance(x, DesignMatrix):
            return x.to_matrix()
        if sp.issparse(x):
            return sp.csr_matrix(x, dtype=np.float64)
        if isinstance(x, pd.DataFrame):
            x = x.to_numpy(dtype=np.float64)
        array = np.asarray(x, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InputShapeError(f"Design matrix cannot be converted to float: {e}") from e

    if array.ndim != 2:
        raise InputShapeError(
            f"Design matrix must be two-dimensional. Got {array.ndim} dimension(s)."
        )
    return array


def validate_fold_count(n_samples: int, n_folds: int) -> None:
    """Validate that ``n_folds`` can partition ``n_samples`` rows.

    Raises:
        InputShapeError: If there are fewer than two folds or fewer rows than folds
    """
    if n_folds < 2:
        raise InputShapeError(f"At least 2 folds are required. Got {n_folds}.")
    if n_samples < n_folds:
        raise InputShapeError(
            f"Cannot split {n_samples} observations into {n_folds} folds; "
            f"every fold needs at least one observation."
        )


def validate_partialling_inputs(
    y: Any,
    x: Any,
    n_folds: int | None = None,
) -> tuple[NDArray[np.float64], Matrix]:
    """Validate and convert a target vector and design matrix.

    Args:
        y: Target vector (length N)
        x: Design matrix (N x P), dense or sparse
        n_folds: Number of folds the rows must be split into (optional)

    Returns:
        Tuple of (target array, design matrix)

    Raises:
        InputShapeError: If dimensions don't match or values are not finite
    """
    y_array = as_target_array(y)
    x_matrix = as_design_matrix(x)

    n_samples_y = y_array.shape[0]
    n_samples_x = x_matrix.shape[0]
    if n_samples_y != n_samples_x:
        raise InputShapeError(
            f"Target and design matrix must have same number of samples. "
            f"Got {n_samples_y} and {n_samples_x} respectively."
        )
    if n_samples_y == 0:
        raise InputShapeError("Target and design matrix cannot be empty.")
    if x_matrix.shape[1] == 0:
        raise InputShapeError("Design matrix must have at least one column.")

    if not np.all(np.isfinite(y_array)):
        raise InputShapeError("Target contains non-finite values.")

    x_values = x_matrix.data if sp.issparse(x_matrix) else x_matrix
    if not np.all(np.isfinite(x_values)):
        raise InputShapeError("Design matrix contains non-finite values.")

    if n_folds is not None:
        validate_fold_count(n_samples_y, n_folds)

    return y_array, x_matrix
