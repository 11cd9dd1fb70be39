"""Construction of the sparse control matrix.

Builds the equivalent of an R ``sparse.model.matrix(~ -1 + ...)`` call from
a DataFrame: fixed effects from categorical columns, orthogonal polynomials
of continuous columns, and linear terms such as country-specific trends.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import numpy as np
import pandas as pd
import scipy.sparse as sp
from numpy.typing import NDArray

from ..core.base import DesignMatrix, InputShapeError

__all__ = [
    "build_design_matrix",
    "indicator_block",
    "orthogonal_polynomial",
]


def orthogonal_polynomial(values: NDArray[np.float64] | pd.Series, degree: int) -> NDArray[np.float64]:
    """Orthogonal polynomial basis of ``values`` (as R's ``poly``).

    Columns are orthonormal and orthogonal to the constant; column ``k``
    spans the degree ``k`` component.

    Raises:
        InputShapeError: If there are not more distinct values than ``degree``
    """
    x = np.asarray(values, dtype=np.float64)
    if degree < 1:
        raise ValueError("Polynomial degree must be at least 1")
    if np.unique(x).shape[0] <= degree:
        raise InputShapeError(
            f"Polynomial of degree {degree} needs more than {degree} distinct values"
        )

    centered = x - x.mean()
    vandermonde = np.vander(centered, degree + 1, increasing=True)
    q, r = np.linalg.qr(vandermonde)
    basis = q * np.diag(r)
    basis = basis / np.sqrt((basis**2).sum(axis=0))
    return basis[:, 1:]


def indicator_block(
    values: pd.Series, drop_first: bool
) -> tuple[sp.csr_matrix, list[str]]:
    """Sparse indicator columns for the sorted levels of ``values``."""
    categorical = pd.Categorical(values)
    if categorical.isna().any():
        raise InputShapeError(f"Column {values.name} contains missing values")

    codes = categorical.codes
    n_levels = len(categorical.categories)
    block = sp.csr_matrix(
        (np.ones(len(codes)), (np.arange(len(codes)), codes)),
        shape=(len(codes), n_levels),
    )
    names = [f"factor({values.name}){level}" for level in categorical.categories]
    if drop_first:
        block = block[:, 1:]
        names = names[1:]
    return block, names


def build_design_matrix(
    frame: pd.DataFrame,
    categorical: Sequence[str] = (),
    polynomial: Mapping[str, int] | None = None,
    linear: Sequence[str] = (),
) -> DesignMatrix:
    """Build the sparse control matrix from a DataFrame.

    The matrix has no intercept column. The first categorical column keeps
    all its levels; every further categorical column drops its first level.

    Args:
        frame: Analysis sample
        categorical: Columns expanded into fixed-effect indicators
        polynomial: Columns expanded into orthogonal polynomials, with degree
        linear: Columns entered as they are

    Returns:
        DesignMatrix holding a CSR matrix and its column names

    Raises:
        InputShapeError: If a column is missing or no column is requested
    """
    polynomial = dict(polynomial or {})
    requested = [*categorical, *polynomial, *linear]
    if not requested:
        raise InputShapeError("At least one control column is required")
    missing = [column for column in requested if column not in frame.columns]
    if missing:
        raise InputShapeError(f"Columns not found in data: {missing}")

    blocks: list[sp.csr_matrix] = []
    names: list[str] = []

    for position, column in enumerate(categorical):
        block, block_names = indicator_block(frame[column], drop_first=position > 0)
        blocks.append(block)
        names.extend(block_names)

    for column, degree in polynomial.items():
        basis = orthogonal_polynomial(frame[column].to_numpy(), degree)
        blocks.append(sp.csr_matrix(basis))
        names.extend(f"poly({column}, {degree}){k}" for k in range(1, degree + 1))

    for column in linear:
        values = frame[column].to_numpy(dtype=np.float64).reshape(-1, 1)
        blocks.append(sp.csr_matrix(values))
        names.append(column)

    matrix = sp.hstack(blocks, format="csr")
    return DesignMatrix(values=matrix, column_names=names)
