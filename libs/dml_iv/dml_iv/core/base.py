"""Base data models and exceptions for DML partialling.

This module provides the input data models shared by every stage of the
partialling pipeline, the result container returned to callers, and the
exception hierarchy used to separate recoverable candidate failures from
fatal pipeline errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .candidates import CandidateRecord, DiagnosticsTable

import numpy as np
import pandas as pd
import scipy.sparse as sp
from numpy.typing import NDArray
from pydantic import BaseModel, Field, field_validator


class PartiallingError(Exception):
    """Base exception class for partialling specific errors."""

    pass


class InputShapeError(PartiallingError, ValueError):
    """Raised when the target vector and design matrix are not compatible.

    Covers length mismatches, non-finite values and fold counts that cannot
    partition the available rows.
    """

    pass


class CandidateFitError(PartiallingError):
    """Raised when a single hyperparameter configuration cannot be fitted."""

    pass


class AmbiguousWinnerError(PartiallingError):
    """Raised when the winning candidate does not map to exactly one family."""

    pass


class NoViableCandidateError(PartiallingError):
    """Raised when every candidate of the model search failed."""

    pass


class FoldRefitError(PartiallingError):
    """Raised when refitting the winning model on a cross-fitting fold fails."""

    pass


class TargetData(BaseModel):
    """Data model for a single target vector (outcome, treatment or instrument)."""

    values: pd.Series | NDArray[Any] = Field(..., description="Target values")
    name: str = Field(default="target", description="Name of the target variable")

    model_config = {"arbitrary_types_allowed": True}

    @field_validator("values")
    @classmethod
    def validate_values(cls, v: pd.Series | NDArray[Any]) -> pd.Series | NDArray[Any]:
        """Validate target values are not empty."""
        if len(v) == 0:
            raise ValueError("Target values cannot be empty")
        return v

    def to_array(self) -> NDArray[np.float64]:
        """Return the target as a flat float array."""
        if isinstance(self.values, pd.Series):
            return self.values.to_numpy(dtype=np.float64)
        return np.asarray(self.values, dtype=np.float64).ravel()


class DesignMatrix(BaseModel):
    """Data model for the shared control matrix.

    The matrix may be dense or scipy sparse. It is treated as read-only and
    shared by reference across the three partialling runs.
    """

    values: Any = Field(..., description="Dense array or scipy sparse matrix")
    column_names: list[str] = Field(
        default_factory=list, description="Names of the design matrix columns"
    )

    model_config = {"arbitrary_types_allowed": True}

    @field_validator("values")
    @classmethod
    def validate_values(cls, v: Any) -> Any:
        """Validate the matrix is two-dimensional and not empty."""
        if not (sp.issparse(v) or isinstance(v, (np.ndarray, pd.DataFrame))):
            raise ValueError("Design matrix must be a numpy array, DataFrame or sparse matrix")
        if len(v.shape) != 2:
            raise ValueError("Design matrix must be two-dimensional")
        if v.shape[0] == 0 or v.shape[1] == 0:
            raise ValueError("Design matrix cannot be empty")
        return v

    @property
    def shape(self) -> tuple[int, int]:
        return self.values.shape

    def to_matrix(self) -> NDArray[np.float64] | sp.csr_matrix:
        """Return the matrix as float64, keeping sparse inputs sparse."""
        if sp.issparse(self.values):
            return sp.csr_matrix(self.values, dtype=np.float64)
        if isinstance(self.values, pd.DataFrame):
            return self.values.to_numpy(dtype=np.float64)
        return np.asarray(self.values, dtype=np.float64)


@dataclass
class PartialOutResult:
    """Result of partialling the controls out of one target vector.

    Attributes:
        residuals: Cross-fitted residuals in original row order
        table: Frozen diagnostics table from the model search
        winner: Candidate whose configuration produced the residuals
        fold_ids: Fold id (0..K-1) of every row
        target_name: Name of the target vector
        duration_seconds: Wall time of both stages
    """

    residuals: NDArray[np.float64]
    table: DiagnosticsTable
    winner: CandidateRecord
    fold_ids: NDArray[np.int64]
    target_name: str = "target"
    duration_seconds: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def n_observations(self) -> int:
        return int(self.residuals.shape[0])

    def summary(self) -> str:
        """Human readable one-paragraph summary."""
        lines = [
            f"Partialled target: {self.target_name}",
            f"Observations: {self.n_observations}",
            f"Candidates evaluated: {len(self.table)} "
            f"({self.table.n_failed} failed)",
            f"Selected model: {self.winner.label} (test MSE {self.winner.mse:.6f})",
            f"Cross-fitting folds: {int(self.fold_ids.max()) + 1}",
        ]
        if self.duration_seconds is not None:
            lines.append(f"Duration: {self.duration_seconds:.1f}s")
        return "\n".join(lines)
