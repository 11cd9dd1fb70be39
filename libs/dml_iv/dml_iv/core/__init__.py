"""Core data models, candidate records and configuration."""

from .base import (
    AmbiguousWinnerError,
    CandidateFitError,
    DesignMatrix,
    FoldRefitError,
    InputShapeError,
    NoViableCandidateError,
    PartialOutResult,
    PartiallingError,
    TargetData,
)
from .candidates import (
    HYPERPARAMETER_FIELDS,
    CandidateRecord,
    DiagnosticsTable,
    ModelFamily,
    infer_family,
    resolve_family,
    resolve_winner,
)
from .config import PartiallingConfig

__all__ = [
    "PartiallingError",
    "InputShapeError",
    "CandidateFitError",
    "AmbiguousWinnerError",
    "NoViableCandidateError",
    "FoldRefitError",
    "TargetData",
    "DesignMatrix",
    "PartialOutResult",
    "HYPERPARAMETER_FIELDS",
    "CandidateRecord",
    "DiagnosticsTable",
    "ModelFamily",
    "infer_family",
    "resolve_family",
    "resolve_winner",
    "PartiallingConfig",
]
