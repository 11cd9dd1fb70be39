"""Double machine learning partialling for instrumental-variables designs.

Orthogonalizes an outcome, a treatment and an instrument against a
high-dimensional set of controls with cross-fitted machine-learning
predictions, producing the residuals used by a second-stage IV regression.
"""

__version__ = "0.1.0"

from .core import *
from .data import build_design_matrix, load_dataset, prepare_sample
from .estimators import (
    NuisancePartialler,
    TargetOutcome,
    partial_out,
    partial_out_targets,
)
from .ml import CrossFittingStage, ModelSelectionStage
from .reporting import export_results

__all__ = [
    "__version__",
    "CrossFittingStage",
    "ModelSelectionStage",
    "NuisancePartialler",
    "TargetOutcome",
    "build_design_matrix",
    "export_results",
    "load_dataset",
    "partial_out",
    "partial_out_targets",
    "prepare_sample",
]
