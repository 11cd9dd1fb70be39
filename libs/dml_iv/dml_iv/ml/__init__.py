"""Machine learning module for partialling out controls.

This module provides the learners of the three predictor families, the
model selection stage that searches over them, and the cross-fitting stage
that refits the winner fold by fold.
"""

from .cross_fitting import (
    CrossFitData,
    CrossFittingStage,
    assign_folds,
    create_cross_fit_data,
)
from .learners import BoostedTreesRegressor, build_learner, select_penalty_one_se
from .model_selection import ModelSelectionStage, TrainTestSplit

__all__ = [
    "BoostedTreesRegressor",
    "CrossFitData",
    "CrossFittingStage",
    "ModelSelectionStage",
    "TrainTestSplit",
    "assign_folds",
    "build_learner",
    "create_cross_fit_data",
    "select_penalty_one_se",
]
