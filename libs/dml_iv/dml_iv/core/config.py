"""Configuration for the partialling search grids and cross-fitting."""

from __future__ import annotations

import math
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class PartiallingConfig(BaseModel):
    """Settings for model selection and cross-fitting.

    The defaults are the grids of the DML-IV analysis of compulsory schooling
    reforms.

    Attributes:
        random_state: Seed for the train/test split, the folds and every learner
        n_folds: Number of cross-fitting folds
        test_size: Share of rows held out for model selection
        enet_mixing_step: Step of the L2-to-L1 mixing sweep
        enet_cv_folds: CV folds used to choose the elastic net penalty
        enet_n_penalties: Length of the elastic net penalty path
        rf_n_trees: Tree counts of the forest grid
        rf_mtry_multipliers: Multipliers of sqrt(P) for the forest mtry grid
        rf_mtry_floor: Fixed extra mtry value of the forest grid
        rf_min_node_size: Minimal terminal node size of forest trees
        xgb_learning_rates: Learning rates of the boosting grid
        xgb_max_depths: Tree depths of the boosting grid
        xgb_max_rounds: Cap on boosting rounds
        xgb_cv_folds: CV folds used to choose the number of rounds
        xgb_early_stopping_rounds: Patience of the boosting early stopping
        n_jobs: Parallel workers inside each learner
        fold_n_jobs: Folds refit concurrently during cross-fitting
    """

    random_state: int = Field(default=180911, description="Global seed")
    n_folds: int = Field(default=5, ge=2, description="Cross-fitting folds")
    test_size: float = Field(
        default=0.2, gt=0.0, lt=1.0, description="Held-out share for model selection"
    )

    # Penalized linear family
    enet_mixing_step: float = Field(default=0.2, gt=0.0, le=1.0)
    enet_cv_folds: int = Field(default=10, ge=2)
    enet_n_penalties: int = Field(default=100, ge=2)
    enet_max_iter: int = Field(default=10000, ge=100)

    # Random forest family
    rf_n_trees: list[int] = Field(default_factory=lambda: [500, 1000, 2000, 5000])
    rf_mtry_multipliers: list[float] = Field(default_factory=lambda: [1.5, 1.0, 0.5])
    rf_mtry_floor: int = Field(default=2, ge=1)
    rf_min_node_size: int = Field(default=5, ge=1)

    # Gradient-boosted trees family
    xgb_learning_rates: list[float] = Field(default_factory=lambda: [0.01, 0.1, 0.3])
    xgb_max_depths: list[int] = Field(default_factory=lambda: [1, 2, 3, 5])
    xgb_gamma: float = Field(default=0.0, ge=0.0)
    xgb_subsample: float = Field(default=0.75, gt=0.0, le=1.0)
    xgb_colsample_bytree: float = Field(default=0.8, gt=0.0, le=1.0)
    xgb_max_rounds: int = Field(default=20000, ge=1)
    xgb_cv_folds: int = Field(default=5, ge=2)
    xgb_early_stopping_rounds: int = Field(default=100, ge=1)

    n_jobs: int = Field(default=1, description="Parallel workers (-1 for all cores)")
    fold_n_jobs: int = Field(
        default=1, description="Folds refit concurrently during cross-fitting"
    )
    parallel_backend: Literal["threading", "loky"] = Field(
        default="threading", description="joblib backend for concurrent folds"
    )

    @field_validator(
        "rf_n_trees",
        "rf_mtry_multipliers",
        "xgb_learning_rates",
        "xgb_max_depths",
    )
    @classmethod
    def validate_grid(cls, v: list) -> list:
        """Validate search grids are non-empty and positive."""
        if len(v) == 0:
            raise ValueError("Search grids cannot be empty")
        if any(value <= 0 for value in v):
            raise ValueError("Search grid values must be positive")
        return v

    @field_validator("n_jobs", "fold_n_jobs")
    @classmethod
    def validate_n_jobs(cls, v: int) -> int:
        if v == 0:
            raise ValueError("n_jobs cannot be 0")
        return v

    def mixing_grid(self) -> list[float]:
        """Mixing values from pure L2 (0) to pure L1 (1)."""
        n_steps = math.floor(1.0 / self.enet_mixing_step + 1e-9)
        return [round(i * self.enet_mixing_step, 10) for i in range(n_steps + 1)]

    def mtry_grid(self, n_features: int) -> list[int]:
        """Feature-subsample counts for a design matrix with ``n_features`` columns.

        Values are clipped into ``[1, n_features]``; duplicates are kept so
        the grid always has the same length.
        """
        root = math.sqrt(n_features)
        values = [math.floor(root * m) for m in self.rf_mtry_multipliers]
        values.append(self.rf_mtry_floor)
        return [min(max(value, 1), n_features) for value in values]
