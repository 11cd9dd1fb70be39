"""Model selection across the three predictor families.

The rows are split once into a train and a test part. Every candidate
configuration is fit on the train part and scored by its test-set mean
squared error; each attempt becomes one record of the diagnostics table:

- one record per elastic net mixing value (6 by default)
- one record per random forest grid point (16 by default)
- one record for the best boosted-trees configuration, chosen by CV RMSE
  and retrained on the whole train part

A configuration that fails is recorded as a failed row and the search
continues.
"""
# ruff: noqa: N803

from __future__ import annotations

import dataclasses
import itertools
import logging
import time
from dataclasses import dataclass
from typing import Any

import numpy as np
import xgboost as xgb
from numpy.typing import NDArray
from sklearn.metrics import mean_squared_error
from sklearn.model_selection import train_test_split

from ..core.base import CandidateFitError, InputShapeError
from ..core.candidates import CandidateRecord, DiagnosticsTable, ModelFamily
from ..core.config import PartiallingConfig
from ..utils.validation import validate_partialling_inputs
from .learners import (
    boosting_params,
    build_learner,
    select_penalty_one_se,
    tune_boosting_rounds,
)

__all__ = ["ModelSelectionStage", "TrainTestSplit", "linear_label"]

logger = logging.getLogger(__name__)


@dataclass
class TrainTestSplit:
    """Row indices of the held-out split shared by every candidate."""

    train_indices: NDArray[np.int64]
    test_indices: NDArray[np.int64]


def linear_label(mixing: float) -> str:
    """Display name of an elastic net candidate."""
    if mixing == 0:
        return "Ridge"
    if mixing == 1:
        return "Lasso"
    return f"Elastic Net (alpha={mixing:g})"


class ModelSelectionStage:
    """Grid search over the penalized linear, forest and boosted-trees families.

    Attributes:
        config: Grids, seed and split settings
        split_: Train/test split of the most recent run
        boosting_grid_: CV results of every boosted-trees grid point of the
            most recent run
    """

    def __init__(self, config: PartiallingConfig | None = None) -> None:
        self.config = config or PartiallingConfig()
        self.split_: TrainTestSplit | None = None
        self.boosting_grid_: list[dict[str, Any]] = []

    def split(self, n_samples: int) -> TrainTestSplit:
        """Fixed-seed random split of ``n_samples`` rows into train and test."""
        n_train = int(np.floor(n_samples * (1 - self.config.test_size)))
        if n_train < 2 or n_samples - n_train < 1:
            raise InputShapeError(
                f"Cannot split {n_samples} observations into train and test parts"
            )
        train_indices, test_indices = train_test_split(
            np.arange(n_samples),
            train_size=n_train,
            random_state=self.config.random_state,
        )
        return TrainTestSplit(
            train_indices=np.sort(train_indices), test_indices=np.sort(test_indices)
        )

    def run(self, y: Any, x: Any) -> DiagnosticsTable:
        """Evaluate every candidate and return the frozen diagnostics table.

        Args:
            y: Target vector (length N)
            x: Design matrix (N x P), dense or sparse

        Returns:
            Frozen DiagnosticsTable with one record per attempted candidate
        """
        y, x = validate_partialling_inputs(y, x)
        self.split_ = self.split(y.shape[0])
        train, test = self.split_.train_indices, self.split_.test_indices

        X_train, X_test = x[train], x[test]
        y_train, y_test = y[train], y[test]
        logger.info(
            f"Model selection on {len(train)} training and {len(test)} test "
            f"observations with {x.shape[1]} controls"
        )

        table = DiagnosticsTable()
        for record in self._search_linear(X_train, y_train, X_test, y_test):
            table.append(record)
        for record in self._search_forest(X_train, y_train, X_test, y_test):
            table.append(record)
        table.append(self._search_boosted(X_train, y_train, X_test, y_test))

        if table.n_failed:
            logger.warning(f"{table.n_failed} of {len(table)} candidates failed")
        return table.freeze()

    def _search_linear(
        self,
        X_train: Any,
        y_train: NDArray[np.float64],
        X_test: Any,
        y_test: NDArray[np.float64],
    ) -> list[CandidateRecord]:
        config = self.config
        records = []
        for mixing in config.mixing_grid():
            label = linear_label(mixing)
            try:
                selection = select_penalty_one_se(
                    X_train,
                    y_train,
                    mixing=mixing,
                    n_folds=config.enet_cv_folds,
                    n_penalties=config.enet_n_penalties,
                    max_iter=config.enet_max_iter,
                    random_state=config.random_state,
                    n_jobs=config.n_jobs,
                )
                record = CandidateRecord(
                    family=ModelFamily.LINEAR,
                    label=label,
                    mse=float("nan"),
                    penalty=selection.penalty_1se,
                    mixing=mixing,
                )
                record = self._score(record, X_train, y_train, X_test, y_test)
            except Exception as e:
                record = self._failed(
                    CandidateRecord(
                        family=ModelFamily.LINEAR, label=label, mse=float("nan"), mixing=mixing
                    ),
                    e,
                )
            records.append(record)
            logger.info(f"glmnet using alpha = {mixing:g} fitted.")
        return records

    def _search_forest(
        self,
        X_train: Any,
        y_train: NDArray[np.float64],
        X_test: Any,
        y_test: NDArray[np.float64],
    ) -> list[CandidateRecord]:
        config = self.config
        mtry_grid = config.mtry_grid(X_train.shape[1])
        # Tree counts vary fastest within each mtry value.
        grid = [
            (n_trees, mtry) for mtry, n_trees in itertools.product(mtry_grid, config.rf_n_trees)
        ]

        records = []
        for i, (n_trees, mtry) in enumerate(grid, start=1):
            record = CandidateRecord(
                family=ModelFamily.FOREST,
                label=f"Random Forest (no. {i}/{len(grid)})",
                mse=float("nan"),
                mtry=mtry,
                n_trees=n_trees,
            )
            try:
                record = self._score(record, X_train, y_train, X_test, y_test)
            except Exception as e:
                record = self._failed(record, e)
            records.append(record)
            logger.info(f"RF no. {i}/{len(grid)} fitted.")
        return records

    def _search_boosted(
        self,
        X_train: Any,
        y_train: NDArray[np.float64],
        X_test: Any,
        y_test: NDArray[np.float64],
    ) -> CandidateRecord:
        config = self.config
        base = CandidateRecord(
            family=ModelFamily.BOOSTED,
            label="Extreme Gradient Boosting",
            mse=float("nan"),
            gamma=config.xgb_gamma,
            subsample=config.xgb_subsample,
            colsample_bytree=config.xgb_colsample_bytree,
        )

        self.boosting_grid_ = []
        try:
            dtrain = xgb.DMatrix(X_train, label=y_train)
        except Exception as e:
            return self._failed(base, e)

        for learning_rate, max_depth in itertools.product(
            config.xgb_learning_rates, config.xgb_max_depths
        ):
            point: dict[str, Any] = {"learning_rate": learning_rate, "max_depth": max_depth}
            params = boosting_params(
                learning_rate=learning_rate,
                max_depth=max_depth,
                gamma=config.xgb_gamma,
                subsample=config.xgb_subsample,
                colsample_bytree=config.xgb_colsample_bytree,
                random_state=config.random_state,
                n_jobs=config.n_jobs,
            )
            try:
                n_rounds, rmse = tune_boosting_rounds(
                    dtrain,
                    params,
                    max_rounds=config.xgb_max_rounds,
                    n_folds=config.xgb_cv_folds,
                    early_stopping_rounds=config.xgb_early_stopping_rounds,
                    random_state=config.random_state,
                )
                point.update(n_rounds=n_rounds, cv_rmse=rmse)
            except Exception as e:
                logger.warning(
                    f"XGB tuning failed for eta={learning_rate}, max_depth={max_depth}: {e}"
                )
                point.update(n_rounds=None, cv_rmse=float("nan"), error=str(e))
            self.boosting_grid_.append(point)

        tuned = [p for p in self.boosting_grid_ if np.isfinite(p["cv_rmse"])]
        if not tuned:
            return self._failed(
                base, CandidateFitError("every boosted-trees grid point failed during CV")
            )

        best = min(tuned, key=lambda p: p["cv_rmse"])
        record = dataclasses.replace(
            base,
            n_rounds=best["n_rounds"],
            learning_rate=best["learning_rate"],
            max_depth=best["max_depth"],
        )
        try:
            record = self._score(record, X_train, y_train, X_test, y_test)
        except Exception as e:
            record = self._failed(record, e)
        logger.info("XGB fitted.")
        return record

    def _score(
        self,
        record: CandidateRecord,
        X_train: Any,
        y_train: NDArray[np.float64],
        X_test: Any,
        y_test: NDArray[np.float64],
    ) -> CandidateRecord:
        """Fit a candidate on train, score it on test and fill in its MSE."""
        start_time = time.perf_counter()
        learner = build_learner(record, self.config)
        learner.fit(X_train, y_train)
        predictions = np.asarray(learner.predict(X_test), dtype=np.float64).ravel()
        mse = float(mean_squared_error(y_test, predictions))
        if not np.isfinite(mse):
            raise CandidateFitError(f"{record.label} produced non-finite predictions")
        logger.debug(
            f"{record.label}: test MSE {mse:.6f} "
            f"({time.perf_counter() - start_time:.2f}s)"
        )
        return dataclasses.replace(record, mse=mse)

    @staticmethod
    def _failed(record: CandidateRecord, error: Exception) -> CandidateRecord:
        logger.warning(f"Candidate {record.label} failed: {error}")
        return dataclasses.replace(record, mse=float("nan"), error=str(error))
