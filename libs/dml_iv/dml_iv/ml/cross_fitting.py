"""Cross-fitting of the winning learner.

Cross-fitting (also called sample splitting) produces out-of-fold
predictions for every row: the rows are partitioned into K folds, the
selected model is refit on the complement of each fold and predicts the
fold itself. Residuals built this way avoid the overfitting bias of
in-sample ML predictions in the downstream IV regression.
"""
# ruff: noqa: N803

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

import numpy as np
from joblib import Parallel, delayed
from numpy.typing import NDArray
from sklearn.model_selection import KFold

from ..core.base import FoldRefitError
from ..core.candidates import CandidateRecord, DiagnosticsTable, resolve_winner
from ..core.config import PartiallingConfig
from ..utils.validation import validate_fold_count, validate_partialling_inputs
from .learners import build_learner

__all__ = [
    "CrossFitData",
    "CrossFittingStage",
    "assign_folds",
    "create_cross_fit_data",
]

logger = logging.getLogger(__name__)


@dataclass
class CrossFitData:
    """Fold partition used for cross-fitting.

    Contains training and validation indices for each fold together with
    the fold id of every row.
    """

    n_folds: int
    fold_ids: NDArray[np.int64]
    train_indices: list[NDArray[np.int64]]
    val_indices: list[NDArray[np.int64]]


def create_cross_fit_data(
    n_samples: int,
    n_folds: int = 5,
    random_state: int | None = None,
) -> CrossFitData:
    """Partition ``n_samples`` rows into ``n_folds`` shuffled folds.

    The first ``n_samples % n_folds`` folds hold one extra row; every row
    belongs to exactly one fold.

    Raises:
        InputShapeError: If there are fewer than 2 folds or fewer rows than folds
    """
    validate_fold_count(n_samples, n_folds)

    splitter = KFold(n_splits=n_folds, shuffle=True, random_state=random_state)
    fold_ids = np.empty(n_samples, dtype=np.int64)
    train_indices = []
    val_indices = []
    for fold_idx, (train_idx, val_idx) in enumerate(splitter.split(np.arange(n_samples))):
        fold_ids[val_idx] = fold_idx
        train_indices.append(train_idx)
        val_indices.append(val_idx)

    return CrossFitData(
        n_folds=n_folds,
        fold_ids=fold_ids,
        train_indices=train_indices,
        val_indices=val_indices,
    )


def assign_folds(
    n_samples: int,
    n_folds: int = 5,
    random_state: int | None = None,
) -> NDArray[np.int64]:
    """Fold id (0..n_folds-1) of every row."""
    return create_cross_fit_data(n_samples, n_folds, random_state).fold_ids


class CrossFittingStage:
    """Refit the winning candidate on K folds and collect out-of-fold residuals.

    Fold ``b`` seeds its learner with ``random_state + b`` so results do not
    depend on whether folds run sequentially or in parallel.

    Attributes:
        config: Fold count, seed and parallelism settings
        cross_fit_data_: Fold partition of the most recent run
        winner_: Candidate refit during the most recent run
        fold_timings_: Seconds spent on each fold of the most recent run
    """

    def __init__(self, config: PartiallingConfig | None = None) -> None:
        self.config = config or PartiallingConfig()
        self.cross_fit_data_: CrossFitData | None = None
        self.winner_: CandidateRecord | None = None
        self.fold_timings_: list[float] = []

    def run(self, y: Any, x: Any, table: DiagnosticsTable) -> NDArray[np.float64]:
        """Compute cross-fitted residuals for ``y`` using the table's winner.

        Args:
            y: Target vector (length N)
            x: Design matrix (N x P), dense or sparse
            table: Diagnostics table from model selection; frozen on entry

        Returns:
            Residual vector (length N) in original row order

        Raises:
            InputShapeError: If inputs are inconsistent or N < K
            NoViableCandidateError: If the table has no successful candidate
            AmbiguousWinnerError: If the winner maps to zero or several families
            FoldRefitError: If refitting the winner on any fold fails
        """
        y, x = validate_partialling_inputs(y, x, n_folds=self.config.n_folds)
        table.freeze()
        self.winner_ = resolve_winner(table)
        logger.info(
            f"Cross-fitting {self.winner_.label} ({self.winner_.family.value}) "
            f"on {self.config.n_folds} folds"
        )

        self.cross_fit_data_ = create_cross_fit_data(
            y.shape[0], self.config.n_folds, self.config.random_state
        )

        use_parallel = self.config.fold_n_jobs != 1 and self.config.n_folds > 1
        if use_parallel:
            fold_results = self._perform_parallel_cross_fitting(y, x)
        else:
            fold_results = self._perform_sequential_cross_fitting(y, x)

        return self._assemble_residuals(y, fold_results)

    def _perform_sequential_cross_fitting(
        self, y: NDArray[np.float64], x: Any
    ) -> list[tuple[NDArray[np.float64], float]]:
        return [self._fit_single_fold(fold_idx, y, x) for fold_idx in range(self.config.n_folds)]

    def _perform_parallel_cross_fitting(
        self, y: NDArray[np.float64], x: Any
    ) -> list[tuple[NDArray[np.float64], float]]:
        """Parallel cross-fitting using joblib; every fold writes disjoint rows."""
        parallel_jobs = Parallel(
            n_jobs=self.config.fold_n_jobs,
            backend=self.config.parallel_backend,
        )
        return parallel_jobs(
            delayed(self._fit_single_fold)(fold_idx, y, x)
            for fold_idx in range(self.config.n_folds)
        )

    def _fit_single_fold(
        self, fold_idx: int, y: NDArray[np.float64], x: Any
    ) -> tuple[NDArray[np.float64], float]:
        """Refit the winner outside fold ``fold_idx`` and predict inside it.

        Returns:
            Tuple of (fold predictions, fold timing)
        """
        logger.info(f"Compute residuals: Fold {fold_idx + 1}/{self.config.n_folds}")
        fold_start_time = time.perf_counter()

        train_idx = self.cross_fit_data_.train_indices[fold_idx]
        val_idx = self.cross_fit_data_.val_indices[fold_idx]
        try:
            learner = build_learner(
                self.winner_, self.config, random_state=self.config.random_state + fold_idx
            )
            learner.fit(x[train_idx], y[train_idx])
            predictions = np.asarray(learner.predict(x[val_idx]), dtype=np.float64).ravel()
        except Exception as e:
            raise FoldRefitError(
                f"Refitting {self.winner_.label} failed on fold "
                f"{fold_idx + 1}/{self.config.n_folds}: {e}"
            ) from e

        if predictions.shape[0] != val_idx.shape[0] or not np.all(np.isfinite(predictions)):
            raise FoldRefitError(
                f"{self.winner_.label} produced invalid predictions on fold "
                f"{fold_idx + 1}/{self.config.n_folds}"
            )
        return predictions, time.perf_counter() - fold_start_time

    def _assemble_residuals(
        self,
        y: NDArray[np.float64],
        fold_results: list[tuple[NDArray[np.float64], float]],
    ) -> NDArray[np.float64]:
        residuals = np.full(y.shape[0], np.nan)
        self.fold_timings_ = []
        for fold_idx, (predictions, fold_timing) in enumerate(fold_results):
            val_idx = self.cross_fit_data_.val_indices[fold_idx]
            residuals[val_idx] = y[val_idx] - predictions
            self.fold_timings_.append(fold_timing)

        # Check that all samples have residuals
        if np.any(np.isnan(residuals)):
            raise FoldRefitError("Some samples are missing cross-fitted residuals")
        return residuals
