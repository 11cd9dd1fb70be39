"""Learners for the three predictor families used to partial out controls.

- Penalized linear regression (elastic net, ridge to lasso) with the
  penalty chosen by K-fold CV under the one-standard-error rule
- Random forest regression
- Gradient-boosted trees (XGBoost) with the number of rounds chosen by
  K-fold CV with early stopping

All learners follow the ``fit``/``predict`` protocol and accept dense arrays
or scipy sparse matrices.
"""
# ruff: noqa: N803

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Any, Protocol

import numpy as np
import xgboost as xgb
from numpy.typing import NDArray
from sklearn.ensemble import RandomForestRegressor
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import ElasticNet, ElasticNetCV
from sklearn.model_selection import KFold
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from ..core.base import CandidateFitError
from ..core.candidates import CandidateRecord, ModelFamily
from ..core.config import PartiallingConfig

__all__ = [
    "BoostedTreesRegressor",
    "NuisanceLearner",
    "PenaltySelection",
    "boosting_params",
    "build_learner",
    "make_forest_learner",
    "make_linear_learner",
    "penalty_path",
    "select_penalty_one_se",
    "tune_boosting_rounds",
]

# Mixing values below this are treated as this value when sizing the penalty
# path, so the ridge end still gets a finite largest penalty.
_MIN_PATH_MIXING = 1e-3


class NuisanceLearner(Protocol):
    """Protocol for nuisance learners used in model selection and cross-fitting."""

    def fit(self, X: Any, y: NDArray[Any]) -> Any:
        """Fit the learner to training data."""
        ...

    def predict(self, X: Any) -> NDArray[Any]:
        """Make predictions on new data."""
        ...


@dataclass
class PenaltySelection:
    """Outcome of the cross-validated penalty search for one mixing value."""

    penalty_1se: float
    penalty_min: float
    penalties: NDArray[np.float64]
    cv_mean: NDArray[np.float64]
    cv_se: NDArray[np.float64]


def penalty_path(
    X: Any,
    y: NDArray[np.float64],
    mixing: float,
    n_penalties: int = 100,
) -> NDArray[np.float64]:
    """Log-spaced penalty path for an elastic net with the given mixing.

    The path starts at the smallest penalty that sets every coefficient to
    zero and ends at 1e-4 of it (1e-2 when there are more columns than rows).

    Raises:
        CandidateFitError: If the target has no variation to explain
    """
    n_samples, n_features = X.shape
    y_centered = y - y.mean()
    # Centering X is unnecessary here because y_centered sums to zero.
    correlation = np.abs(np.asarray(X.T @ y_centered)).ravel()
    penalty_max = correlation.max() / (n_samples * max(mixing, _MIN_PATH_MIXING))
    if not np.isfinite(penalty_max) or penalty_max <= 0:
        raise CandidateFitError(
            "Cannot build a penalty path: target has no variation along the controls"
        )
    min_ratio = 1e-4 if n_samples > n_features else 1e-2
    return np.geomspace(penalty_max, penalty_max * min_ratio, n_penalties)


def select_penalty_one_se(
    X: Any,
    y: NDArray[np.float64],
    mixing: float,
    n_folds: int = 10,
    n_penalties: int = 100,
    max_iter: int = 10000,
    random_state: int | None = None,
    n_jobs: int | None = None,
) -> PenaltySelection:
    """Choose the elastic net penalty with the one-standard-error rule.

    The penalty is the largest one whose mean CV error lies within one
    standard error of the minimal mean CV error.

    Args:
        X: Training covariates
        y: Training target
        mixing: L1 share of the penalty (0 = ridge, 1 = lasso)
        n_folds: Number of CV folds
        n_penalties: Length of the penalty path
        max_iter: Coordinate descent iterations per fit
        random_state: Seed of the CV fold assignment
        n_jobs: Parallel workers for the CV fits

    Returns:
        PenaltySelection with the chosen and minimal-error penalties
    """
    X_scaled = StandardScaler(with_mean=False).fit_transform(X)
    penalties = penalty_path(X_scaled, y, mixing, n_penalties)

    cv_model = ElasticNetCV(
        l1_ratio=mixing,
        alphas=penalties,
        cv=KFold(n_splits=n_folds, shuffle=True, random_state=random_state),
        max_iter=max_iter,
        random_state=random_state,
        n_jobs=n_jobs,
    )
    with warnings.catch_warnings():
        # The smallest penalties of the path are rarely needed to converge.
        warnings.simplefilter("ignore", category=ConvergenceWarning)
        cv_model.fit(X_scaled, y)

    mse_path = np.asarray(cv_model.mse_path_)
    cv_mean = mse_path.mean(axis=1)
    cv_se = mse_path.std(axis=1, ddof=1) / np.sqrt(mse_path.shape[1])
    best = int(np.argmin(cv_mean))
    within_one_se = cv_mean <= cv_mean[best] + cv_se[best]
    alphas = np.asarray(cv_model.alphas_)

    return PenaltySelection(
        penalty_1se=float(alphas[within_one_se].max()),
        penalty_min=float(alphas[best]),
        penalties=alphas,
        cv_mean=cv_mean,
        cv_se=cv_se,
    )


def make_linear_learner(
    penalty: float,
    mixing: float,
    max_iter: int = 10000,
    random_state: int | None = None,
) -> Pipeline:
    """Elastic net at a fixed penalty on unit-variance features."""
    return Pipeline(
        [
            ("scale", StandardScaler(with_mean=False)),
            (
                "enet",
                ElasticNet(
                    alpha=penalty,
                    l1_ratio=mixing,
                    max_iter=max_iter,
                    random_state=random_state,
                ),
            ),
        ]
    )


def make_forest_learner(
    n_trees: int,
    mtry: int,
    min_node_size: int = 5,
    random_state: int | None = None,
    n_jobs: int | None = None,
) -> RandomForestRegressor:
    """Regression forest drawing ``mtry`` candidate features per split."""
    return RandomForestRegressor(
        n_estimators=n_trees,
        max_features=mtry,
        min_samples_leaf=min_node_size,
        random_state=random_state,
        n_jobs=n_jobs,
    )


def boosting_params(
    learning_rate: float,
    max_depth: int,
    gamma: float,
    subsample: float,
    colsample_bytree: float,
    random_state: int | None = None,
    n_jobs: int | None = None,
) -> dict[str, Any]:
    """Native XGBoost parameters for squared-error regression."""
    params: dict[str, Any] = {
        "objective": "reg:squarederror",
        "eval_metric": "rmse",
        "eta": learning_rate,
        "max_depth": max_depth,
        "gamma": gamma,
        "subsample": subsample,
        "colsample_bytree": colsample_bytree,
        "verbosity": 0,
    }
    if random_state is not None:
        params["seed"] = random_state
    if n_jobs is not None and n_jobs > 0:
        params["nthread"] = n_jobs
    return params


def tune_boosting_rounds(
    dtrain: xgb.DMatrix,
    params: dict[str, Any],
    max_rounds: int,
    n_folds: int = 5,
    early_stopping_rounds: int = 100,
    random_state: int | None = None,
) -> tuple[int, float]:
    """Pick the number of boosting rounds by K-fold CV with early stopping.

    Returns:
        Tuple of (best number of rounds, mean validation RMSE at that round)
    """
    history = xgb.cv(
        params,
        dtrain,
        num_boost_round=max_rounds,
        nfold=n_folds,
        early_stopping_rounds=early_stopping_rounds,
        seed=0 if random_state is None else random_state,
        shuffle=True,
        verbose_eval=False,
    )
    test_rmse = history["test-rmse-mean"].to_numpy()
    best = int(np.argmin(test_rmse))
    return best + 1, float(test_rmse[best])


class BoostedTreesRegressor:
    """Gradient-boosted trees trained for a fixed number of rounds.

    Wraps ``xgboost.train`` behind the ``fit``/``predict`` protocol so that
    a configuration selected by cross-validation can be refit on any subset.
    """

    def __init__(
        self,
        n_rounds: int,
        learning_rate: float,
        max_depth: int,
        gamma: float = 0.0,
        subsample: float = 1.0,
        colsample_bytree: float = 1.0,
        random_state: int | None = None,
        n_jobs: int | None = None,
    ) -> None:
        self.n_rounds = n_rounds
        self.learning_rate = learning_rate
        self.max_depth = max_depth
        self.gamma = gamma
        self.subsample = subsample
        self.colsample_bytree = colsample_bytree
        self.random_state = random_state
        self.n_jobs = n_jobs
        self.booster_: xgb.Booster | None = None

    def get_params(self) -> dict[str, Any]:
        return boosting_params(
            learning_rate=self.learning_rate,
            max_depth=self.max_depth,
            gamma=self.gamma,
            subsample=self.subsample,
            colsample_bytree=self.colsample_bytree,
            random_state=self.random_state,
            n_jobs=self.n_jobs,
        )

    def fit(self, X: Any, y: NDArray[Any]) -> BoostedTreesRegressor:
        dtrain = xgb.DMatrix(X, label=y)
        self.booster_ = xgb.train(self.get_params(), dtrain, num_boost_round=self.n_rounds)
        return self

    def predict(self, X: Any) -> NDArray[Any]:
        if self.booster_ is None:
            raise ValueError("BoostedTreesRegressor must be fitted before predicting")
        return self.booster_.predict(xgb.DMatrix(X))


def build_learner(
    record: CandidateRecord,
    config: PartiallingConfig,
    random_state: int | None = None,
) -> NuisanceLearner:
    """Build an unfitted learner reproducing a candidate's configuration.

    Args:
        record: Candidate record with its ``family`` set
        config: Partialling configuration (iterations, node size, workers)
        random_state: Seed for the learner; defaults to the configured seed

    Raises:
        ValueError: If the record has no family tag
    """
    seed = config.random_state if random_state is None else random_state

    if record.family == ModelFamily.LINEAR:
        return make_linear_learner(
            penalty=record.penalty,
            mixing=record.mixing,
            max_iter=config.enet_max_iter,
            random_state=seed,
        )
    if record.family == ModelFamily.FOREST:
        return make_forest_learner(
            n_trees=record.n_trees,
            mtry=record.mtry,
            min_node_size=config.rf_min_node_size,
            random_state=seed,
            n_jobs=config.n_jobs,
        )
    if record.family == ModelFamily.BOOSTED:
        return BoostedTreesRegressor(
            n_rounds=record.n_rounds,
            learning_rate=record.learning_rate,
            max_depth=record.max_depth,
            gamma=record.gamma,
            subsample=record.subsample,
            colsample_bytree=record.colsample_bytree,
            random_state=seed,
            n_jobs=config.n_jobs,
        )
    raise ValueError(f"Candidate '{record.label}' has no model family")
