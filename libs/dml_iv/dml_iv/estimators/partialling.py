"""Partialling out controls with double machine learning.

This module runs the two stages of the DML nuisance estimation for one
target vector (``partial_out``) and for the outcome, treatment and
instrument of an IV design (``partial_out_targets``). The returned
residuals feed the second-stage IV regression, which lives outside this
library.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..core.base import PartialOutResult, PartiallingError, TargetData
from ..core.candidates import DiagnosticsTable
from ..core.config import PartiallingConfig
from ..ml.cross_fitting import CrossFittingStage
from ..ml.model_selection import ModelSelectionStage
from ..utils.validation import as_design_matrix, validate_partialling_inputs

__all__ = [
    "NuisancePartialler",
    "TargetOutcome",
    "partial_out",
    "partial_out_targets",
]

logger = logging.getLogger(__name__)


class NuisancePartialler:
    """Two-stage nuisance estimation for a single target vector.

    Model selection runs to completion before cross-fitting starts; the
    frozen diagnostics table is the only state passed between the stages,
    so either stage can be rerun on its own.

    Attributes:
        config: Grids, fold count and seed shared by both stages
        selection_stage: Model selection stage
        cross_fitting_stage: Cross-fitting stage
    """

    def __init__(self, config: PartiallingConfig | None = None) -> None:
        self.config = config or PartiallingConfig()
        self.selection_stage = ModelSelectionStage(self.config)
        self.cross_fitting_stage = CrossFittingStage(self.config)

    def select(self, y: Any, x: Any) -> DiagnosticsTable:
        """Run model selection and return the frozen diagnostics table."""
        return self.selection_stage.run(y, x)

    def cross_fit(self, y: Any, x: Any, table: DiagnosticsTable) -> Any:
        """Run cross-fitting with the winner of ``table``."""
        return self.cross_fitting_stage.run(y, x, table)

    def fit(self, y: Any, x: Any, name: str | None = None) -> PartialOutResult:
        """Partial the controls in ``x`` out of ``y``.

        Args:
            y: Target vector (length N) or TargetData
            x: Design matrix (N x P), dense or sparse
            name: Name of the target for logging and reporting

        Returns:
            PartialOutResult with residuals and diagnostics

        Raises:
            InputShapeError: If inputs are inconsistent
            NoViableCandidateError: If every candidate failed
            AmbiguousWinnerError: If the winner maps to zero or several families
            FoldRefitError: If a cross-fitting refit fails
        """
        if name is None:
            name = y.name if isinstance(y, TargetData) else "target"

        start_time = time.perf_counter()
        y_array, x_matrix = validate_partialling_inputs(y, x, n_folds=self.config.n_folds)
        logger.info(f"Partialling out controls from {name} (N={y_array.shape[0]})")

        table = self.select(y_array, x_matrix)
        residuals = self.cross_fit(y_array, x_matrix, table)
        duration = time.perf_counter() - start_time

        winner = self.cross_fitting_stage.winner_
        logger.info(
            f"Finished {name}: selected {winner.label} "
            f"(test MSE {winner.mse:.6f}) in {duration:.1f}s"
        )
        return PartialOutResult(
            residuals=residuals,
            table=table,
            winner=winner,
            fold_ids=self.cross_fitting_stage.cross_fit_data_.fold_ids,
            target_name=name,
            duration_seconds=duration,
            metadata={
                "n_controls": x_matrix.shape[1],
                "fold_timings": list(self.cross_fitting_stage.fold_timings_),
                "boosting_grid": list(self.selection_stage.boosting_grid_),
            },
        )


def partial_out(
    y: Any,
    x: Any,
    config: PartiallingConfig | None = None,
    name: str | None = None,
) -> PartialOutResult:
    """Partial the controls in ``x`` out of the target ``y``.

    Convenience wrapper around ``NuisancePartialler(config).fit(y, x)``.
    """
    return NuisancePartialler(config).fit(y, x, name=name)


@dataclass
class TargetOutcome:
    """Result or failure of partialling one target of a multi-target run."""

    name: str
    result: PartialOutResult | None = None
    error: PartiallingError | None = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None


def partial_out_targets(
    targets: Mapping[str, Any],
    x: Any,
    config: PartiallingConfig | None = None,
) -> dict[str, TargetOutcome]:
    """Partial the controls out of several targets independently.

    Every target runs its own model selection and cross-fitting on the same
    design matrix. A pipeline error for one target is recorded in its
    outcome and does not stop the remaining targets.

    Args:
        targets: Mapping of target name to target vector, e.g. ``{"y": y,
            "d": d, "z": z}`` for outcome, treatment and instrument
        x: Shared design matrix
        config: Settings shared by all targets

    Returns:
        Dictionary of target name to TargetOutcome, in input order
    """
    config = config or PartiallingConfig()
    x_matrix = as_design_matrix(x)

    outcomes: dict[str, TargetOutcome] = {}
    for name, y in targets.items():
        try:
            result = NuisancePartialler(config).fit(y, x_matrix, name=name)
            outcomes[name] = TargetOutcome(name=name, result=result)
        except PartiallingError as e:
            logger.error(f"Partialling failed for {name}: {e}")
            outcomes[name] = TargetOutcome(name=name, error=e)
    return outcomes
