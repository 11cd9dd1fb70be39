"""Batch job: partial the controls out of outcome, treatment and instrument.

Loads the survey sample, builds the control matrix, runs the two-stage
nuisance estimation for each IV design variable and writes the residuals
and diagnostics tables. The second-stage IV regression reads the exported
``data_til.csv``.

Configuration comes from ``DML_``-prefixed environment variables, e.g.::

    DML_DATA_PATH=data/share.dta DML_OUTPUT_DIR=Output \
        python -m services.partialling_job.main
"""

from __future__ import annotations

import sys

import pandas as pd

from dml_iv.core.config import PartiallingConfig
from dml_iv.data import build_design_matrix, load_dataset, prepare_sample, trend_columns
from dml_iv.estimators import TargetOutcome, partial_out_targets
from dml_iv.reporting import export_results, write_residual_frame
from shared.config import DMLJobConfig
from shared.observability import get_logger, get_metrics, setup_logging, setup_metrics

logger = get_logger(__name__)


def build_sample(config: DMLJobConfig, frame: pd.DataFrame) -> tuple[pd.DataFrame, list[str]]:
    """Prepare the analysis sample and list the linear control columns.

    Trend columns are numbered by the levels of the trend group column in
    the raw data, so ``trend1cntry_1 .. trend1cntry_G`` for G countries.

    Returns:
        Tuple of (prepared sample, linear control columns)
    """
    linear = list(config.linear_controls)
    if config.trend_prefixes:
        if config.trend_group_column not in frame.columns:
            raise ValueError(f"Trend group column {config.trend_group_column} not in data")
        n_groups = frame[config.trend_group_column].nunique()
        for prefix in config.trend_prefixes:
            linear.extend(trend_columns(prefix, n_groups))

    targets = list(config.target_columns().values())
    columns = [
        *targets,
        *config.categorical_controls,
        *config.polynomial_controls,
        *linear,
    ]
    for optional in (config.cluster_column, config.weight_column, config.window_column):
        if optional is not None:
            columns.append(optional)

    sample = prepare_sample(
        frame,
        columns,
        window_column=config.window_column,
        window=config.window,
        numeric_columns=[*targets, *config.polynomial_controls, *linear],
    )
    logger.info(f"Analysis sample: {len(sample):,} observations")
    return sample, linear


def run_job(
    config: DMLJobConfig | None = None,
    partialling_config: PartiallingConfig | None = None,
) -> dict[str, TargetOutcome]:
    """Run the partialling job end to end.

    Args:
        config: Job configuration, read from the environment if omitted
        partialling_config: Library settings overriding the ones derived
            from ``config`` (reduced grids in tests, for instance)

    Returns:
        Dictionary of target key (``y``, ``d``, ``z``) to TargetOutcome
    """
    config = config or DMLJobConfig()
    setup_logging(config)
    setup_metrics(config)
    metrics = get_metrics()

    issues = config.validate_configuration()
    for issue in issues:
        logger.warning(f"Configuration issue: {issue}")
    if config.data_path is None:
        raise ValueError("No data path configured (set DML_DATA_PATH)")

    frame = load_dataset(config.data_path)
    sample, linear = build_sample(config, frame)
    design = build_design_matrix(
        sample,
        categorical=config.categorical_controls,
        polynomial=config.polynomial_controls,
        linear=linear,
    )
    logger.info(f"Control matrix: {design.shape[0]:,} x {design.shape[1]:,}")

    targets = {
        key: sample[column].to_numpy(dtype=float)
        for key, column in config.target_columns().items()
    }
    outcomes = partial_out_targets(
        targets,
        design.to_matrix(),
        config=partialling_config or config.to_partialling_config(),
    )

    for key, outcome in outcomes.items():
        if outcome.succeeded:
            result = outcome.result
            metrics.record_partialling(
                target=key,
                duration=result.duration_seconds,
                status="success",
                sample_size=result.n_observations,
                table=result.table,
                winner_family=result.winner.family,
            )
        else:
            metrics.record_partialling(
                target=key, duration=0.0, status="failed", sample_size=len(sample)
            )
            metrics.record_error(type(outcome.error).__name__, "partialling")

    results = {key: outcome.result for key, outcome in outcomes.items() if outcome.succeeded}
    if results:
        export_results(
            config.output_dir,
            results,
            sep=config.csv_separator,
            decimal=config.csv_decimal,
        )

    if len(results) == len(outcomes):
        extra = {
            column: sample[column].to_numpy()
            for column in (config.cluster_column, config.weight_column)
            if column is not None
        }
        path = write_residual_frame(
            config.output_dir / "data_til.csv",
            results,
            extra_columns=extra,
            sep=config.csv_separator,
            decimal=config.csv_decimal,
        )
        logger.info(f"Wrote second-stage input to {path}")
    else:
        failed = [key for key, outcome in outcomes.items() if not outcome.succeeded]
        logger.error(f"Partialling failed for {failed}; second-stage input not written")

    return outcomes


def main() -> int:
    """Entry point: run the job with configuration from the environment."""
    outcomes = run_job(DMLJobConfig())
    return 0 if all(outcome.succeeded for outcome in outcomes.values()) else 1


if __name__ == "__main__":
    sys.exit(main())
