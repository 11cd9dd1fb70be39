"""Loading and preparing the analysis sample."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import pandas as pd

from ..core.base import InputShapeError

__all__ = ["load_dataset", "prepare_sample", "trend_columns"]

logger = logging.getLogger(__name__)


def load_dataset(path: str | Path) -> pd.DataFrame:
    """Read a Stata, CSV or Parquet file into a DataFrame.

    Stata value labels are not converted, so labelled variables keep their
    numeric codes.

    Raises:
        FileNotFoundError: If ``path`` does not exist
        ValueError: If the file extension is not supported
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".dta":
        frame = pd.read_stata(path, convert_categoricals=False)
    elif suffix == ".csv":
        frame = pd.read_csv(path)
    elif suffix == ".parquet":
        frame = pd.read_parquet(path)
    else:
        raise ValueError(f"Unsupported data file type: {suffix}")

    logger.info(f"Loaded {len(frame):,} rows and {frame.shape[1]} columns from {path.name}")
    return frame


def trend_columns(prefix: str, n: int) -> list[str]:
    """Names ``prefix_1`` .. ``prefix_n`` of numbered trend columns."""
    return [f"{prefix}_{i}" for i in range(1, n + 1)]


def prepare_sample(
    frame: pd.DataFrame,
    columns: Sequence[str],
    window_column: str | None = None,
    window: int | None = None,
    numeric_columns: Sequence[str] = (),
) -> pd.DataFrame:
    """Select the analysis columns, drop incomplete rows and apply the window.

    Args:
        frame: Raw data
        columns: Columns kept in the sample
        window_column: Running variable of the sample window (optional)
        window: Keep rows whose window column is one of the integers
            ``-window .. -1`` or ``1 .. window``
        numeric_columns: Columns coerced to float

    Returns:
        Prepared sample with a fresh index

    Raises:
        InputShapeError: If columns are missing or no rows remain
    """
    columns = list(dict.fromkeys(columns))
    missing = [column for column in columns if column not in frame.columns]
    if missing:
        raise InputShapeError(f"Columns not found in data: {missing}")

    sample = frame[columns].dropna()
    n_dropped = len(frame) - len(sample)
    if n_dropped:
        logger.info(f"Dropped {n_dropped:,} rows with missing values")

    if window_column is not None and window is not None:
        if window_column not in sample.columns:
            raise InputShapeError(f"Window column {window_column} not in selected columns")
        running = sample[window_column]
        inside = running.isin([*range(-window, 0), *range(1, window + 1)])
        sample = sample[inside]

    sample = sample.assign(
        **{column: pd.to_numeric(sample[column]).astype(float) for column in numeric_columns}
    )

    if sample.empty:
        raise InputShapeError("No observations left after preparing the sample")
    return sample.reset_index(drop=True)
