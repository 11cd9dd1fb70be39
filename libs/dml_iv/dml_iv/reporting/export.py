"""Export of residual vectors and diagnostics tables.

Files use the semicolon-separated, decimal-comma layout of R's
``write.csv2`` without row names, which the second-stage scripts read.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from ..core.base import InputShapeError, PartialOutResult
from ..core.candidates import DiagnosticsTable

__all__ = [
    "export_results",
    "read_diagnostics",
    "read_residuals",
    "write_diagnostics",
    "write_residual_frame",
    "write_residuals",
]

logger = logging.getLogger(__name__)


def write_residuals(
    path: str | Path,
    residuals: NDArray[np.float64],
    column: str = "til",
    sep: str = ";",
    decimal: str = ",",
) -> Path:
    """Write a residual vector as a one-column delimited file."""
    path = Path(path)
    pd.DataFrame({column: np.asarray(residuals, dtype=np.float64)}).to_csv(
        path, sep=sep, decimal=decimal, index=False
    )
    return path


def write_diagnostics(
    path: str | Path,
    table: DiagnosticsTable,
    sep: str = ";",
    decimal: str = ",",
) -> Path:
    """Write a diagnostics table with one row per candidate."""
    path = Path(path)
    table.to_frame().to_csv(path, sep=sep, decimal=decimal, index=False)
    return path


def read_residuals(path: str | Path, sep: str = ";", decimal: str = ",") -> NDArray[np.float64]:
    """Read a residual vector written by ``write_residuals``."""
    frame = pd.read_csv(path, sep=sep, decimal=decimal)
    return frame.iloc[:, 0].to_numpy(dtype=np.float64)


def read_diagnostics(path: str | Path, sep: str = ";", decimal: str = ",") -> DiagnosticsTable:
    """Read a diagnostics table written by ``write_diagnostics``."""
    frame = pd.read_csv(path, sep=sep, decimal=decimal)
    return DiagnosticsTable.from_frame(frame)


def write_residual_frame(
    path: str | Path,
    results: Mapping[str, PartialOutResult],
    extra_columns: Mapping[str, Any] | None = None,
    sep: str = ";",
    decimal: str = ",",
) -> Path:
    """Write the residuals of several targets side by side.

    Columns are named ``{key}_til`` in the order of ``results``, followed by
    ``extra_columns`` such as cluster identifiers or weights that the
    second-stage regression needs.

    Raises:
        InputShapeError: If the columns differ in length
    """
    columns: dict[str, Any] = {
        f"{key}_til": np.asarray(result.residuals, dtype=np.float64)
        for key, result in results.items()
    }
    for name, values in (extra_columns or {}).items():
        columns[name] = np.asarray(values)

    lengths = {len(values) for values in columns.values()}
    if len(lengths) > 1:
        raise InputShapeError(f"Residual frame columns differ in length: {sorted(lengths)}")

    path = Path(path)
    pd.DataFrame(columns).to_csv(path, sep=sep, decimal=decimal, index=False)
    return path


def export_results(
    output_dir: str | Path,
    results: Mapping[str, PartialOutResult],
    sep: str = ";",
    decimal: str = ",",
) -> dict[str, tuple[Path, Path]]:
    """Write ``{key}_til.csv`` and ``{key}_tablemse.csv`` for every result.

    Returns:
        Dictionary of key to (residual file, diagnostics file)
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = {}
    for key, result in results.items():
        residual_path = write_residuals(
            output_dir / f"{key}_til.csv", result.residuals, sep=sep, decimal=decimal
        )
        table_path = write_diagnostics(
            output_dir / f"{key}_tablemse.csv", result.table, sep=sep, decimal=decimal
        )
        written[key] = (residual_path, table_path)
        logger.info(f"Exported {key} residuals and diagnostics to {output_dir}")
    return written
