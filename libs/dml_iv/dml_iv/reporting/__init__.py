"""Export of partialling results to delimited files."""

from .export import (
    export_results,
    read_diagnostics,
    read_residuals,
    write_diagnostics,
    write_residual_frame,
    write_residuals,
)

__all__ = [
    "export_results",
    "read_diagnostics",
    "read_residuals",
    "write_diagnostics",
    "write_residual_frame",
    "write_residuals",
]
