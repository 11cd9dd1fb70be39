"""Logging and metrics for partialling jobs."""

from .logging import get_logger, setup_logging
from .metrics import PartiallingMetrics, get_metrics, setup_metrics

__all__ = [
    "PartiallingMetrics",
    "get_logger",
    "get_metrics",
    "setup_logging",
    "setup_metrics",
]
