"""Logging setup for partialling jobs."""

import logging
import sys

from shared.config import DMLJobConfig, Environment


def setup_logging(config: DMLJobConfig | None = None) -> None:
    """Set up logging configuration."""
    if config is None:
        config = DMLJobConfig()

    # Configure log level based on environment
    if config.environment == Environment.DEVELOPMENT:
        log_level = logging.DEBUG
    else:
        log_level = logging.INFO

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level, format=log_format, handlers=[logging.StreamHandler(sys.stdout)]
    )

    # Boosting and tree learners are chatty below WARNING
    logging.getLogger("xgboost").setLevel(logging.WARNING)
    logging.getLogger("joblib").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
