"""Configuration management for DML partialling jobs."""

from .base import BaseConfiguration, Environment
from .dml_config import DMLJobConfig

__all__ = [
    "BaseConfiguration",
    "Environment",
    "DMLJobConfig",
]
