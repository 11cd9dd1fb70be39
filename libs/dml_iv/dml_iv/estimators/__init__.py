"""Estimators built on the partialling stages."""

from .partialling import (
    NuisancePartialler,
    TargetOutcome,
    partial_out,
    partial_out_targets,
)

__all__ = [
    "NuisancePartialler",
    "TargetOutcome",
    "partial_out",
    "partial_out_targets",
]
