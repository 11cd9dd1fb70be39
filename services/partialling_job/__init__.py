"""Batch job partialling controls out of the IV design variables."""

from .main import build_sample, main, run_job

__all__ = ["build_sample", "main", "run_job"]
