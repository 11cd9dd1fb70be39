"""Candidate records and the diagnostics table of the model search.

Every configuration tried during model selection becomes one
``CandidateRecord``. Records carry an explicit ``ModelFamily`` tag; the
hyperparameter fields that do not apply to the family stay ``None``, so an
exported table leaves those cells empty.
"""

from __future__ import annotations

import dataclasses
import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np
import pandas as pd

from .base import AmbiguousWinnerError, NoViableCandidateError, PartiallingError

__all__ = [
    "HYPERPARAMETER_FIELDS",
    "CandidateRecord",
    "DiagnosticsTable",
    "ModelFamily",
    "infer_family",
    "resolve_family",
    "resolve_winner",
]


class ModelFamily(str, Enum):
    """Predictor families searched during model selection."""

    LINEAR = "linear"
    FOREST = "forest"
    BOOSTED = "boosted"


HYPERPARAMETER_FIELDS: tuple[str, ...] = (
    "penalty",
    "mixing",
    "mtry",
    "n_trees",
    "n_rounds",
    "learning_rate",
    "max_depth",
    "gamma",
    "subsample",
    "colsample_bytree",
)

_INTEGER_FIELDS = frozenset({"mtry", "n_trees", "n_rounds", "max_depth"})

# Hyperparameter whose presence identifies each family.
FAMILY_MARKERS: dict[ModelFamily, str] = {
    ModelFamily.LINEAR: "penalty",
    ModelFamily.FOREST: "mtry",
    ModelFamily.BOOSTED: "learning_rate",
}


@dataclass(frozen=True)
class CandidateRecord:
    """One attempted configuration and its test-set error.

    Attributes:
        family: Predictor family, ``None`` only for records read back from a
            table without a family column
        label: Display name of the configuration
        mse: Test-set mean squared error, NaN for failed candidates
        error: Failure message when the configuration could not be fitted
    """

    family: ModelFamily | None
    label: str
    mse: float
    penalty: float | None = None
    mixing: float | None = None
    mtry: int | None = None
    n_trees: int | None = None
    n_rounds: int | None = None
    learning_rate: float | None = None
    max_depth: int | None = None
    gamma: float | None = None
    subsample: float | None = None
    colsample_bytree: float | None = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None or not math.isfinite(self.mse)

    @property
    def hyperparameters(self) -> dict[str, Any]:
        """Populated hyperparameter fields."""
        return {
            name: getattr(self, name)
            for name in HYPERPARAMETER_FIELDS
            if getattr(self, name) is not None
        }

    def to_row(self) -> dict[str, Any]:
        row: dict[str, Any] = {
            "model": self.label,
            "family": self.family.value if self.family is not None else None,
            "MSE": self.mse,
        }
        for name in HYPERPARAMETER_FIELDS:
            row[name] = getattr(self, name)
        row["error"] = self.error
        return row


def infer_family(record: CandidateRecord) -> ModelFamily:
    """Infer the family of a record from its populated hyperparameters.

    Raises:
        AmbiguousWinnerError: If zero or several family markers are set
    """
    matches = [
        family
        for family, marker in FAMILY_MARKERS.items()
        if getattr(record, marker) is not None
    ]
    if len(matches) != 1:
        found = ", ".join(m.value for m in matches) or "none"
        raise AmbiguousWinnerError(
            f"Candidate '{record.label}' must match exactly one model family "
            f"from its hyperparameters, matched: {found}"
        )
    return matches[0]


def resolve_family(record: CandidateRecord) -> ModelFamily:
    """Resolve the family of a record, checking the tag against its fields."""
    inferred = infer_family(record)
    if record.family is not None and record.family != inferred:
        raise AmbiguousWinnerError(
            f"Candidate '{record.label}' is tagged {record.family.value} "
            f"but its hyperparameters describe {inferred.value}"
        )
    return inferred


class DiagnosticsTable:
    """Append-only ordered collection of candidate records.

    The table is filled during model selection and frozen before
    cross-fitting starts; a frozen table rejects further records.
    """

    COLUMNS: tuple[str, ...] = ("model", "family", "MSE", *HYPERPARAMETER_FIELDS, "error")

    def __init__(self, records: Iterable[CandidateRecord] | None = None) -> None:
        self._records: list[CandidateRecord] = []
        self._frozen = False
        for record in records or ():
            self.append(record)

    def append(self, record: CandidateRecord) -> None:
        if self._frozen:
            raise PartiallingError("Diagnostics table is frozen; records cannot be added")
        self._records.append(record)

    def freeze(self) -> DiagnosticsTable:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def records(self) -> tuple[CandidateRecord, ...]:
        return tuple(self._records)

    @property
    def n_failed(self) -> int:
        return sum(record.failed for record in self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[CandidateRecord]:
        return iter(tuple(self._records))

    def __getitem__(self, index: int) -> CandidateRecord:
        return self._records[index]

    def by_family(self, family: ModelFamily) -> list[CandidateRecord]:
        return [record for record in self._records if record.family == family]

    def best(self) -> CandidateRecord:
        """Return the non-failed record with the smallest error.

        Ties go to the record that was appended first.

        Raises:
            NoViableCandidateError: If the table has no successful record
        """
        viable = [record for record in self._records if not record.failed]
        if not viable:
            raise NoViableCandidateError(
                f"None of the {len(self._records)} candidates could be fitted"
            )
        return min(viable, key=lambda record: record.mse)

    def to_frame(self) -> pd.DataFrame:
        """Export the table as a DataFrame with one row per record."""
        frame = pd.DataFrame(
            [record.to_row() for record in self._records], columns=list(self.COLUMNS)
        )
        numeric = ["MSE", *HYPERPARAMETER_FIELDS]
        frame[numeric] = frame[numeric].astype(float)
        return frame

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> DiagnosticsTable:
        """Rebuild a frozen table from an exported DataFrame.

        The ``family`` and ``error`` columns are optional; records without a
        family tag are resolved from their populated hyperparameters.
        """
        records = []
        for position, row in enumerate(frame.to_dict(orient="records")):
            values: dict[str, Any] = {}
            for name in HYPERPARAMETER_FIELDS:
                value = row.get(name)
                if _is_missing(value):
                    values[name] = None
                elif name in _INTEGER_FIELDS:
                    values[name] = int(value)
                else:
                    values[name] = float(value)

            family = row.get("family")
            error = row.get("error")
            records.append(
                CandidateRecord(
                    family=None if _is_missing(family) else ModelFamily(family),
                    label=str(row.get("model", f"candidate {position + 1}")),
                    mse=float(row["MSE"]),
                    error=None if _is_missing(error) else str(error),
                    **values,
                )
            )
        return cls(records).freeze()


def resolve_winner(table: DiagnosticsTable) -> CandidateRecord:
    """Pick the minimal-error record and pin its family.

    Returns:
        The winning record with its ``family`` field set

    Raises:
        NoViableCandidateError: If every candidate failed
        AmbiguousWinnerError: If the winner maps to zero or several families
    """
    winner = table.best()
    family = resolve_family(winner)
    return dataclasses.replace(winner, family=family)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and np.isnan(value):
        return True
    return value is pd.NA
