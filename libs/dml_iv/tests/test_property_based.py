"""Property-based tests for fold assignment and winner resolution.

Hypothesis generates fold counts, sample sizes and diagnostics tables to
check the invariants the cross-fitting stage relies on:

1. **Fold partition**: every row lands in exactly one fold, folds differ
   in size by at most one, and the first ``N mod K`` folds are the larger
2. **Seeded folds**: the same seed always gives the same assignment
3. **Winner**: the resolved winner has the minimal error among successful
   candidates, is the first such record on ties, and is never a failed row
"""

import math

import numpy as np
import pytest
from hypothesis import assume, given, settings
from hypothesis import strategies as st

from dml_iv.core.base import InputShapeError, NoViableCandidateError
from dml_iv.core.candidates import (
    CandidateRecord,
    DiagnosticsTable,
    ModelFamily,
    resolve_winner,
)
from dml_iv.ml.cross_fitting import assign_folds, create_cross_fit_data


@st.composite
def fold_settings(draw, max_size=300):
    """Generate a sample size, a feasible fold count and a seed."""
    n_folds = draw(st.integers(min_value=2, max_value=10))
    n_samples = draw(st.integers(min_value=n_folds, max_value=max_size))
    seed = draw(st.integers(min_value=0, max_value=2**31 - 1))
    return n_samples, n_folds, seed


@st.composite
def candidate_records(draw):
    """Generate a record of a random family with a possibly failed error."""
    family = draw(st.sampled_from(list(ModelFamily)))
    failed = draw(st.booleans())
    mse = float("nan") if failed else draw(st.sampled_from([0.1, 0.2, 0.3, 0.5, 1.0]))

    if family == ModelFamily.LINEAR:
        fields = {"penalty": 0.01, "mixing": draw(st.sampled_from([0.0, 0.4, 1.0]))}
    elif family == ModelFamily.FOREST:
        fields = {"mtry": draw(st.integers(1, 10)), "n_trees": 500}
    else:
        fields = {"n_rounds": draw(st.integers(1, 500)), "learning_rate": 0.1, "max_depth": 3}

    return CandidateRecord(
        family=family,
        label=draw(st.text(min_size=1, max_size=12)),
        mse=mse,
        error="failed" if failed else None,
        **fields,
    )


class TestFoldPartitionProperties:
    """Property-based tests for the K-fold partition."""

    @given(fold_settings())
    @settings(max_examples=50, deadline=None)
    def test_partition(self, params):
        """Test that the folds partition the rows with balanced sizes."""
        n_samples, n_folds, seed = params
        data = create_cross_fit_data(n_samples, n_folds, random_state=seed)

        counts = np.bincount(data.fold_ids, minlength=n_folds)
        assert counts.sum() == n_samples
        assert counts.max() - counts.min() <= 1
        n_large = n_samples % n_folds
        assert np.all(counts[:n_large] == math.ceil(n_samples / n_folds))
        assert np.all(counts[n_large:] == n_samples // n_folds)

        all_val = np.sort(np.concatenate(data.val_indices))
        np.testing.assert_array_equal(all_val, np.arange(n_samples))

    @given(fold_settings(max_size=100))
    @settings(max_examples=25, deadline=None)
    def test_seeded(self, params):
        """Test that fold assignment depends only on its inputs."""
        n_samples, n_folds, seed = params

        np.testing.assert_array_equal(
            assign_folds(n_samples, n_folds, seed), assign_folds(n_samples, n_folds, seed)
        )

    @given(st.integers(min_value=2, max_value=20), st.integers(min_value=0, max_value=19))
    @settings(max_examples=25, deadline=None)
    def test_too_few_rows(self, n_folds, n_samples):
        """Test that fewer rows than folds always fails."""
        assume(n_samples < n_folds)

        with pytest.raises(InputShapeError):
            create_cross_fit_data(n_samples, n_folds)


class TestWinnerProperties:
    """Property-based tests for winner resolution."""

    @given(st.lists(candidate_records(), min_size=1, max_size=25))
    @settings(max_examples=100, deadline=None)
    def test_winner_is_first_minimum(self, records):
        """Test that the winner is the first successful record with minimal error."""
        table = DiagnosticsTable(records).freeze()
        viable = [record for record in records if not record.failed]

        if not viable:
            with pytest.raises(NoViableCandidateError):
                resolve_winner(table)
            return

        winner = resolve_winner(table)
        min_mse = min(record.mse for record in viable)
        first = next(record for record in viable if record.mse == min_mse)

        assert not winner.failed
        assert winner.mse == min_mse
        assert winner == first

    @given(st.lists(candidate_records(), min_size=1, max_size=25))
    @settings(max_examples=50, deadline=None)
    def test_winner_survives_frame_round_trip(self, records):
        """Test that exporting the table keeps the winner."""
        assume(any(not record.failed for record in records))
        table = DiagnosticsTable(records)
        restored = DiagnosticsTable.from_frame(table.to_frame().drop(columns=["family"]))

        assert resolve_winner(restored).family == resolve_winner(table).family
        assert resolve_winner(restored).mse == resolve_winner(table).mse
