"""End-to-end tests for partialling out controls."""

import numpy as np
import pytest

from dml_iv.core.base import InputShapeError, PartialOutResult, TargetData
from dml_iv.core.candidates import DiagnosticsTable
from dml_iv.core.config import PartiallingConfig
from dml_iv.estimators.partialling import (
    NuisancePartialler,
    partial_out,
    partial_out_targets,
)


class TestPartialOut:
    """Test the two-stage pipeline for one target."""

    @pytest.fixture
    def result(self, fast_config, linear_data):
        y, x = linear_data
        return partial_out(y, x, config=fast_config, name="y")

    def test_result_contents(self, result):
        """Test residuals, table, winner and folds of a run."""
        assert isinstance(result, PartialOutResult)
        assert result.n_observations == 100
        assert result.target_name == "y"
        assert len(result.table) == 23
        assert result.table.frozen
        assert result.winner.family is not None
        assert sorted(np.unique(result.fold_ids).tolist()) == [0, 1, 2, 3, 4]
        assert result.duration_seconds > 0
        assert result.metadata["n_controls"] == 5

    def test_winner_is_table_minimum(self, result):
        """Test that the refit model is the minimal-error candidate."""
        best = result.table.best()

        assert result.winner.label == best.label
        assert result.winner.mse == best.mse

    def test_residuals_remove_signal(self, result, linear_data):
        """Test that the controls explain most of the target."""
        y, _ = linear_data

        assert np.var(result.residuals) < 0.5 * np.var(y)

    def test_summary(self, result):
        """Test the human readable summary."""
        summary = result.summary()

        assert "Partialled target: y" in summary
        assert "Candidates evaluated: 23 (0 failed)" in summary
        assert "Cross-fitting folds: 5" in summary

    def test_target_data_name(self, fast_config, linear_data):
        """Test that TargetData names the result."""
        y, x = linear_data
        result = partial_out(TargetData(values=y, name="eurodcat"), x, config=fast_config)

        assert result.target_name == "eurodcat"

    def test_invalid_inputs(self, fast_config, linear_data):
        """Test that shape errors surface before any fitting."""
        y, x = linear_data

        with pytest.raises(InputShapeError):
            partial_out(y[:90], x, config=fast_config)


class TestNuisancePartialler:
    """Test the reusable two-stage object."""

    def test_stages_are_reproducible(self, fast_config, linear_data):
        """Test that rerunning with the same seed gives identical output."""
        y, x = linear_data
        first = NuisancePartialler(fast_config).fit(y, x)
        second = NuisancePartialler(fast_config).fit(y, x)

        np.testing.assert_array_equal(first.residuals, second.residuals)
        assert first.table.to_frame().equals(second.table.to_frame())

    def test_separate_stages_match_combined_run(self, fast_config, linear_data):
        """Test that selection then repeated cross-fitting equals one fit."""
        y, x = linear_data
        combined = NuisancePartialler(fast_config).fit(y, x)

        partialler = NuisancePartialler(fast_config)
        table = partialler.select(y, x)
        first = partialler.cross_fit(y, x, table)
        second = partialler.cross_fit(y, x, table)

        np.testing.assert_array_equal(first, combined.residuals)
        np.testing.assert_array_equal(second, combined.residuals)

    def test_cross_fit_from_exported_table(self, fast_config, linear_data):
        """Test that a table read back from a frame reproduces the residuals."""
        y, x = linear_data
        partialler = NuisancePartialler(fast_config)
        result = partialler.fit(y, x)

        frame = result.table.to_frame().drop(columns=["family"])
        restored = DiagnosticsTable.from_frame(frame)
        residuals = NuisancePartialler(fast_config).cross_fit(y, x, restored)

        np.testing.assert_allclose(residuals, result.residuals)

    def test_seed_changes_split(self, fast_config, linear_data):
        """Test that a different seed gives a different held-out split."""
        y, x = linear_data
        other = fast_config.model_copy(update={"random_state": 1})

        first = NuisancePartialler(fast_config)
        second = NuisancePartialler(other)
        first.select(y, x)
        second.select(y, x)

        assert not np.array_equal(
            first.selection_stage.split_.test_indices,
            second.selection_stage.split_.test_indices,
        )


class TestPartialOutTargets:
    """Test partialling several targets on one design matrix."""

    def test_three_targets(self, fast_config, linear_data):
        """Test outcome, treatment and instrument in one call."""
        y, x = linear_data
        rng = np.random.default_rng(5)
        d = x[:, 1] + rng.normal(size=100)
        z = x[:, 2] - x[:, 3] + rng.normal(size=100)

        outcomes = partial_out_targets({"y": y, "d": d, "z": z}, x, config=fast_config)

        assert list(outcomes) == ["y", "d", "z"]
        assert all(outcome.succeeded for outcome in outcomes.values())
        assert outcomes["d"].result.target_name == "d"

    def test_failure_isolated_per_target(self, fast_config, linear_data):
        """Test that one failing target does not stop the others."""
        y, x = linear_data

        outcomes = partial_out_targets({"y": y, "bad": y[:50]}, x, config=fast_config)

        assert outcomes["y"].succeeded
        assert not outcomes["bad"].succeeded
        assert isinstance(outcomes["bad"].error, InputShapeError)

    def test_non_numeric_target_isolated(self, fast_config, linear_data):
        """Test that a target of strings fails alone and later targets still run."""
        y, x = linear_data
        labels = np.array(["low", "high"] * 50)

        outcomes = partial_out_targets({"labels": labels, "y": y}, x, config=fast_config)

        assert not outcomes["labels"].succeeded
        assert isinstance(outcomes["labels"].error, InputShapeError)
        assert outcomes["y"].succeeded

    def test_targets_do_not_share_state(self, fast_config, linear_data):
        """Test that a target's result does not depend on the other targets."""
        y, x = linear_data
        rng = np.random.default_rng(9)
        d = rng.normal(size=100)

        together = partial_out_targets({"d": d, "y": y}, x, config=fast_config)
        alone = partial_out(y, x, config=fast_config)

        np.testing.assert_array_equal(together["y"].result.residuals, alone.residuals)


@pytest.mark.slow
class TestDefaultConfiguration:
    """Test the pipeline with the default grids."""

    def test_partial_out_defaults(self, linear_data):
        """Test a full-default run on a small design."""
        y, x = linear_data
        result = partial_out(y, x, config=PartiallingConfig(), name="y")

        assert len(result.table) == 23
        assert np.all(np.isfinite(result.residuals))
