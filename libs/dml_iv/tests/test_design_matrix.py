"""Tests for the sparse control matrix."""

import numpy as np
import pandas as pd
import pytest
import scipy.sparse as sp

from dml_iv.core.base import InputShapeError
from dml_iv.data.design_matrix import (
    build_design_matrix,
    indicator_block,
    orthogonal_polynomial,
)


class TestOrthogonalPolynomial:
    """Test the orthogonal polynomial basis."""

    def test_matches_r_poly(self):
        """Test against the values of poly(1:5, 2) in R."""
        basis = orthogonal_polynomial(np.arange(1.0, 6.0), 2)
        expected = np.array(
            [
                [-0.6324555, 0.5345225],
                [-0.3162278, -0.2672612],
                [0.0, -0.5345225],
                [0.3162278, -0.2672612],
                [0.6324555, 0.5345225],
            ]
        )

        np.testing.assert_allclose(basis, expected, atol=1e-7)

    def test_orthonormal_and_centered(self):
        """Test unit-norm columns orthogonal to each other and the constant."""
        rng = np.random.default_rng(0)
        basis = orthogonal_polynomial(rng.integers(600, 900, size=200), 3)

        np.testing.assert_allclose(basis.T @ basis, np.eye(3), atol=1e-10)
        np.testing.assert_allclose(basis.sum(axis=0), 0.0, atol=1e-10)

    def test_too_few_distinct_values(self):
        """Test that a degree needs more distinct points than itself."""
        with pytest.raises(InputShapeError, match="more than 2 distinct values"):
            orthogonal_polynomial(np.array([1.0, 2.0, 1.0, 2.0]), 2)

    def test_degree_must_be_positive(self):
        """Test that degree 0 is rejected."""
        with pytest.raises(ValueError, match="at least 1"):
            orthogonal_polynomial(np.arange(5.0), 0)


class TestIndicatorBlock:
    """Test fixed-effect indicators."""

    def test_all_levels(self):
        """Test one column per sorted level."""
        block, names = indicator_block(pd.Series([13, 11, 12, 11], name="country"), False)

        assert names == ["factor(country)11", "factor(country)12", "factor(country)13"]
        np.testing.assert_array_equal(
            block.toarray(),
            [[0, 0, 1], [1, 0, 0], [0, 1, 0], [1, 0, 0]],
        )

    def test_drop_first(self):
        """Test that the reference level is dropped."""
        block, names = indicator_block(pd.Series([1, 2, 1], name="sex"), True)

        assert names == ["factor(sex)2"]
        assert block.shape == (3, 1)

    def test_missing_values(self):
        """Test that missing levels are rejected."""
        with pytest.raises(InputShapeError, match="missing values"):
            indicator_block(pd.Series([1.0, np.nan], name="sex"), False)


class TestBuildDesignMatrix:
    """Test the full control matrix."""

    @pytest.fixture
    def frame(self):
        return pd.DataFrame(
            {
                "country": [11, 12, 13, 11, 12, 13],
                "sex": [1, 2, 1, 2, 1, 2],
                "age": [50.0, 61.0, 72.0, 55.0, 66.0, 70.0],
                "trend": [-2.0, -1.0, 1.0, 2.0, 3.0, -3.0],
            }
        )

    def test_columns(self, frame):
        """Test the column layout: factors, polynomials, linear terms."""
        design = build_design_matrix(
            frame, categorical=["country", "sex"], polynomial={"age": 2}, linear=["trend"]
        )

        assert design.column_names == [
            "factor(country)11",
            "factor(country)12",
            "factor(country)13",
            "factor(sex)2",
            "poly(age, 2)1",
            "poly(age, 2)2",
            "trend",
        ]
        assert design.shape == (6, 7)
        assert sp.issparse(design.values)

    def test_first_factor_spans_intercept(self, frame):
        """Test that the first factor's indicators sum to one on every row."""
        design = build_design_matrix(frame, categorical=["country", "sex"])
        matrix = design.to_matrix().toarray()

        np.testing.assert_array_equal(matrix[:, :3].sum(axis=1), np.ones(6))

    def test_linear_values_pass_through(self, frame):
        """Test that linear columns are copied as they are."""
        design = build_design_matrix(frame, linear=["trend"])

        np.testing.assert_array_equal(design.to_matrix().toarray().ravel(), frame["trend"])

    def test_missing_column(self, frame):
        """Test that unknown columns are reported."""
        with pytest.raises(InputShapeError, match="not found"):
            build_design_matrix(frame, categorical=["region"])

    def test_nothing_requested(self, frame):
        """Test that an empty specification is rejected."""
        with pytest.raises(InputShapeError, match="At least one control"):
            build_design_matrix(frame)
