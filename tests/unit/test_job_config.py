"""Tests for the partialling job configuration."""

import pytest
from pydantic import ValidationError

from shared.config import DMLJobConfig, Environment


class TestDMLJobConfig:
    """Test DMLJobConfig defaults and environment handling."""

    def test_defaults(self):
        """Test the default variable roles and window."""
        config = DMLJobConfig()

        assert config.target_columns() == {
            "y": "eurodcat",
            "d": "chyrseduc",
            "z": "t_compschool",
        }
        assert config.categorical_controls == ["country", "chbyear", "sex", "chsex", "int_year"]
        assert config.polynomial_controls == {"agemonth": 2, "yrseduc": 2}
        assert config.window_column == "normchbyear"
        assert config.window == 10
        assert config.random_state == 180911
        assert config.csv_separator == ";"
        assert config.csv_decimal == ","

    def test_environment_variables(self, monkeypatch, tmp_path):
        """Test values read from DML_ variables, including JSON lists."""
        monkeypatch.setenv("DML_DATA_PATH", str(tmp_path / "share.dta"))
        monkeypatch.setenv("DML_N_FOLDS", "10")
        monkeypatch.setenv("DML_CATEGORICAL_CONTROLS", '["country", "sex"]')
        monkeypatch.setenv("DML_ENVIRONMENT", "testing")

        config = DMLJobConfig()

        assert config.data_path == tmp_path / "share.dta"
        assert config.n_folds == 10
        assert config.categorical_controls == ["country", "sex"]
        assert config.environment == Environment.TESTING

    def test_to_partialling_config(self):
        """Test the library configuration built from the job settings."""
        config = DMLJobConfig(random_state=7, n_folds=3, fold_n_jobs=2)
        partialling = config.to_partialling_config(rf_n_trees=[10, 20])

        assert partialling.random_state == 7
        assert partialling.n_folds == 3
        assert partialling.fold_n_jobs == 2
        assert partialling.rf_n_trees == [10, 20]

    def test_invalid_values(self):
        """Test field level validation."""
        with pytest.raises(ValidationError):
            DMLJobConfig(n_folds=1)
        with pytest.raises(ValidationError, match="single characters"):
            DMLJobConfig(csv_separator=";;")

    def test_validate_configuration(self, tmp_path):
        """Test reported configuration issues."""
        config = DMLJobConfig(
            data_path=tmp_path / "missing.dta",
            csv_separator=",",
            csv_decimal=",",
            treatment="eurodcat",
            window=None,
            environment=Environment.PRODUCTION,
        )
        issues = config.validate_configuration()

        assert any("does not exist" in issue for issue in issues)
        assert any("must differ" in issue for issue in issues)
        assert any("must be distinct" in issue for issue in issues)
        assert any("Sample window" in issue for issue in issues)
        assert any("Metrics should be enabled" in issue for issue in issues)

    def test_valid_configuration(self, tmp_path):
        """Test that a complete configuration has no issues."""
        path = tmp_path / "share.csv"
        path.write_text("a\n1\n")

        assert DMLJobConfig(data_path=path).validate_configuration() == []

    def test_to_dict(self):
        """Test the dictionary export."""
        data = DMLJobConfig().to_dict()

        assert data["outcome"] == "eurodcat"
        assert "environment" in data
