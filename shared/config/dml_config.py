"""Configuration of the DML partialling batch job."""

from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import SettingsConfigDict

from dml_iv.core.config import PartiallingConfig

from .base import BaseConfiguration, Environment


class DMLJobConfig(BaseConfiguration):
    """Configuration for the partialling job.

    Values are read from ``DML_``-prefixed environment variables; list and
    mapping fields take JSON, e.g. ``DML_CATEGORICAL_CONTROLS='["country"]'``.
    """

    model_config = SettingsConfigDict(
        env_prefix="DML_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Input and output
    data_path: Path | None = Field(default=None, description="Stata, CSV or Parquet file")
    output_dir: Path = Field(default=Path("Output"), description="Export directory")
    csv_separator: str = Field(default=";", description="Field separator of exports")
    csv_decimal: str = Field(default=",", description="Decimal mark of exports")

    # Variable roles
    outcome: str = Field(default="eurodcat", description="Outcome column (y)")
    treatment: str = Field(default="chyrseduc", description="Treatment column (d)")
    instrument: str = Field(default="t_compschool", description="Instrument column (z)")
    categorical_controls: list[str] = Field(
        default_factory=lambda: ["country", "chbyear", "sex", "chsex", "int_year"],
        description="Controls entered as fixed effects",
    )
    polynomial_controls: dict[str, int] = Field(
        default_factory=lambda: {"agemonth": 2, "yrseduc": 2},
        description="Controls entered as orthogonal polynomials, with degree",
    )
    linear_controls: list[str] = Field(
        default_factory=list, description="Controls entered linearly"
    )
    trend_prefixes: list[str] = Field(
        default_factory=lambda: ["trend1cntry", "trend2cntry"],
        description="Prefixes of numbered group-specific trend columns",
    )
    trend_group_column: str = Field(
        default="country", description="Column whose level count numbers the trends"
    )
    cluster_column: str | None = Field(
        default="country", description="Cluster identifier kept for inference"
    )
    weight_column: str | None = Field(
        default="w_ch", description="Regression weights kept for inference"
    )

    # Sample window
    window_column: str | None = Field(
        default="normchbyear", description="Running variable of the sample window"
    )
    window: int | None = Field(default=10, ge=1, description="Half-width of the window")

    # Estimation
    random_state: int = Field(default=180911, description="Global seed")
    n_folds: int = Field(default=5, ge=2, description="Cross-fitting folds")
    n_jobs: int = Field(default=1, description="Parallel workers inside learners")
    fold_n_jobs: int = Field(default=1, description="Folds refit concurrently")

    # Monitoring
    enable_metrics: bool = Field(default=False, description="Expose Prometheus metrics")
    metrics_port: int = Field(default=9090, description="Metrics endpoint port")

    @field_validator("csv_separator", "csv_decimal")
    @classmethod
    def validate_single_character(cls, v: str) -> str:
        if len(v) != 1:
            raise ValueError("CSV separator and decimal mark must be single characters")
        return v

    def target_columns(self) -> dict[str, str]:
        """Export key to column of the three partialled targets."""
        return {"y": self.outcome, "d": self.treatment, "z": self.instrument}

    def to_partialling_config(self, **overrides: Any) -> PartiallingConfig:
        """Build the library configuration from the job settings."""
        settings = {
            "random_state": self.random_state,
            "n_folds": self.n_folds,
            "n_jobs": self.n_jobs,
            "fold_n_jobs": self.fold_n_jobs,
        }
        settings.update(overrides)
        return PartiallingConfig(**settings)

    def validate_configuration(self) -> list[str]:
        """Validate partialling job specific configuration."""
        issues = super().validate_configuration()

        if self.data_path is None:
            issues.append("No data path configured (set DML_DATA_PATH)")
        elif not self.data_path.exists():
            issues.append(f"Data file does not exist: {self.data_path}")

        if self.csv_separator == self.csv_decimal:
            issues.append("CSV separator and decimal mark must differ")

        if (self.window is None) != (self.window_column is None):
            issues.append("Sample window needs both a window column and a width")

        roles = [self.outcome, self.treatment, self.instrument]
        if len(set(roles)) != len(roles):
            issues.append("Outcome, treatment and instrument must be distinct columns")

        if self.environment == Environment.PRODUCTION and not self.enable_metrics:
            issues.append("Metrics should be enabled in production")

        return issues
