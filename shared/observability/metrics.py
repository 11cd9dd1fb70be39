"""Prometheus metrics for partialling jobs."""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from dml_iv.core.candidates import DiagnosticsTable, ModelFamily
from shared.config import DMLJobConfig


class PartiallingMetrics:
    """Metrics collection for partialling runs."""

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()

        self.partialling_duration = Histogram(
            "dml_partialling_duration_seconds",
            "Duration of partialling one target",
            ["target", "status"],
            registry=self.registry,
        )

        self.partialling_runs = Counter(
            "dml_partialling_runs_total",
            "Total number of partialling runs",
            ["target", "status"],
            registry=self.registry,
        )

        self.candidates = Counter(
            "dml_candidates_total",
            "Candidate models evaluated during model selection",
            ["family", "status"],
            registry=self.registry,
        )

        self.winning_family = Gauge(
            "dml_winning_family",
            "1 for the family of the selected model, 0 otherwise",
            ["target", "family"],
            registry=self.registry,
        )

        self.sample_size_gauge = Gauge(
            "dml_sample_size",
            "Number of observations of the current target",
            ["target"],
            registry=self.registry,
        )

        self.errors = Counter(
            "dml_errors_total",
            "Total errors",
            ["error_type", "component"],
            registry=self.registry,
        )

    def record_partialling(
        self,
        target: str,
        duration: float,
        status: str,
        sample_size: int,
        table: DiagnosticsTable | None = None,
        winner_family: ModelFamily | None = None,
    ) -> None:
        """Record the partialling run of one target."""
        self.partialling_duration.labels(target=target, status=status).observe(duration)
        self.partialling_runs.labels(target=target, status=status).inc()
        self.sample_size_gauge.labels(target=target).set(sample_size)

        if table is not None:
            for record in table:
                family = record.family.value if record.family else "unknown"
                outcome = "failed" if record.failed else "fitted"
                self.candidates.labels(family=family, status=outcome).inc()

        if winner_family is not None:
            for family in ModelFamily:
                self.winning_family.labels(target=target, family=family.value).set(
                    1 if family == winner_family else 0
                )

    def record_error(self, error_type: str, component: str) -> None:
        """Record an error."""
        self.errors.labels(error_type=error_type, component=component).inc()


# Global metrics instance
_metrics: PartiallingMetrics | None = None


def get_metrics() -> PartiallingMetrics:
    """Get the global metrics instance."""
    global _metrics
    if _metrics is None:
        _metrics = PartiallingMetrics()
    return _metrics


def setup_metrics(config: DMLJobConfig | None = None) -> None:
    """Set up metrics collection."""
    if config is None:
        config = DMLJobConfig()

    if config.enable_metrics:
        metrics = get_metrics()
        # Serve the collectors' own registry, not the process-wide default
        start_http_server(config.metrics_port, registry=metrics.registry)
