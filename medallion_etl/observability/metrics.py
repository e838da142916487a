"""
Prometheus metrics collection for the medallion anomaly pipeline

This module provides metrics instrumentation for monitoring stage
throughput, data quality and the external prediction service.
"""
import os
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)


# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# STAGE METRICS
# =======================

# Records handled per stage and outcome
records_processed_total = Counter(
    name="medallion_records_processed_total",
    documentation="Total number of records handled by a pipeline stage",
    labelnames=["stage", "status"],  # status: succeeded, failed, duplicate, skipped
    registry=REGISTRY,
)

# Stage duration histogram
stage_duration_seconds = Histogram(
    name="medallion_stage_duration_seconds",
    documentation="Time spent running a pipeline stage in seconds",
    labelnames=["stage"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
    registry=REGISTRY,
)

# Stage runs by final status
stage_runs_total = Counter(
    name="medallion_stage_runs_total",
    documentation="Total number of pipeline stage runs by final status",
    labelnames=["stage", "status"],
    registry=REGISTRY,
)

# =======================
# DATA QUALITY METRICS
# =======================

data_quality_score = Histogram(
    name="medallion_data_quality_score",
    documentation="Data quality score of cleansed Silver records",
    buckets=[20, 40, 60, 70, 80, 90, 100],
    registry=REGISTRY,
)

validation_failures_total = Counter(
    name="medallion_validation_failures_total",
    documentation="Total number of Bronze rows rejected by a field validator",
    labelnames=["rule_type", "field_name"],
    registry=REGISTRY,
)

# =======================
# PREDICTION SERVICE METRICS
# =======================

prediction_requests_total = Counter(
    name="medallion_prediction_requests_total",
    documentation="Total number of batch calls to the prediction service",
    labelnames=["status"],  # status: completed, failed, skipped
    registry=REGISTRY,
)

prediction_latency_seconds = Histogram(
    name="medallion_prediction_latency_seconds",
    documentation="Round-trip latency of prediction service batch calls",
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    # Lazy import: only the CLI exposes an HTTP endpoint
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


class track_duration:
    """
    Context manager for tracking operation duration

    Usage:
        with track_duration(stage_duration_seconds, stage="bronze_to_silver"):
            # do work
            pass
    """

    def __init__(self, histogram: Histogram, **labels):
        self.histogram = histogram
        self.labels = labels
        self.timer = None

    def __enter__(self):
        self.timer = self.histogram.labels(**self.labels).time() if self.labels else self.histogram.time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.timer.__exit__(exc_type, exc_val, exc_tb)
        return False


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    if value <= 0:
        return
    counter.labels(**labels).inc(value)


def observe_histogram(histogram: Histogram, value: float, **labels) -> None:
    """
    Observe a value in a histogram metric

    Args:
        histogram: Prometheus Histogram metric
        value: Value to observe
        **labels: Label values for the metric
    """
    if labels:
        histogram.labels(**labels).observe(value)
    else:
        histogram.observe(value)


def record_stage_result(
    stage: str,
    status: str,
    succeeded: int,
    failed: int,
    duplicates: int = 0,
    skipped: int = 0,
) -> None:
    """
    Record the final counters of a stage run.

    Args:
        stage: Stage name (bronze_ingest, bronze_to_silver, silver_to_gold)
        status: Final run status
        succeeded: Records that reached the target layer (duplicates included)
        failed: Records rejected or errored
        duplicates: Records skipped as duplicates
        skipped: Records skipped because they were already promoted
    """
    increment_counter(records_processed_total, succeeded - duplicates, stage=stage, status="succeeded")
    increment_counter(records_processed_total, failed, stage=stage, status="failed")
    increment_counter(records_processed_total, duplicates, stage=stage, status="duplicate")
    increment_counter(records_processed_total, skipped, stage=stage, status="skipped")
    stage_runs_total.labels(stage=stage, status=status).inc()


def record_validation_failure(rule_type: str, field_name: str) -> None:
    """Record a Bronze row rejected by a field validator."""
    increment_counter(validation_failures_total, 1, rule_type=rule_type, field_name=field_name)
