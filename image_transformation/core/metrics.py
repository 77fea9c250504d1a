"""
Prometheus Metrics for Observability

Tracks request traffic, pipeline stage latency and upload/delete outcomes.
Exposes /metrics endpoint for Prometheus scraping.
"""

import time
from contextlib import contextmanager

from prometheus_client import (
    Counter,
    Histogram,
    Info,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY
)

# =============================================================================
# Metrics Definitions
# =============================================================================

# Pipeline Latency - Per Stage
pipeline_latency_seconds = Histogram(
    "pipeline_latency_seconds",
    "Time spent in each pipeline stage",
    labelnames=["stage", "status"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]
)

# Upload outcomes
images_processed_total = Counter(
    "images_processed_total",
    "Total number of image uploads run through the pipeline",
    labelnames=["status", "failure_stage"]
)

# Delete outcomes
images_deleted_total = Counter(
    "images_deleted_total",
    "Total number of image delete requests",
    labelnames=["result"]
)

# Rate limiter rejections
rate_limited_requests_total = Counter(
    "rate_limited_requests_total",
    "Requests rejected by the rate limiter"
)

# API Request Metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration",
    labelnames=["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

# Application Info
app_info = Info(
    "image_transformation_app",
    "Application information"
)


# =============================================================================
# Helper Functions
# =============================================================================

def set_app_info(version: str, environment: str):
    """Set application info metric."""
    app_info.info({
        "version": version,
        "environment": environment
    })


@contextmanager
def track_stage_latency(stage: str):
    """
    Context manager to track stage latency.

    Usage:
        with track_stage_latency("flip"):
            # do work
    """
    start = time.time()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        duration = time.time() - start
        pipeline_latency_seconds.labels(stage=stage, status=status).observe(duration)


def record_image_processed(status: str, failure_stage: str = "none"):
    """Record the outcome of an upload."""
    images_processed_total.labels(status=status, failure_stage=failure_stage).inc()


def record_image_deleted(result: str):
    """Record the outcome of a delete (deleted, not_found, error)."""
    images_deleted_total.labels(result=result).inc()


def record_rate_limited():
    rate_limited_requests_total.inc()


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
