"""
Lightweight metrics collection for the batch verify client.
Wraps prometheus_client with async-safe patterns.
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
BATCH_RUNS = Counter(
    "bv_batch_runs_total",
    "Batch verification runs by terminal state",
    ["outcome"],
)
BATCH_REQUESTS = Counter(
    "bv_batch_requests_total",
    "Batch submission HTTP requests by status",
    ["status"],
)
STREAM_LINES = Counter(
    "bv_stream_lines_total",
    "Event stream lines by classification",
    ["kind"],
)
CSRF_TOKEN_FETCHES = Counter(
    "bv_csrf_token_fetches_total",
    "Anti-forgery token lookups by result",
    ["result"],
)

# ── Histograms ──────────────────────────────────────────────────────────
BATCH_DURATION = Histogram(
    "bv_batch_duration_seconds",
    "Wall time of a batch run from submission to terminal state",
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0),
)

# ── Gauges ──────────────────────────────────────────────────────────────
RESULT_RECORDS = Gauge(
    "bv_result_records",
    "Records currently held in the result set",
    ["status"],
)


@asynccontextmanager
async def atrack_latency(histogram: Histogram) -> AsyncIterator[None]:
    """Async context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.observe(time.perf_counter() - start)


def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
