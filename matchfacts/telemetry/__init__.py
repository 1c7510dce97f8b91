"""
Extraction Telemetry Module

Provides Prometheus metrics for:
- Provider fetches (requests, retries, latency)
- Extraction tier outcomes
- Batch unit outcomes
"""

from matchfacts.telemetry.metrics import (
    # Fetch
    fetch_requests_total,
    fetch_retries_total,
    fetch_latency_ms,
    # Extraction / batch
    extraction_tier_total,
    batch_units_total,
    # Helpers
    record_fetch,
    record_fetch_retry,
    record_tier_outcome,
    record_batch_unit,
    get_metrics_text,
)

__all__ = [
    "fetch_requests_total",
    "fetch_retries_total",
    "fetch_latency_ms",
    "extraction_tier_total",
    "batch_units_total",
    "record_fetch",
    "record_fetch_retry",
    "record_tier_outcome",
    "record_batch_unit",
    "get_metrics_text",
]
