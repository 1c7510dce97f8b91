"""
Prometheus metrics for extraction telemetry.

Design principles:
- Low cardinality (controlled labels)
- Best-effort (never block main flow)

=============================================================================
CARDINALITY CONTROL
=============================================================================

ALLOWED LABELS (bounded sets):
- endpoint:     "matchDetails", "matches", "page" (max ~5)
- status_code:  "200", "403", "404", "429", "500", "0" (max ~10)
- tier:         "structured", "embedded_document", "regex_fallback"
- outcome:      "ok", "parse_error", "fetch_error", "not_found"
- batch:        "calendar", "discover", "probe", "season_report", "check"

FORBIDDEN AS LABELS:
- match ids, player ids, player names, URLs, error messages

Use logs for anything about a specific match or player.
=============================================================================
"""

import logging

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# =============================================================================
# FETCH METRICS
# =============================================================================

fetch_requests_total = Counter(
    "matchfacts_fetch_requests_total",
    "Total requests issued to the provider",
    ["endpoint", "status_code"],
)

fetch_retries_total = Counter(
    "matchfacts_fetch_retries_total",
    "Retries scheduled after a transient fetch failure",
    ["endpoint"],
)

fetch_latency_ms = Histogram(
    "matchfacts_fetch_latency_ms",
    "Provider request latency in milliseconds",
    ["endpoint"],
    buckets=[10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000],
)

# =============================================================================
# EXTRACTION METRICS
# =============================================================================

extraction_tier_total = Counter(
    "matchfacts_extraction_tier_total",
    "Extraction tier attempts by outcome",
    ["tier", "outcome"],
)

# =============================================================================
# BATCH METRICS
# =============================================================================

batch_units_total = Counter(
    "matchfacts_batch_units_total",
    "Batch units processed by outcome",
    ["batch", "outcome"],  # outcome: ok, error, deadline
)


def record_fetch(endpoint: str, status_code: int, latency_ms: float) -> None:
    """Record a provider request with its latency."""
    try:
        fetch_requests_total.labels(endpoint=endpoint, status_code=str(status_code)).inc()
        fetch_latency_ms.labels(endpoint=endpoint).observe(latency_ms)
    except Exception as e:
        logger.warning(f"Failed to record fetch metric: {e}")


def record_fetch_retry(endpoint: str) -> None:
    try:
        fetch_retries_total.labels(endpoint=endpoint).inc()
    except Exception as e:
        logger.warning(f"Failed to record retry metric: {e}")


def record_tier_outcome(tier: str, outcome: str) -> None:
    """Record one extraction tier attempt."""
    try:
        extraction_tier_total.labels(tier=tier, outcome=outcome).inc()
    except Exception as e:
        logger.warning(f"Failed to record tier metric: {e}")


def record_batch_unit(batch: str, outcome: str) -> None:
    try:
        batch_units_total.labels(batch=batch, outcome=outcome).inc()
    except Exception as e:
        logger.warning(f"Failed to record batch metric: {e}")


def get_metrics_text() -> tuple[str, str]:
    """
    Generate Prometheus metrics text output.

    Returns:
        Tuple of (content, content_type)
    """
    return generate_latest(REGISTRY).decode("utf-8"), CONTENT_TYPE_LATEST
