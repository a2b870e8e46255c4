"""Prometheus metrics for the API service.

Exposes key metrics for monitoring:
- Request counts by endpoint and status
- Request duration histograms
- Extraction outcomes and duration
- Entity match requests

Based on Prometheus best practices:
https://prometheus.io/docs/practices/naming/
"""

from prometheus_client import Counter, Histogram, generate_latest
from prometheus_client.openmetrics.exposition import CONTENT_TYPE_LATEST

# Request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Extraction metrics
extraction_requests_total = Counter(
    "extraction_requests_total",
    "Total document extraction requests",
    ["document_type", "status"],  # success, clarification, fallback
)

extraction_processing_duration_seconds = Histogram(
    "extraction_processing_duration_seconds",
    "Document extraction duration in seconds",
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

client_extraction_requests_total = Counter(
    "client_extraction_requests_total",
    "Total client-only extraction requests",
    ["status"],  # success, failed
)

# Entity matching metrics
match_requests_total = Counter(
    "match_requests_total",
    "Total entity match requests",
    ["entity", "confidence"],  # entity: client, product
)


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics in text format.

    Returns:
        Tuple of (metrics bytes, content type)
    """
    return generate_latest(), CONTENT_TYPE_LATEST
