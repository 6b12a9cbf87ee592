"""Prometheus metrics for the validation pipeline.

Exposes key metrics for monitoring:
- Documents processed by vendor and validity
- Confidence upgrades and soft errors by vendor
- Rows removed by the exclusion stage
- Stage duration histograms

Based on Prometheus best practices:
https://prometheus.io/docs/practices/naming/
"""

from prometheus_client import Counter, Histogram, generate_latest
from prometheus_client.openmetrics.exposition import CONTENT_TYPE_LATEST

documents_processed_total = Counter(
    "invoice_documents_processed_total",
    "Total invoice documents run through the validation pipeline",
    ["vendor", "valid"],
)

unsupported_documents_total = Counter(
    "invoice_unsupported_documents_total",
    "Documents rejected because their vendor label is not supported",
)

confidence_upgrades_total = Counter(
    "invoice_confidence_upgrades_total",
    "Fields whose confidence was raised to 1.0 by inference",
    ["vendor"],
)

field_errors_total = Counter(
    "invoice_field_errors_total",
    "Fields left with a soft error for human review",
    ["vendor"],
)

rows_excluded_total = Counter(
    "invoice_rows_excluded_total",
    "Product rows removed by the exclusion stage",
    ["vendor", "reason"],  # catalog, keyword
)

stage_duration_seconds = Histogram(
    "invoice_stage_duration_seconds",
    "Pipeline stage duration in seconds",
    ["vendor", "stage"],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
)


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics in text format.

    Returns:
        Tuple of (metrics bytes, content type)
    """
    return generate_latest(), CONTENT_TYPE_LATEST
