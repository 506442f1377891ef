"""Prometheus metrics for the ingestion pipeline.

Metrics live on a private registry so an embedding application decides
whether and where to expose them.
"""

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()


# ============================================
# Credential Broker
# ============================================
DESCRIPTOR_REQUESTS_TOTAL = Counter(
    "media_ingest_descriptor_requests_total",
    "Upload descriptor requests",
    ["scope", "outcome"],
    registry=REGISTRY,
)


# ============================================
# Direct Uploads
# ============================================
UPLOADS_TOTAL = Counter(
    "media_ingest_uploads_total",
    "Direct-to-storage uploads",
    ["kind", "outcome"],
    registry=REGISTRY,
)

UPLOADED_BYTES_TOTAL = Counter(
    "media_ingest_uploaded_bytes_total",
    "Bytes successfully written to storage",
    ["kind"],
    registry=REGISTRY,
)

UPLOAD_DURATION_SECONDS = Histogram(
    "media_ingest_upload_duration_seconds",
    "Direct upload duration in seconds",
    ["kind"],
    buckets=[0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0],
    registry=REGISTRY,
)


# ============================================
# Conversion
# ============================================
CONVERSION_TRIGGERS_TOTAL = Counter(
    "media_ingest_conversion_triggers_total",
    "Conversion trigger requests",
    ["outcome"],
    registry=REGISTRY,
)

CONVERSION_POLLS_TOTAL = Counter(
    "media_ingest_conversion_polls_total",
    "Conversion status polls issued",
    registry=REGISTRY,
)

CONVERSION_OUTCOMES_TOTAL = Counter(
    "media_ingest_conversion_outcomes_total",
    "Final observed conversion outcome",
    ["outcome"],
    registry=REGISTRY,
)


def get_metrics() -> bytes:
    """Generate latest metrics in Prometheus format."""
    return generate_latest(REGISTRY)
