"""
Prometheus metrics for the ad-video ingestion service.

Metrics are exposed at the /metrics endpoint in Prometheus text format.
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, Info, generate_latest

# Application info
APP_INFO = Info("advideo", "Ad video ingestion service information")

# =============================================================================
# API Metrics
# =============================================================================

HTTP_REQUESTS_TOTAL = Counter(
    "advideo_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

# =============================================================================
# Upload Metrics
# =============================================================================

UPLOADS_TOTAL = Counter(
    "advideo_uploads_total",
    "Total upload requests by final result",
    ["result"],  # success, still_processing, failed, rejected
)

UPLOAD_ATTEMPTS_TOTAL = Counter(
    "advideo_upload_attempts_total",
    "Total upload attempts (one session each)",
    ["outcome"],  # success, retryable, fatal
)

UPLOAD_DURATION_SECONDS = Histogram(
    "advideo_upload_duration_seconds",
    "Time from first session negotiation to a successful result",
    buckets=[5, 15, 30, 60, 120, 300, 600, 1200],
)

CHUNKS_TRANSFERRED_TOTAL = Counter(
    "advideo_chunks_transferred_total",
    "Total chunks acknowledged by the platform",
)

BYTES_TRANSFERRED_TOTAL = Counter(
    "advideo_bytes_transferred_total",
    "Total bytes acknowledged by the platform",
)

STATUS_POLLS_TOTAL = Counter(
    "advideo_status_polls_total",
    "Total processing status checks",
    ["status"],  # pending, ready, error, unknown
)

METRICS_CONTENT_TYPE = CONTENT_TYPE_LATEST


def get_metrics() -> bytes:
    """Generate Prometheus metrics in text format."""
    return generate_latest()


def init_app_info(version: str = "0.1.0"):
    """Initialize application info metric."""
    APP_INFO.info({"version": version, "app": "advideo-ingest"})
