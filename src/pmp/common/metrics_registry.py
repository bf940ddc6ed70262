"""
Prometheus metrics registry.

Pre-registers all metrics at module load time for fail-fast behavior on
duplicate or unknown metric names.

Metrics follow Prometheus naming conventions:
- snake_case names with the pmp_ prefix
- Base unit suffixes (_seconds, _total)
"""

from typing import Dict

from prometheus_client import Counter, Gauge, Histogram, Info

# ==============================================================================
# Configuration
# ==============================================================================

# Standard labels applied to all metrics
STANDARD_LABELS = ["service", "environment", "component"]

# API-specific labels
API_LABELS = STANDARD_LABELS + ["method", "endpoint", "status_code"]

LATENCY_BUCKETS = [0.001, 0.005, 0.010, 0.025, 0.050, 0.100, 0.250, 0.500, 1.000, 2.500, 5.000]

# Sync runs are bounded by the configured budget (25s by default)
SYNC_BUCKETS = [1.0, 2.5, 5.0, 10.0, 15.0, 20.0, 25.0, 30.0, 60.0]

SERVICE_INFO = Info(
    "pmp_service",
    "Power market preview build information",
)

# ==============================================================================
# Ingestion Metrics
# ==============================================================================

MESSAGES_CONSUMED_TOTAL = Counter(
    "pmp_messages_consumed_total",
    "Total messages applied to the cache",
    STANDARD_LABELS + ["topic"],
)

MESSAGES_DROPPED_TOTAL = Counter(
    "pmp_messages_dropped_total",
    "Total messages skipped because they could not be decoded",
    STANDARD_LABELS + ["topic"],
)

CONSUMER_STATE = Gauge(
    "pmp_consumer_state",
    "Long-running consumer state (0=disconnected, 1=connecting, 2=connected, 3=error)",
    STANDARD_LABELS,
)

BROKER_CONNECT_ERRORS_TOTAL = Counter(
    "pmp_broker_connect_errors_total",
    "Total failures opening a broker session",
    STANDARD_LABELS + ["error_type"],
)

SYNC_RUNS_TOTAL = Counter(
    "pmp_sync_runs_total",
    "Total bounded sync runs by outcome",
    STANDARD_LABELS + ["outcome"],  # outcome: success|unauthorized|failed
)

SYNC_MESSAGES_PROCESSED = Histogram(
    "pmp_sync_messages_processed",
    "Messages applied per bounded sync run",
    STANDARD_LABELS,
    buckets=[0, 1, 10, 50, 100, 500, 1000, 5000],
)

SYNC_DURATION_SECONDS = Histogram(
    "pmp_sync_duration_seconds",
    "Wall-clock duration of bounded sync runs",
    STANDARD_LABELS,
    buckets=SYNC_BUCKETS,
)

# ==============================================================================
# Cache Metrics
# ==============================================================================

CACHE_WRITES_TOTAL = Counter(
    "pmp_cache_writes_total",
    "Total cache upserts",
    STANDARD_LABELS + ["backend", "topic"],
)

CACHE_ERRORS_TOTAL = Counter(
    "pmp_cache_errors_total",
    "Total cache backend failures",
    STANDARD_LABELS + ["backend", "operation"],
)

# ==============================================================================
# API Layer Metrics (FastAPI)
# ==============================================================================

HTTP_REQUESTS_TOTAL = Counter(
    "pmp_http_requests_total",
    "Total HTTP requests",
    API_LABELS,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "pmp_http_request_duration_seconds",
    "HTTP request duration in seconds",
    API_LABELS,
    buckets=LATENCY_BUCKETS,
)

HTTP_REQUEST_ERRORS_TOTAL = Counter(
    "pmp_http_request_errors_total",
    "Total HTTP request errors",
    STANDARD_LABELS + ["method", "endpoint", "error_type"],
)

# ==============================================================================
# Registry Helper Functions
# ==============================================================================

_METRIC_REGISTRY: Dict[str, object] = {
    # Ingestion
    "messages_consumed_total": MESSAGES_CONSUMED_TOTAL,
    "messages_dropped_total": MESSAGES_DROPPED_TOTAL,
    "consumer_state": CONSUMER_STATE,
    "broker_connect_errors_total": BROKER_CONNECT_ERRORS_TOTAL,
    "sync_runs_total": SYNC_RUNS_TOTAL,
    "sync_messages_processed": SYNC_MESSAGES_PROCESSED,
    "sync_duration_seconds": SYNC_DURATION_SECONDS,

    # Cache
    "cache_writes_total": CACHE_WRITES_TOTAL,
    "cache_errors_total": CACHE_ERRORS_TOTAL,

    # API
    "http_requests_total": HTTP_REQUESTS_TOTAL,
    "http_request_duration_seconds": HTTP_REQUEST_DURATION_SECONDS,
    "http_request_errors_total": HTTP_REQUEST_ERRORS_TOTAL,
}


def get_metric(metric_name: str) -> object:
    """
    Get a pre-registered metric by name.

    Args:
        metric_name: Metric name (without pmp_ prefix)

    Raises:
        KeyError: If metric name not found in registry
    """
    if metric_name not in _METRIC_REGISTRY:
        raise KeyError(
            f"Metric '{metric_name}' not found in registry. "
            f"Available metrics: {sorted(_METRIC_REGISTRY.keys())}"
        )
    return _METRIC_REGISTRY[metric_name]


def get_counter(metric_name: str) -> Counter:
    """Get a Counter metric."""
    return get_metric(metric_name)


def get_gauge(metric_name: str) -> Gauge:
    """Get a Gauge metric."""
    return get_metric(metric_name)


def get_histogram(metric_name: str) -> Histogram:
    """Get a Histogram metric."""
    return get_metric(metric_name)


def initialize_service_info(version: str, environment: str, deployment: str) -> None:
    """Record build information on the service info metric."""
    SERVICE_INFO.info({
        "version": version,
        "environment": environment,
        "deployment": deployment,
    })
