"""
Prometheus metrics instrumentation.

Components record observations through a MetricsClient that stamps the
standard labels (service, environment, component) onto every sample; the
metric objects themselves live in metrics_registry.

Usage:
    from pmp.common.metrics import create_component_metrics

    metrics = create_component_metrics("consumer")
    metrics.increment("messages_consumed_total", labels={"topic": "cables"})
    metrics.gauge("consumer_state", 2)

    with metrics.timer("sync_duration_seconds"):
        await job.run(token)
"""

import datetime
import time
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from pmp.common.config import config
from pmp.common.metrics_registry import (
    get_counter,
    get_gauge,
    get_histogram,
    initialize_service_info,
)

Labels = Optional[Dict[str, str]]


class MetricsClient:
    """Records samples on registry metrics with a fixed set of default labels."""

    def __init__(self, default_labels: Labels = None):
        self.default_labels = dict(default_labels or {})

    def _labels(self, extra: Labels) -> Dict[str, str]:
        return {**self.default_labels, **(extra or {})}

    def increment(self, metric_name: str, value: int = 1, labels: Labels = None) -> None:
        """Add value to a counter (metric name without the pmp_ prefix)."""
        get_counter(metric_name).labels(**self._labels(labels)).inc(value)

    def gauge(self, metric_name: str, value: float, labels: Labels = None) -> None:
        get_gauge(metric_name).labels(**self._labels(labels)).set(value)

    def histogram(self, metric_name: str, value: float, labels: Labels = None) -> None:
        get_histogram(metric_name).labels(**self._labels(labels)).observe(value)

    @contextmanager
    def timer(self, metric_name: str, labels: Labels = None) -> Iterator[None]:
        """Observe the block's wall-clock seconds, including when it raises."""
        started = time.perf_counter()
        try:
            yield
        finally:
            self.histogram(metric_name, time.perf_counter() - started, labels)


def initialize_metrics(version: str, environment: str) -> None:
    """Publish build info on pmp_service_info. Called once per process."""
    started_at = datetime.datetime.now(datetime.timezone.utc).isoformat()
    initialize_service_info(version, environment, started_at)


def create_component_metrics(component: str, service: str = "pmp") -> MetricsClient:
    """
    MetricsClient bound to one component.

    Example:
        metrics = create_component_metrics("cache")
        metrics.increment("cache_writes_total", labels={"backend": "redis", "topic": "cables"})
        # pmp_cache_writes_total{service="pmp", environment="local",
        #     component="cache", backend="redis", topic="cables"}
    """
    return MetricsClient(
        default_labels={
            "service": service,
            "environment": config.environment,
            "component": component,
        }
    )
