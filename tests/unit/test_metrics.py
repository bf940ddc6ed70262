"""Unit tests for the Prometheus metrics client and registry."""

import pytest
from prometheus_client import REGISTRY

from pmp.common.metrics import create_component_metrics
from pmp.common.metrics_registry import get_metric


def _sample(name: str, labels: dict) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestMetricsClient:
    def test_increment_applies_default_labels(self):
        metrics = create_component_metrics("cache")
        labels = {
            "service": "pmp",
            "environment": "local",
            "component": "cache",
            "backend": "memory",
            "topic": "cables",
        }
        before = _sample("pmp_cache_writes_total", labels)

        metrics.increment("cache_writes_total", labels={"backend": "memory", "topic": "cables"})

        assert _sample("pmp_cache_writes_total", labels) == before + 1

    def test_timer_observes_even_on_error(self):
        metrics = create_component_metrics("sync")
        labels = {"service": "pmp", "environment": "local", "component": "sync"}
        before = _sample("pmp_sync_duration_seconds_count", labels)

        with pytest.raises(RuntimeError):
            with metrics.timer("sync_duration_seconds"):
                raise RuntimeError("boom")

        assert _sample("pmp_sync_duration_seconds_count", labels) == before + 1

    def test_gauge_sets_value(self):
        metrics = create_component_metrics("consumer")
        metrics.gauge("consumer_state", 3)

        labels = {"service": "pmp", "environment": "local", "component": "consumer"}
        assert _sample("pmp_consumer_state", labels) == 3


def test_unknown_metric_raises():
    with pytest.raises(KeyError, match="not found in registry"):
        get_metric("does_not_exist")
