"""
Global pytest configuration for the PMP test suite.

Unit tests run against in-memory stores, a fake Redis client and fake
broker sessions (see tests/unit/fakes.py), so no Kafka or Redis is needed.
"""

import pytest


# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: fast unit tests with no external services")


def pytest_collection_modifyitems(config, items):
    """Mark everything under tests/unit as a unit test."""
    for item in items:
        if "tests/unit/" in item.nodeid:
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Environment Setup
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_sync_secret(monkeypatch):
    """Keep a developer's PMP_SYNC_SECRET out of CLI option defaults."""
    monkeypatch.delenv("PMP_SYNC_SECRET", raising=False)
