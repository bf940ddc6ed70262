"""
Unit tests for configuration management.

Tests cover:
- Default values
- Environment variable and .env handling (PMP_ prefix, comma-separated lists)
- Validation errors for invalid settings
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from pmp.common.config import (
    APIConfig,
    CacheConfig,
    KafkaConfig,
    PMPConfig,
    SyncConfig,
    TLSConfig,
)


class TestDefaults:
    """Default configuration values."""

    def test_kafka_defaults(self, monkeypatch):
        monkeypatch.delenv("PMP_KAFKA_TOPICS", raising=False)
        config = KafkaConfig()

        assert config.topics == ["cables", "exchanges"]
        assert config.group_id == "power-market-preview"
        assert config.connection_timeout_ms == 30000

    def test_sync_defaults(self, monkeypatch):
        monkeypatch.delenv("PMP_SYNC_SECRET", raising=False)
        config = SyncConfig()

        assert config.secret is None
        assert config.budget_seconds == 25.0
        assert config.group_id == "power-market-sync"
        assert config.connection_timeout_ms == 10000
        assert config.request_timeout_ms == 15000

    def test_tls_default_paths(self):
        config = TLSConfig(certs_dir=Path("/etc/pmp"))

        assert config.resolved_ca_path == Path("/etc/pmp/ca.pem")
        assert config.resolved_cert_path == Path("/etc/pmp/service.cert")
        assert config.resolved_key_path == Path("/etc/pmp/service.key")

    def test_tls_explicit_path_wins(self):
        config = TLSConfig(certs_dir=Path("/etc/pmp"), key_path=Path("/secrets/key.pem"))

        assert config.resolved_key_path == Path("/secrets/key.pem")
        assert config.resolved_ca_path == Path("/etc/pmp/ca.pem")


class TestEnvironment:
    """Environment variable overrides."""

    def test_topics_from_comma_separated_env(self, monkeypatch):
        monkeypatch.setenv("PMP_KAFKA_TOPICS", "cables, exchanges ,extra")

        assert KafkaConfig().topics == ["cables", "exchanges", "extra"]

    def test_cors_origins_from_env(self, monkeypatch):
        monkeypatch.setenv("PMP_API_CORS_ORIGINS", "https://a.example,https://b.example")

        assert APIConfig().cors_origins == ["https://a.example", "https://b.example"]

    def test_nested_configs_pick_up_env(self, monkeypatch):
        monkeypatch.setenv("PMP_CACHE_BACKEND", "redis")
        monkeypatch.setenv("PMP_SYNC_SECRET", "from-env")
        monkeypatch.setenv("PMP_TLS_CA_B64", "Q0E=")

        config = PMPConfig()

        assert config.cache.backend == "redis"
        assert config.sync.secret == "from-env"
        assert config.tls.ca_b64 == "Q0E="

    def test_nested_configs_read_dotenv(self, monkeypatch, tmp_path):
        (tmp_path / ".env").write_text(
            "PMP_SYNC_SECRET=from-dotenv\n"
            "PMP_KAFKA_TOPICS=cables\n"
            "PMP_CACHE_BACKEND=redis\n"
            "PMP_ENVIRONMENT=staging\n"
        )
        for name in ("PMP_SYNC_SECRET", "PMP_KAFKA_TOPICS", "PMP_CACHE_BACKEND", "PMP_ENVIRONMENT"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.chdir(tmp_path)

        config = PMPConfig()

        assert config.sync.secret == "from-dotenv"
        assert config.kafka.topics == ["cables"]
        assert config.cache.backend == "redis"
        assert config.environment == "staging"

    def test_environment_overrides_dotenv(self, monkeypatch, tmp_path):
        (tmp_path / ".env").write_text("PMP_SYNC_SECRET=from-dotenv\n")
        monkeypatch.setenv("PMP_SYNC_SECRET", "from-env")
        monkeypatch.chdir(tmp_path)

        assert SyncConfig().secret == "from-env"


class TestValidation:
    """Invalid settings fail fast."""

    def test_empty_topics_rejected(self, monkeypatch):
        monkeypatch.setenv("PMP_KAFKA_TOPICS", " , ")

        with pytest.raises(ValidationError):
            KafkaConfig()

    def test_blank_bootstrap_servers_rejected(self):
        with pytest.raises(ValidationError):
            KafkaConfig(bootstrap_servers="  ")

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValidationError):
            CacheConfig(backend="memcached")

    def test_redis_url_scheme_checked(self):
        with pytest.raises(ValidationError):
            CacheConfig(redis_url="http://localhost:6379")

    def test_budget_must_be_positive(self):
        with pytest.raises(ValidationError):
            SyncConfig(budget_seconds=0)
