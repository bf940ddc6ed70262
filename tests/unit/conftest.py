"""
Unit test configuration for tests/unit/.

Fixtures wire the in-memory doubles from tests.unit.fakes into explicit
config objects, so no test depends on PMP_* environment variables, a broker
or a Redis server.
"""

import pytest
import redis

from pmp.common.config import KafkaConfig, SyncConfig, TLSConfig
from pmp.ingestion.credentials import TLSCredentials

from tests.unit.fakes import CA_PEM, CERT_PEM, KEY_PEM, FakeRedis, b64


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def redis_error() -> redis.RedisError:
    return redis.ConnectionError("Connection refused")


@pytest.fixture
def credentials() -> TLSCredentials:
    return TLSCredentials(ca=CA_PEM, cert=CERT_PEM, key=KEY_PEM, source="base64")


@pytest.fixture
def tls_config(tmp_path) -> TLSConfig:
    """TLS config with base64 credentials and an empty certs dir."""
    return TLSConfig(
        ca_b64=b64(CA_PEM),
        cert_b64=b64(CERT_PEM),
        key_b64=b64(KEY_PEM),
        certs_dir=tmp_path / "certs",
    )


@pytest.fixture
def kafka_config() -> KafkaConfig:
    return KafkaConfig(bootstrap_servers="broker.test:18883", topics=["cables", "exchanges"])


@pytest.fixture
def sync_config() -> SyncConfig:
    return SyncConfig(secret="s3cret", budget_seconds=2.0, poll_timeout_seconds=0.05)
