"""Centralized configuration management for the power market preview service.

This module provides type-safe configuration using Pydantic Settings with
environment variable override support. Configuration is hierarchical:
- KafkaConfig: broker connection, topics and consumer group of the long-running consumer
- TLSConfig: client certificate sources (base64 triple or file-path triple)
- CacheConfig: cache backend selection and Redis connection settings
- SyncConfig: bounded sync job budget, timeouts and trigger secret
- APIConfig: HTTP server settings
- ObservabilityConfig: logging settings
- PMPConfig: main configuration aggregating all sub-configs

Environment variables follow the pattern: PMP_{COMPONENT}_{PARAMETER}. Every
section also reads a .env file in the working directory; real environment
variables take precedence over it.

Examples:
    PMP_KAFKA_BOOTSTRAP_SERVERS=broker.example.com:18883
    PMP_KAFKA_TOPICS=cables,exchanges
    PMP_TLS_CA_B64=LS0tLS1CRUdJTi...
    PMP_CACHE_BACKEND=redis
    PMP_SYNC_SECRET=change-me

Usage:
    from pmp.common.config import config

    print(config.kafka.bootstrap_servers)
    print(config.cache.backend)
"""

from pathlib import Path
from typing import Annotated, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


ENV_FILE = ".env"


def _settings_config(env_prefix: str) -> SettingsConfigDict:
    """Shared settings for every section: prefixed env vars, then ENV_FILE."""
    return SettingsConfigDict(
        env_prefix=env_prefix,
        case_sensitive=False,
        extra="ignore",
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
    )


def _split_csv(v: object) -> object:
    """Accept comma-separated strings for list settings."""
    if isinstance(v, str):
        return [item.strip() for item in v.split(",") if item.strip()]
    return v


class KafkaConfig(BaseSettings):
    """Kafka connection settings for the long-running consumer.

    Timeouts here may be generous; the bounded sync job uses its own
    (shorter) values from SyncConfig.
    """

    model_config = _settings_config("PMP_KAFKA_")

    bootstrap_servers: str = Field(
        default="localhost:9093",
        description="Kafka bootstrap servers (comma-separated for multiple brokers)",
    )

    topics: Annotated[list[str], NoDecode] = Field(
        default=["cables", "exchanges"],
        description="Topics to replay (comma-separated in the environment)",
    )

    group_id: str = Field(default="power-market-preview", description="Consumer group ID")

    client_id: str = Field(default="power-market-preview", description="Kafka client ID")

    connection_timeout_ms: int = Field(
        default=30000, description="Broker connection setup timeout (ms)", ge=1000,
    )

    request_timeout_ms: int = Field(
        default=60000, description="Broker request timeout (ms)", ge=1000,
    )

    poll_timeout_seconds: float = Field(
        default=1.0, description="Consumer poll timeout in seconds", gt=0, le=30,
    )

    @field_validator("bootstrap_servers")
    @classmethod
    def validate_bootstrap_servers(cls, v: str) -> str:
        """Ensure bootstrap servers is not empty."""
        if not v or not v.strip():
            raise ValueError("bootstrap_servers cannot be empty")
        return v.strip()

    @field_validator("topics", mode="before")
    @classmethod
    def split_topics(cls, v: object) -> object:
        return _split_csv(v)

    @field_validator("topics")
    @classmethod
    def validate_topics(cls, v: list[str]) -> list[str]:
        """Ensure at least one topic is configured."""
        if not v:
            raise ValueError("topics cannot be empty")
        return v


class TLSConfig(BaseSettings):
    """TLS client credential sources.

    Two mutually exclusive sources are supported:
    - Base64 triple (cloud deployments): PMP_TLS_CA_B64, PMP_TLS_CERT_B64, PMP_TLS_KEY_B64
    - File-path triple (local development): PMP_TLS_CA_PATH, PMP_TLS_CERT_PATH,
      PMP_TLS_KEY_PATH, defaulting to files under PMP_TLS_CERTS_DIR
    """

    model_config = _settings_config("PMP_TLS_")

    ca_b64: Optional[str] = Field(default=None, description="Base64-encoded CA certificate")
    cert_b64: Optional[str] = Field(default=None, description="Base64-encoded client certificate")
    key_b64: Optional[str] = Field(default=None, description="Base64-encoded client key")

    certs_dir: Path = Field(default=Path("certs"), description="Default directory for PEM files")
    ca_path: Optional[Path] = Field(default=None, description="CA certificate path")
    cert_path: Optional[Path] = Field(default=None, description="Client certificate path")
    key_path: Optional[Path] = Field(default=None, description="Client key path")

    @property
    def resolved_ca_path(self) -> Path:
        return self.ca_path or self.certs_dir / "ca.pem"

    @property
    def resolved_cert_path(self) -> Path:
        return self.cert_path or self.certs_dir / "service.cert"

    @property
    def resolved_key_path(self) -> Path:
        return self.key_path or self.certs_dir / "service.key"


class CacheConfig(BaseSettings):
    """Cache backend configuration.

    `memory` keeps entries for the lifetime of the API process and is fed by
    the long-running consumer. `redis` persists entries across processes and
    is fed by the bounded sync job.
    """

    model_config = _settings_config("PMP_CACHE_")

    backend: Literal["memory", "redis"] = Field(default="memory", description="Cache backend")

    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")

    key_prefix: str = Field(default="", description="Prefix applied to every Redis key")

    socket_timeout_seconds: float = Field(
        default=5.0, description="Redis socket and connect timeout in seconds", gt=0,
    )

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: str) -> str:
        """Ensure the Redis URL uses a supported scheme."""
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("redis_url must start with redis://, rediss:// or unix://")
        return v


class SyncConfig(BaseSettings):
    """Bounded sync job configuration (scheduled/serverless topology)."""

    model_config = _settings_config("PMP_SYNC_")

    secret: Optional[str] = Field(
        default=None, description="Shared secret expected as the trigger bearer token",
    )

    budget_seconds: float = Field(
        default=25.0, description="Wall-clock budget for draining the replay", gt=0,
    )

    group_id: str = Field(default="power-market-sync", description="Consumer group ID for sync runs")

    client_id: str = Field(default="power-market-sync", description="Kafka client ID for sync runs")

    connection_timeout_ms: int = Field(default=10000, description="Connection timeout (ms)", ge=1000)

    request_timeout_ms: int = Field(default=15000, description="Request timeout (ms)", ge=1000)

    poll_timeout_seconds: float = Field(
        default=0.5, description="Poll timeout in seconds while draining", gt=0, le=5,
    )


class APIConfig(BaseSettings):
    """HTTP server configuration."""

    model_config = _settings_config("PMP_API_")

    host: str = Field(default="0.0.0.0", description="Bind address")

    port: int = Field(default=3001, description="Bind port", ge=1, le=65535)

    cors_origins: Annotated[list[str], NoDecode] = Field(
        default=["http://localhost:5173", "http://localhost:3000"],
        description="Allowed CORS origins (comma-separated in the environment)",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_origins(cls, v: object) -> object:
        return _split_csv(v)


class ObservabilityConfig(BaseSettings):
    """Logging configuration."""

    model_config = _settings_config("PMP_OBSERVABILITY_")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    json_logs: bool = Field(default=False, description="Emit JSON logs instead of console output")


class PMPConfig(BaseSettings):
    """Main configuration.

    Aggregates all sub-configurations into a single config object.
    Automatically loads from environment variables with PMP_ prefix.
    """

    model_config = _settings_config("PMP_")

    environment: Literal["local", "test", "staging", "production"] = Field(
        default="local", description="Deployment environment",
    )

    kafka: KafkaConfig = Field(default_factory=KafkaConfig)
    tls: TLSConfig = Field(default_factory=TLSConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


# Global singleton instance
# Import this in other modules: from pmp.common.config import config
config = PMPConfig()
