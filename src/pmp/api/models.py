"""Pydantic V2 models for API responses.

Field names follow the JSON shape consumed by the presentation layer, which
mixes camelCase (status, sync) with snake_case (miss responses). Models use
aliases so the Python side stays snake_case.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Enums
# =============================================================================


class HealthStatus(str, Enum):
    """Service health status."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


# =============================================================================
# Read API
# =============================================================================


class AvailableDates(BaseModel):
    """Dates with a cached entry, per served topic."""

    cables: list[str] = Field(default_factory=list)
    exchanges: list[str] = Field(default_factory=list)


class StatusResponse(BaseModel):
    """Ingestion status and cache overview."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "status": "connected",
                "lastMessageAt": "2026-02-28T10:15:00+00:00",
                "cachedEntries": 4,
                "availableDates": {
                    "cables": ["2026-02-27", "2026-02-28"],
                    "exchanges": ["2026-02-27", "2026-02-28"],
                },
            },
        },
    )

    status: str = Field(description="Consumer state label, or 'ok' without a consumer")
    last_message_at: datetime | None = Field(default=None, alias="lastMessageAt")
    cached_entries: int = Field(default=0, alias="cachedEntries")
    available_dates: AvailableDates = Field(default_factory=AvailableDates, alias="availableDates")


class MissResponse(BaseModel):
    """Returned when no entry exists for the requested date."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "date": "2026-03-01",
                "source": "cables",
                "data": [],
                "available_dates": ["2026-02-27", "2026-02-28"],
            },
        },
    )

    date: str
    source: str = Field(description="Topic the lookup was made against")
    data: list = Field(default_factory=list)
    available_dates: list[str] = Field(default_factory=list)


class SyncResponse(BaseModel):
    """Outcome of a successful sync trigger."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    messages_processed: int = Field(alias="messagesProcessed")
    synced_at: datetime = Field(alias="syncedAt")
    replay_complete: bool = Field(alias="replayComplete")


# =============================================================================
# Health
# =============================================================================


class DependencyHealth(BaseModel):
    """Health status of a single dependency."""

    name: str = Field(description="Dependency name")
    status: HealthStatus = Field(description="Health status")
    latency_ms: float | None = Field(
        default=None, description="Response latency in milliseconds",
    )
    message: str | None = Field(default=None, description="Status message")


class HealthResponse(BaseModel):
    """Health check response."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "version": "0.1.0",
                "dependencies": [
                    {"name": "cache", "status": "healthy", "latency_ms": 0.4},
                    {"name": "consumer", "status": "healthy", "message": "connected"},
                ],
            },
        },
    )

    status: HealthStatus = Field(description="Overall health status")
    version: str = Field(description="API version")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    dependencies: list[DependencyHealth] = Field(
        default_factory=list, description="Dependency health checks",
    )
