"""Read API endpoints and the scheduled sync trigger.

All routes are mounted under /api:
- GET  /api/status            ingestion status and available dates
- GET  /api/cables/{date}     cable-auction payload for a date
- GET  /api/exchanges/{date}  day-ahead exchange payload for a date
- GET  /api/dates             available dates per topic
- GET|POST /api/cron/sync     bounded sync trigger (Bearer secret)

Handlers never expose internal error detail; store failures become fixed
500 bodies matching the shape the presentation layer already handles.
"""

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from pmp.cache import CacheStore, Topic, is_valid_date
from pmp.common.exceptions import PMPError, StoreUnavailableError, UnauthorizedError
from pmp.common.logging import get_logger
from pmp.api.deps import get_status_aggregator, get_store, get_sync_job
from pmp.api.models import AvailableDates, MissResponse, StatusResponse, SyncResponse
from pmp.ingestion.sync_job import BoundedSyncJob
from pmp.query.status import StatusAggregator

logger = get_logger(__name__, component="api")

router = APIRouter(prefix="/api", tags=["Market Data"])

bearer_scheme = HTTPBearer(auto_error=False)

INVALID_DATE_BODY = {"error": "Invalid date format. Use YYYY-MM-DD"}
INTERNAL_ERROR_BODY = {"error": "Internal server error"}


# =============================================================================
# Status & Dates
# =============================================================================


@router.get(
    "/status",
    response_model=StatusResponse,
    summary="Ingestion Status",
    description="Consumer (or last sync) status, cached entry count and available dates.",
)
async def get_status(
    aggregator: StatusAggregator = Depends(get_status_aggregator),
) -> Any:
    try:
        snapshot = aggregator.snapshot()
    except StoreUnavailableError as e:
        logger.error("Status lookup failed", error=str(e))
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "error": "Store unavailable",
                "lastMessageAt": None,
                "cachedEntries": 0,
                "availableDates": AvailableDates().model_dump(),
            },
        )

    return StatusResponse.model_validate(snapshot.to_dict())


@router.get(
    "/dates",
    response_model=AvailableDates,
    summary="Available Dates",
    description="Dates with a cached entry, per topic, sorted ascending.",
)
async def get_dates(store: CacheStore = Depends(get_store)) -> Any:
    try:
        return AvailableDates(
            cables=store.list_dates(Topic.CABLES.value),
            exchanges=store.list_dates(Topic.EXCHANGES.value),
        )
    except StoreUnavailableError as e:
        logger.error("Dates lookup failed", error=str(e))
        return JSONResponse(status_code=500, content=AvailableDates().model_dump())


# =============================================================================
# Entries
# =============================================================================


def _lookup(store: CacheStore, topic: Topic, date: str) -> Any:
    """Stored payload on hit, MissResponse body on miss."""
    if not is_valid_date(date):
        return JSONResponse(status_code=400, content=INVALID_DATE_BODY)

    try:
        entry = store.get(topic.value, date)
        if entry is not None:
            return entry.payload

        logger.debug("Cache miss", topic=topic.value, date=date)
        return MissResponse(
            date=date,
            source=topic.value,
            available_dates=store.list_dates(topic.value),
        ).model_dump()
    except StoreUnavailableError as e:
        logger.error("Entry lookup failed", topic=topic.value, date=date, error=str(e))
        return JSONResponse(status_code=500, content=INTERNAL_ERROR_BODY)


@router.get(
    "/cables/{date}",
    summary="Cable Prices",
    description="Latest cable-auction payload for a date (YYYY-MM-DD).",
)
async def get_cables(date: str, store: CacheStore = Depends(get_store)) -> Any:
    return _lookup(store, Topic.CABLES, date)


@router.get(
    "/exchanges/{date}",
    summary="Exchange Prices",
    description="Latest day-ahead exchange payload for a date (YYYY-MM-DD).",
)
async def get_exchanges(date: str, store: CacheStore = Depends(get_store)) -> Any:
    return _lookup(store, Topic.EXCHANGES, date)


# =============================================================================
# Scheduled Sync Trigger
# =============================================================================


@router.api_route(
    "/cron/sync",
    methods=["GET", "POST"],
    response_model=SyncResponse,
    summary="Bounded Sync",
    description="""
    Replay the topics into the durable cache for at most PMP_SYNC_BUDGET_SECONDS.

    Requires `Authorization: Bearer <PMP_SYNC_SECRET>`. Intended for a scheduler.
    """,
    tags=["Sync"],
)
async def trigger_sync(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    job: BoundedSyncJob = Depends(get_sync_job),
) -> Any:
    token = credentials.credentials if credentials else None

    try:
        result = await job.run(token)
    except UnauthorizedError:
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})
    except PMPError as e:
        logger.error("Sync failed", error=str(e), error_type=type(e).__name__)
        return JSONResponse(status_code=500, content={"success": False, "error": "Sync failed"})

    return SyncResponse(
        messages_processed=result.messages_processed,
        synced_at=result.synced_at,
        replay_complete=result.replay_complete,
    )
