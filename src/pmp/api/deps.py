"""FastAPI dependency injection for the PMP API.

This module provides process-wide singletons for:
- CacheStore: memory or Redis backend selected by PMP_CACHE_BACKEND
- StreamConsumer: started only with the in-memory backend
- StatusAggregator: status snapshots over the store (and consumer, if any)
- BoundedSyncJob: one job per sync trigger, bound to the durable store

Using FastAPI's Depends() pattern keeps handlers free of globals and lets
tests swap any of these through app.dependency_overrides.
"""

from functools import lru_cache

from fastapi import Depends

from pmp.cache import CacheStore, create_cache_store
from pmp.common.config import config
from pmp.common.logging import get_logger
from pmp.ingestion.consumer import StreamConsumer
from pmp.ingestion.sync_job import BoundedSyncJob
from pmp.query.status import StatusAggregator

logger = get_logger(__name__, component="api")

# Global instances (singleton pattern)
_store: CacheStore | None = None
_consumer: StreamConsumer | None = None


@lru_cache(maxsize=1)
def get_store() -> CacheStore:
    """Get or create the CacheStore singleton."""
    global _store
    if _store is None:
        logger.info("Initializing cache store", backend=config.cache.backend)
        _store = create_cache_store()
    return _store


def get_consumer() -> StreamConsumer | None:
    """The long-running consumer, or None in the durable topology."""
    return _consumer


def get_status_aggregator(
    store: CacheStore = Depends(get_store),
    consumer: StreamConsumer | None = Depends(get_consumer),
) -> StatusAggregator:
    return StatusAggregator(store=store, consumer=consumer)


def get_sync_job(store: CacheStore = Depends(get_store)) -> BoundedSyncJob:
    return BoundedSyncJob(store=store)


def reset_dependencies() -> None:
    """Reset singletons (for testing).

    Stops the consumer and closes the store so they are recreated on next access.
    """
    global _store, _consumer

    if _consumer is not None:
        _consumer.stop()
        _consumer = None

    if _store is not None:
        _store.close()
        _store = None

    get_store.cache_clear()
    logger.info("Dependencies reset")


async def startup_dependencies() -> None:
    """Initialize the store and, with the memory backend, start the consumer.

    Consumer failures never abort startup; they surface as the consumer's
    error state in /api/status.
    """
    global _consumer

    logger.info("Starting up API dependencies")
    store = get_store()

    if store.durable:
        logger.info("Durable cache backend, consumer not started", backend=store.backend)
        return

    _consumer = StreamConsumer(store=store)
    _consumer.start()
    logger.info("StreamConsumer started", topics=config.kafka.topics)


async def shutdown_dependencies() -> None:
    """Stop the consumer and close the store on application shutdown."""
    logger.info("Shutting down API dependencies")
    reset_dependencies()
    logger.info("API dependencies shut down")
