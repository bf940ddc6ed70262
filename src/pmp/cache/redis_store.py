"""Redis-backed cache store for the scheduled (bounded sync) topology.

Key layout (all keys optionally prefixed with PMP_CACHE_KEY_PREFIX):
- {topic}:{date}     payload as a JSON string
- {topic}:dates      set of dates with an entry for the topic
- {topic}:updated    hash of date -> ISO arrival time
- lastSyncAt         ISO timestamp of the last completed sync run

Entry, date index and arrival time are written in one MULTI/EXEC
transaction, so a reader never sees a date without its entry.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, Iterable

import redis

from pmp.cache.base import CacheEntry, CacheStore
from pmp.common.config import CacheConfig, config
from pmp.common.exceptions import StoreUnavailableError
from pmp.common.logging import get_logger
from pmp.common.metrics import create_component_metrics

logger = get_logger(__name__, component="cache")
metrics = create_component_metrics("cache")

SYNC_CLOCK_KEY = "lastSyncAt"


class RedisCacheStore(CacheStore):
    """Durable cache store on Redis.

    Args:
        client: Pre-built Redis client (tests inject a fake); built from
            cache_config.redis_url when omitted
        cache_config: Cache settings (defaults to global config)

    Example:
        >>> store = RedisCacheStore()
        >>> store.put("cables", "2026-02-28", {"date": "2026-02-28", "data": []})
        >>> store.list_dates("cables")
        ['2026-02-28']
    """

    backend = "redis"
    durable = True

    def __init__(
        self,
        client: Any | None = None,
        cache_config: CacheConfig | None = None,
    ) -> None:
        self.cache_config = cache_config or config.cache
        self.key_prefix = self.cache_config.key_prefix
        self._client = client or redis.Redis.from_url(
            self.cache_config.redis_url,
            decode_responses=True,
            socket_timeout=self.cache_config.socket_timeout_seconds,
            socket_connect_timeout=self.cache_config.socket_timeout_seconds,
        )

    # -------------------------------------------------------------------------
    # Keys
    # -------------------------------------------------------------------------

    def _entry_key(self, topic: str, date: str) -> str:
        return f"{self.key_prefix}{topic}:{date}"

    def _dates_key(self, topic: str) -> str:
        return f"{self.key_prefix}{topic}:dates"

    def _updated_key(self, topic: str) -> str:
        return f"{self.key_prefix}{topic}:updated"

    def _sync_clock_key(self) -> str:
        return f"{self.key_prefix}{SYNC_CLOCK_KEY}"

    @contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        """Map Redis client failures onto StoreUnavailableError."""
        try:
            yield
        except redis.RedisError as err:
            logger.error("Redis operation failed", operation=operation, error=str(err))
            metrics.increment(
                "cache_errors_total",
                labels={"backend": self.backend, "operation": operation},
            )
            raise StoreUnavailableError(f"Redis {operation} failed") from err

    # -------------------------------------------------------------------------
    # CacheStore contract
    # -------------------------------------------------------------------------

    def get(self, topic: str, date: str) -> CacheEntry | None:
        with self._translate_errors("get"):
            pipe = self._client.pipeline(transaction=True)
            pipe.get(self._entry_key(topic, date))
            pipe.hget(self._updated_key(topic), date)
            raw, updated = pipe.execute()

        if raw is None:
            return None

        try:
            payload = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        except json.JSONDecodeError as err:
            logger.error("Stored entry is not valid JSON", topic=topic, date=date)
            raise StoreUnavailableError("Stored entry is unreadable") from err

        if not isinstance(payload, dict):
            raise StoreUnavailableError("Stored entry is unreadable")

        return CacheEntry(
            topic=topic,
            date=date,
            payload=payload,
            updated_at=_parse_timestamp(updated),
        )

    def put(
        self,
        topic: str,
        date: str,
        payload: dict[str, Any],
        updated_at: datetime | None = None,
    ) -> CacheEntry:
        updated_at = updated_at or datetime.now(UTC)

        with self._translate_errors("put"):
            pipe = self._client.pipeline(transaction=True)
            pipe.set(self._entry_key(topic, date), json.dumps(payload, separators=(",", ":")))
            pipe.sadd(self._dates_key(topic), date)
            pipe.hset(self._updated_key(topic), date, updated_at.isoformat())
            pipe.execute()

        metrics.increment("cache_writes_total", labels={"backend": self.backend, "topic": topic})
        logger.debug("Cached entry", topic=topic, date=date)
        return CacheEntry(topic=topic, date=date, payload=payload, updated_at=updated_at)

    def list_dates(self, topic: str) -> list[str]:
        with self._translate_errors("list_dates"):
            members = self._client.smembers(self._dates_key(topic))
        return sorted(members or ())

    def entry_count(self, topics: Iterable[str]) -> int:
        with self._translate_errors("entry_count"):
            pipe = self._client.pipeline(transaction=False)
            for topic in topics:
                pipe.scard(self._dates_key(topic))
            return sum(int(count or 0) for count in pipe.execute())

    def last_synced_at(self) -> datetime | None:
        with self._translate_errors("last_synced_at"):
            raw = self._client.get(self._sync_clock_key())
        return _parse_timestamp(raw)

    def mark_synced(self, synced_at: datetime) -> None:
        with self._translate_errors("mark_synced"):
            self._client.set(self._sync_clock_key(), synced_at.isoformat())
        logger.info("Sync clock updated", synced_at=synced_at.isoformat())

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError as err:
            logger.warning("Redis ping failed", error=str(err))
            return False

    def close(self) -> None:
        try:
            self._client.close()
        except redis.RedisError as err:
            logger.warning("Error closing Redis client", error=str(err))


def _parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO timestamp written by this store (tolerates a trailing Z)."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Ignoring unparseable timestamp", value=str(value))
        return None
