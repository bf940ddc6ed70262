"""In-process cache store for the long-running topology.

Entries live for the lifetime of the process. One consumer thread writes
while API handlers read; a mutex keeps each entry and the date index in step
so readers never observe an entry without its date (or vice versa).
"""

from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from pmp.cache.base import CacheEntry, CacheStore
from pmp.common.logging import get_logger
from pmp.common.metrics import create_component_metrics

logger = get_logger(__name__, component="cache")
metrics = create_component_metrics("cache")


class MemoryCacheStore(CacheStore):
    """Dict-backed cache keyed by (topic, date).

    Thread Safety:
    - put/get/list_dates are protected by one lock
    - Entries are immutable and replaced wholesale, never mutated in place
    """

    backend = "memory"
    durable = False

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], CacheEntry] = {}
        self._dates: dict[str, set[str]] = defaultdict(set)
        self._lock = threading.Lock()

    def get(self, topic: str, date: str) -> CacheEntry | None:
        with self._lock:
            return self._entries.get((topic, date))

    def put(
        self,
        topic: str,
        date: str,
        payload: dict[str, Any],
        updated_at: datetime | None = None,
    ) -> CacheEntry:
        entry = CacheEntry(
            topic=topic,
            date=date,
            payload=payload,
            updated_at=updated_at or datetime.now(UTC),
        )

        with self._lock:
            self._entries[(topic, date)] = entry
            self._dates[topic].add(date)

        metrics.increment("cache_writes_total", labels={"backend": self.backend, "topic": topic})
        logger.debug("Cached entry", topic=topic, date=date)
        return entry

    def list_dates(self, topic: str) -> list[str]:
        with self._lock:
            return sorted(self._dates.get(topic, ()))

    def entry_count(self, topics: Iterable[str]) -> int:
        wanted = set(topics)
        with self._lock:
            return sum(1 for topic, _ in self._entries if topic in wanted)
