"""Cache store contract shared by the in-memory and Redis backends.

Both backends hold at most one entry per (topic, date) key. A put replaces
the previous entry wholesale (last-write-wins, no merge) and keeps the
per-topic date index in step with the entries inside the same atomic write.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable

DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


class Topic(str, Enum):
    """Topics served by the read API."""

    CABLES = "cables"
    EXCHANGES = "exchanges"


def is_valid_date(value: Any) -> bool:
    """True for YYYY-MM-DD strings (format only, no calendar check)."""
    return isinstance(value, str) and DATE_PATTERN.fullmatch(value) is not None


@dataclass(frozen=True)
class CacheEntry:
    """Latest payload observed for one (topic, date) key.

    updated_at is the arrival time and does not take part in equality, so
    re-applying an identical message yields an equal entry.
    """

    topic: str
    date: str
    payload: dict[str, Any]
    updated_at: datetime | None = field(default=None, compare=False)


class CacheStore(ABC):
    """Uniform get/put/list contract over a (topic, date) -> payload map."""

    #: Name used in logs and metric labels.
    backend: str = "abstract"

    #: True when entries outlive the current process.
    durable: bool = False

    @abstractmethod
    def get(self, topic: str, date: str) -> CacheEntry | None:
        """Return the entry for (topic, date), or None if never observed."""

    @abstractmethod
    def put(
        self,
        topic: str,
        date: str,
        payload: dict[str, Any],
        updated_at: datetime | None = None,
    ) -> CacheEntry:
        """Insert or overwrite the entry for (topic, date) and index its date."""

    @abstractmethod
    def list_dates(self, topic: str) -> list[str]:
        """Dates with an entry for topic, sorted ascending."""

    def entry_count(self, topics: Iterable[str]) -> int:
        """Number of entries across topics (one entry per indexed date)."""
        return sum(len(self.list_dates(topic)) for topic in topics)

    def last_synced_at(self) -> datetime | None:
        """Completion time of the last bounded sync run (durable stores only)."""
        return None

    def mark_synced(self, synced_at: datetime) -> None:
        """Record a bounded sync completion. Non-durable stores ignore it."""
        return None

    def ping(self) -> bool:
        """Cheap reachability check used by the health endpoint."""
        return True

    def close(self) -> None:
        """Release backend resources."""
        return None
