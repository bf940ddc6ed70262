"""Status snapshot composed from consumer state and cache contents.

Two sources of "status" exist depending on the topology:
- Long-running: the StreamConsumer's state label and last message time
- Durable (no consumer in process): "ok" and the last bounded sync time

The snapshot is a pure read; StoreUnavailableError propagates to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pmp.cache.base import CacheStore, Topic

if TYPE_CHECKING:
    from pmp.ingestion.consumer import StreamConsumer


@dataclass(frozen=True)
class StatusSnapshot:
    """Point-in-time view of ingestion state and available dates."""

    status: str
    last_message_at: datetime | None
    cached_entries: int
    available_dates: dict[str, list[str]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Camel-cased dict as returned by GET /api/status."""
        return {
            "status": self.status,
            "lastMessageAt": self.last_message_at.isoformat() if self.last_message_at else None,
            "cachedEntries": self.cached_entries,
            "availableDates": self.available_dates,
        }


class StatusAggregator:
    """Build StatusSnapshots over a store and an optional consumer.

    Args:
        store: Cache store to read dates and counts from
        topics: Topics to report (defaults to the served topics)
        consumer: Long-running consumer, or None in the durable topology
    """

    def __init__(
        self,
        store: CacheStore,
        topics: list[str] | None = None,
        consumer: StreamConsumer | None = None,
    ) -> None:
        self.store = store
        self.topics = topics or [topic.value for topic in Topic]
        self.consumer = consumer

    def available_dates(self) -> dict[str, list[str]]:
        return {topic: self.store.list_dates(topic) for topic in self.topics}

    def snapshot(self) -> StatusSnapshot:
        available = self.available_dates()
        cached_entries = self.store.entry_count(self.topics)

        if self.consumer is not None:
            status = self.consumer.state.label
            last_message_at = self.consumer.last_message_at
        else:
            status = "ok"
            last_message_at = self.store.last_synced_at()

        return StatusSnapshot(
            status=status,
            last_message_at=last_message_at,
            cached_entries=cached_entries,
            available_dates=available,
        )
