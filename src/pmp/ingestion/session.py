"""Authenticated broker session replaying topics from the start of the log.

A session wraps one confluent-kafka Consumer:
- TLS client authentication with PEM material passed inline
- Connection verified up front by fetching cluster metadata
- Every assigned partition rewound to OFFSET_BEGINNING, so each session
  replays full history regardless of committed offsets (nothing is committed)
- Partition EOF events tracked to report when the replay has caught up

Retry policy belongs to callers; open() fails once with BrokerConnectionError.

Usage:
    session = BrokerSession(
        bootstrap_servers="broker:18883",
        topics=["cables", "exchanges"],
        group_id="power-market-preview",
        credentials=CredentialResolver().resolve(),
    ).open()

    with session:
        for raw in session.messages():
            handle(raw)
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from confluent_kafka import OFFSET_BEGINNING, Consumer, KafkaError, KafkaException

from pmp.common.exceptions import BrokerConnectionError
from pmp.common.logging import get_logger
from pmp.common.metrics import create_component_metrics
from pmp.ingestion.credentials import TLSCredentials
from pmp.ingestion.messages import RawMessage

logger = get_logger(__name__, component="ingestion")
metrics = create_component_metrics("ingestion")


@dataclass(frozen=True)
class SessionTimeouts:
    """Connection, request and poll timeouts for one session."""

    connection_timeout_ms: int = 30000
    request_timeout_ms: int = 60000
    poll_timeout_seconds: float = 1.0


class BrokerSession:
    """One TLS-authenticated consumer subscribed to a fixed topic list.

    Thread Safety:
    - poll() and close() serialize on a lock, so close() from another thread
      waits for an in-flight poll instead of tearing the consumer down under it
    - close() is idempotent and never raises on an already-closed session

    Args:
        bootstrap_servers: Kafka bootstrap servers
        topics: Topics to subscribe to
        group_id: Consumer group ID
        credentials: Resolved TLS credentials
        timeouts: Session timeouts (defaults suit a long-running consumer)
        client_id: Kafka client ID
        consumer_factory: Consumer constructor (tests inject a fake)
    """

    def __init__(
        self,
        bootstrap_servers: str,
        topics: list[str],
        group_id: str,
        credentials: TLSCredentials,
        timeouts: SessionTimeouts | None = None,
        client_id: str = "power-market-preview",
        consumer_factory: Callable[[dict[str, Any]], Any] = Consumer,
    ) -> None:
        if not topics:
            raise ValueError("Must specify at least one topic")

        self.bootstrap_servers = bootstrap_servers
        self.topics = list(topics)
        self.group_id = group_id
        self.client_id = client_id
        self.timeouts = timeouts or SessionTimeouts()
        self._credentials = credentials
        self._consumer_factory = consumer_factory

        self._consumer: Any | None = None
        self._lock = threading.Lock()
        self._opened = False
        self._closing = False

        # (topic, partition) pairs currently assigned / at end of log
        self._assigned: set[tuple[str, int]] = set()
        self._at_eof: set[tuple[str, int]] = set()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _build_config(self) -> dict[str, Any]:
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "group.id": self.group_id,
            "client.id": self.client_id,
            "security.protocol": "SSL",
            "ssl.ca.pem": self._credentials.ca,
            "ssl.certificate.pem": self._credentials.cert,
            "ssl.key.pem": self._credentials.key,
            "auto.offset.reset": "earliest",
            "enable.auto.commit": False,
            "enable.partition.eof": True,
            "socket.connection.setup.timeout.ms": self.timeouts.connection_timeout_ms,
            "socket.timeout.ms": self.timeouts.request_timeout_ms,
            "error_cb": self._on_error,
        }

    def open(self) -> BrokerSession:
        """Connect, verify topics and subscribe from the beginning of the log.

        Raises:
            BrokerConnectionError: handshake, metadata or subscription failure
        """
        if self._opened:
            raise RuntimeError("BrokerSession.open() called twice")
        self._opened = True

        logger.info(
            "Connecting to Kafka",
            bootstrap_servers=self.bootstrap_servers,
            topics=self.topics,
            group_id=self.group_id,
        )

        consumer = None
        try:
            consumer = self._consumer_factory(self._build_config())

            metadata = consumer.list_topics(timeout=self.timeouts.connection_timeout_ms / 1000)
            missing = [
                topic
                for topic in self.topics
                if topic not in metadata.topics or metadata.topics[topic].error is not None
            ]
            if missing:
                raise BrokerConnectionError(f"Topics not available on broker: {', '.join(missing)}")

            consumer.subscribe(self.topics, on_assign=self._on_assign, on_revoke=self._on_revoke)

        except (KafkaException, BrokerConnectionError) as err:
            error_type = "subscription" if isinstance(err, BrokerConnectionError) else "kafka"
            metrics.increment("broker_connect_errors_total", labels={"error_type": error_type})
            logger.error(
                "Failed to open broker session",
                bootstrap_servers=self.bootstrap_servers,
                error=str(err),
            )
            self._closing = True
            if consumer is not None:
                _close_quietly(consumer)
            if isinstance(err, BrokerConnectionError):
                raise
            raise BrokerConnectionError(f"Failed to connect to {self.bootstrap_servers}: {err}") from err

        self._consumer = consumer
        logger.info("Subscribed to topics", topics=self.topics)
        return self

    def close(self) -> None:
        """Release the consumer. Safe to call repeatedly and from another thread.

        Raises:
            BrokerConnectionError: the first close failed in the client library
        """
        self._closing = True
        with self._lock:
            consumer, self._consumer = self._consumer, None

        if consumer is None:
            return

        try:
            consumer.close()
        except (KafkaException, RuntimeError) as err:
            logger.warning("Error closing broker session", error=str(err))
            raise BrokerConnectionError("Failed to close broker session") from err

        logger.info("Broker session closed", topics=self.topics)

    def __enter__(self) -> BrokerSession:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closing or self._consumer is None

    @property
    def caught_up(self) -> bool:
        """True once every assigned partition has reported end of log."""
        return bool(self._assigned) and self._assigned <= self._at_eof

    # -------------------------------------------------------------------------
    # Consumption
    # -------------------------------------------------------------------------

    def poll(self, timeout: float | None = None) -> RawMessage | None:
        """Fetch the next message, or None on timeout / EOF / closed session.

        Raises:
            BrokerConnectionError: the client reported a fatal error
        """
        if self._closing:
            return None

        with self._lock:
            if self._consumer is None:
                return None
            msg = self._consumer.poll(
                self.timeouts.poll_timeout_seconds if timeout is None else timeout
            )

        if msg is None:
            return None

        err = msg.error()
        if err is not None:
            if err.code() == KafkaError._PARTITION_EOF:
                self._at_eof.add((msg.topic(), msg.partition()))
                logger.debug("Reached end of partition", topic=msg.topic(), partition=msg.partition())
                return None
            if err.fatal():
                logger.error("Fatal Kafka error", error=str(err))
                raise BrokerConnectionError(f"Fatal broker error: {err}")
            logger.warning("Kafka error", error=str(err), topic=msg.topic())
            return None

        self._at_eof.discard((msg.topic(), msg.partition()))
        return RawMessage(
            topic=msg.topic(),
            value=msg.value(),
            partition=msg.partition(),
            offset=msg.offset(),
        )

    def messages(self) -> Iterator[RawMessage]:
        """Lazy, effectively infinite message iterator; ends when the session closes."""
        while not self.closed:
            raw = self.poll()
            if raw is not None:
                yield raw

    # -------------------------------------------------------------------------
    # Client callbacks
    # -------------------------------------------------------------------------

    def _on_assign(self, consumer: Any, partitions: list[Any]) -> None:
        for partition in partitions:
            partition.offset = OFFSET_BEGINNING
        consumer.assign(partitions)

        self._assigned = {(p.topic, p.partition) for p in partitions}
        self._at_eof.clear()
        logger.info("Partitions assigned, replaying from beginning", partitions=len(partitions))

    def _on_revoke(self, consumer: Any, partitions: list[Any]) -> None:
        self._assigned.clear()
        self._at_eof.clear()
        logger.info("Partitions revoked", partitions=len(partitions))

    def _on_error(self, err: Any) -> None:
        logger.warning("Kafka client error", error=str(err))


def _close_quietly(consumer: Any) -> None:
    try:
        consumer.close()
    except (KafkaException, RuntimeError) as err:
        logger.debug("Ignoring close failure on half-open consumer", error=str(err))
