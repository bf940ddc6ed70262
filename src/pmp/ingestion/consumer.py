"""Long-running Kafka consumer feeding the in-process cache.

The consumer runs on a background thread next to the API server:
- Resolves TLS credentials and opens a BrokerSession (full replay)
- Applies every decodable message to the CacheStore (last-write-wins)
- Logs and skips undecodable messages without leaving `connected`
- Records connection failures as `error` state instead of crashing the host

State machine (per session):
    disconnected -> connecting -> connected
    any state    -> error        (terminal for the session)
    stop()       -> disconnected (unless the session ended in error)

There is no automatic reconnect; an operator restart starts a new session.

Usage:
    consumer = StreamConsumer(store=MemoryCacheStore())
    consumer.start()
    ...
    consumer.stop()

    # Without the HTTP server (blocks until SIGINT/SIGTERM)
    consumer.run_forever()
"""

from __future__ import annotations

import signal
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from pmp.cache.base import CacheStore
from pmp.common.config import KafkaConfig, TLSConfig, config
from pmp.common.exceptions import BrokerConnectionError, ConfigurationError, DecodeError, PMPError
from pmp.common.logging import get_logger
from pmp.common.metrics import create_component_metrics
from pmp.ingestion.credentials import CredentialResolver
from pmp.ingestion.messages import RawMessage, decode_message
from pmp.ingestion.session import BrokerSession, SessionTimeouts

logger = get_logger(__name__, component="consumer")
metrics = create_component_metrics("consumer")


class ConsumerStatus(str, Enum):
    """Lifecycle states of the long-running consumer."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


_STATE_GAUGE = {
    ConsumerStatus.DISCONNECTED: 0,
    ConsumerStatus.CONNECTING: 1,
    ConsumerStatus.CONNECTED: 2,
    ConsumerStatus.ERROR: 3,
}

# ERROR is reachable from every state and handled separately
_ALLOWED_TRANSITIONS = {
    ConsumerStatus.DISCONNECTED: {ConsumerStatus.CONNECTING},
    ConsumerStatus.CONNECTING: {ConsumerStatus.CONNECTED, ConsumerStatus.DISCONNECTED},
    ConsumerStatus.CONNECTED: {ConsumerStatus.DISCONNECTED},
    ConsumerStatus.ERROR: {ConsumerStatus.CONNECTING},
}


@dataclass(frozen=True)
class ConsumerState:
    """Consumer status plus the failure reason when in error."""

    status: ConsumerStatus = ConsumerStatus.DISCONNECTED
    reason: str | None = None

    @property
    def label(self) -> str:
        """Status string exposed by the read API, e.g. 'error: missing TLS credentials'."""
        if self.status is ConsumerStatus.ERROR and self.reason:
            return f"{self.status.value}: {self.reason}"
        return self.status.value


@dataclass
class ConsumerStats:
    """Statistics from consumer operation."""

    messages_applied: int = 0
    messages_dropped: int = 0
    start_time: float = 0.0

    @property
    def duration_seconds(self) -> float:
        if self.start_time == 0:
            return 0.0
        return time.time() - self.start_time


class StreamConsumer:
    """Background consumer that keeps a CacheStore in step with the topics.

    Args:
        store: Cache store receiving upserts (single writer)
        kafka_config: Kafka settings (defaults to global config)
        tls_config: TLS settings (defaults to global config)
        session_factory: BrokerSession constructor (tests inject a fake)
        credential_resolver: Credential resolver (defaults to one built from tls_config)
    """

    def __init__(
        self,
        store: CacheStore,
        kafka_config: KafkaConfig | None = None,
        tls_config: TLSConfig | None = None,
        session_factory: Callable[..., BrokerSession] = BrokerSession,
        credential_resolver: CredentialResolver | None = None,
    ) -> None:
        self.store = store
        self.kafka_config = kafka_config or config.kafka
        self.credential_resolver = credential_resolver or CredentialResolver(tls_config)
        self._session_factory = session_factory

        self._state = ConsumerState()
        self._state_lock = threading.Lock()
        self._last_message_at: datetime | None = None
        self._session: BrokerSession | None = None
        self._thread: threading.Thread | None = None
        self._stop_requested = threading.Event()
        self.stats = ConsumerStats()

        logger.info(
            "StreamConsumer initialized",
            topics=self.kafka_config.topics,
            group_id=self.kafka_config.group_id,
            backend=store.backend,
        )

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConsumerState:
        return self._state

    @property
    def last_message_at(self) -> datetime | None:
        return self._last_message_at

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _transition(self, status: ConsumerStatus, reason: str | None = None) -> None:
        with self._state_lock:
            current = self._state.status
            if status is not ConsumerStatus.ERROR and status not in _ALLOWED_TRANSITIONS[current]:
                raise RuntimeError(f"Invalid consumer transition {current.value} -> {status.value}")
            self._state = ConsumerState(status=status, reason=reason)

        metrics.gauge("consumer_state", _STATE_GAUGE[status])
        log = logger.error if status is ConsumerStatus.ERROR else logger.info
        log("Consumer state changed", previous=current.value, status=status.value, reason=reason)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start consuming on a background thread."""
        if self.is_running:
            logger.warning("StreamConsumer already running")
            return

        self._stop_requested.clear()
        self._transition(ConsumerStatus.CONNECTING)
        self.stats = ConsumerStats(start_time=time.time())

        self._thread = threading.Thread(
            target=self._consume_loop,
            name="pmp-stream-consumer",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float = 10.0) -> None:
        """Close the session and wait for the consumer thread to finish."""
        self._stop_requested.set()

        session = self._session
        if session is not None:
            try:
                session.close()
            except BrokerConnectionError as err:
                logger.warning("Broker session close failed during stop", error=str(err))

        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Consumer thread did not exit in time", timeout=timeout)

        if self._state.status in (ConsumerStatus.CONNECTING, ConsumerStatus.CONNECTED):
            self._transition(ConsumerStatus.DISCONNECTED)

        logger.info(
            "StreamConsumer stopped",
            messages_applied=self.stats.messages_applied,
            messages_dropped=self.stats.messages_dropped,
        )

    def run_forever(self) -> None:
        """Consume in the foreground until SIGINT/SIGTERM."""
        def _shutdown_handler(signum, frame):
            logger.info("Shutdown signal received", signal=signum)
            self._stop_requested.set()

        signal.signal(signal.SIGTERM, _shutdown_handler)
        signal.signal(signal.SIGINT, _shutdown_handler)

        self.start()
        try:
            while self.is_running and not self._stop_requested.is_set():
                self._stop_requested.wait(timeout=1.0)
        finally:
            self.stop()

    def _open_session(self) -> BrokerSession:
        credentials = self.credential_resolver.resolve()
        return self._session_factory(
            bootstrap_servers=self.kafka_config.bootstrap_servers,
            topics=self.kafka_config.topics,
            group_id=self.kafka_config.group_id,
            credentials=credentials,
            timeouts=SessionTimeouts(
                connection_timeout_ms=self.kafka_config.connection_timeout_ms,
                request_timeout_ms=self.kafka_config.request_timeout_ms,
                poll_timeout_seconds=self.kafka_config.poll_timeout_seconds,
            ),
            client_id=self.kafka_config.client_id,
        ).open()

    def _consume_loop(self) -> None:
        """Background thread body: open, consume, always close."""
        try:
            session = self._open_session()
        except ConfigurationError as err:
            self._transition(ConsumerStatus.ERROR, reason=str(err))
            return
        except BrokerConnectionError as err:
            self._transition(ConsumerStatus.ERROR, reason=str(err))
            return

        self._session = session
        try:
            if self._stop_requested.is_set():
                return
            self._transition(ConsumerStatus.CONNECTED)

            for raw in session.messages():
                self.apply(raw)
                if self._stop_requested.is_set():
                    break

        except BrokerConnectionError as err:
            if not self._stop_requested.is_set():
                self._transition(ConsumerStatus.ERROR, reason=str(err))
        except PMPError as err:
            # StoreUnavailableError from apply()
            self._transition(ConsumerStatus.ERROR, reason=str(err))
        except Exception as err:
            logger.error("Consumer error", error=str(err), exc_info=True)
            self._transition(ConsumerStatus.ERROR, reason=f"unexpected {type(err).__name__}")
            raise
        finally:
            try:
                session.close()
            except BrokerConnectionError as err:
                logger.warning("Broker session close failed", error=str(err))
            self._session = None
            logger.info("Consumer loop stopped")

    # -------------------------------------------------------------------------
    # Message application
    # -------------------------------------------------------------------------

    def apply(self, raw: RawMessage) -> bool:
        """Upsert one raw message; returns False when it was skipped."""
        try:
            decoded = decode_message(raw)
        except DecodeError as err:
            self.stats.messages_dropped += 1
            metrics.increment("messages_dropped_total", labels={"topic": raw.topic})
            logger.warning(
                "Skipping undecodable message",
                topic=raw.topic,
                partition=raw.partition,
                offset=raw.offset,
                error=str(err),
            )
            return False

        now = datetime.now(UTC)
        self.store.put(decoded.topic, decoded.date, decoded.payload, updated_at=now)
        self._last_message_at = now
        self.stats.messages_applied += 1
        metrics.increment("messages_consumed_total", labels={"topic": decoded.topic})
        logger.info(
            "Cached message",
            topic=decoded.topic,
            date=decoded.date,
            updated_at=decoded.payload.get("updated_at", "N/A"),
        )
        return True
