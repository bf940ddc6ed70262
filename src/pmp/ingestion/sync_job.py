"""Bounded sync job for the scheduled/serverless topology.

One run replays the topics into the durable cache for at most a fixed
wall-clock budget, then tears down whether or not the replay finished:

    authorize -> require durable store -> resolve credentials -> open session
    -> race(drain, timer) -> write sync clock -> close session

The cutoff is an asyncio race between a drain task and a timer task; the first
to finish cancels the other. Broker polls and store writes run in worker
threads so the event loop stays free. A write is shielded from cancellation:
once started it completes and is counted before the drain task exits, so the
reported count always matches what reached the store. A message fetched by an
in-flight poll after cancellation is discarded; the next run replays it anyway.

Usage:
    job = BoundedSyncJob(store=RedisCacheStore())
    result = await job.run(token=request_token)
    print(result.messages_processed, result.replay_complete)
"""

from __future__ import annotations

import asyncio
import hmac
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from pmp.cache.base import CacheStore
from pmp.common.config import KafkaConfig, SyncConfig, TLSConfig, config
from pmp.common.exceptions import (
    BrokerConnectionError,
    ConfigurationError,
    DecodeError,
    UnauthorizedError,
)
from pmp.common.logging import get_logger
from pmp.common.metrics import create_component_metrics
from pmp.ingestion.credentials import CredentialResolver
from pmp.ingestion.messages import decode_message
from pmp.ingestion.session import BrokerSession, SessionTimeouts

logger = get_logger(__name__, component="sync")
metrics = create_component_metrics("sync")


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one bounded sync run."""

    messages_processed: int
    synced_at: datetime
    replay_complete: bool

    def to_dict(self) -> dict:
        return {
            "success": True,
            "messagesProcessed": self.messages_processed,
            "syncedAt": self.synced_at.isoformat(),
            "replayComplete": self.replay_complete,
        }


def is_authorized(token: str | None, secret: str | None) -> bool:
    """Constant-time token check; an unset secret authorizes nothing."""
    if not secret or not token:
        return False
    return hmac.compare_digest(token.encode("utf-8"), secret.encode("utf-8"))


class BoundedSyncJob:
    """Replay topics into a durable CacheStore within a time budget.

    Args:
        store: Durable cache store (RedisCacheStore in production)
        sync_config: Budget, timeouts, group and secret (defaults to global config)
        kafka_config: Broker address and topics (defaults to global config)
        tls_config: TLS settings (defaults to global config)
        session_factory: BrokerSession constructor (tests inject a fake)
        credential_resolver: Credential resolver (defaults to one built from tls_config)
    """

    def __init__(
        self,
        store: CacheStore,
        sync_config: SyncConfig | None = None,
        kafka_config: KafkaConfig | None = None,
        tls_config: TLSConfig | None = None,
        session_factory: Callable[..., BrokerSession] = BrokerSession,
        credential_resolver: CredentialResolver | None = None,
    ) -> None:
        self.store = store
        self.sync_config = sync_config or config.sync
        self.kafka_config = kafka_config or config.kafka
        self.credential_resolver = credential_resolver or CredentialResolver(tls_config)
        self._session_factory = session_factory

    async def run(self, token: str | None) -> SyncResult:
        """Execute one sync run.

        Raises:
            UnauthorizedError: token does not match the configured secret
            ConfigurationError: non-durable store or missing TLS credentials
            BrokerConnectionError: session could not be opened or failed fatally
            StoreUnavailableError: durable store rejected a write
        """
        if not is_authorized(token, self.sync_config.secret):
            metrics.increment("sync_runs_total", labels={"outcome": "unauthorized"})
            logger.warning("Rejected sync trigger with invalid credential")
            raise UnauthorizedError("Unauthorized")

        try:
            with metrics.timer("sync_duration_seconds"):
                result = await self._run_authorized()
        except Exception:
            metrics.increment("sync_runs_total", labels={"outcome": "failed"})
            raise

        metrics.increment("sync_runs_total", labels={"outcome": "success"})
        metrics.histogram("sync_messages_processed", result.messages_processed)
        return result

    async def _run_authorized(self) -> SyncResult:
        if not self.store.durable:
            raise ConfigurationError(
                f"Bounded sync requires a durable cache store, got '{self.store.backend}'"
            )

        credentials = self.credential_resolver.resolve()
        session = self._session_factory(
            bootstrap_servers=self.kafka_config.bootstrap_servers,
            topics=self.kafka_config.topics,
            group_id=self.sync_config.group_id,
            credentials=credentials,
            timeouts=SessionTimeouts(
                connection_timeout_ms=self.sync_config.connection_timeout_ms,
                request_timeout_ms=self.sync_config.request_timeout_ms,
                poll_timeout_seconds=self.sync_config.poll_timeout_seconds,
            ),
            client_id=self.sync_config.client_id,
        )

        logger.info(
            "Starting bounded sync",
            topics=self.kafka_config.topics,
            budget_seconds=self.sync_config.budget_seconds,
        )

        counter = {"processed": 0}
        try:
            await asyncio.to_thread(session.open)
            replay_complete = await self._race(session, counter)

            synced_at = datetime.now(UTC)
            await asyncio.to_thread(self.store.mark_synced, synced_at)
        finally:
            try:
                await asyncio.to_thread(session.close)
            except BrokerConnectionError as err:
                logger.warning("Ignoring broker session close failure", error=str(err))

        logger.info(
            "Bounded sync finished",
            messages_processed=counter["processed"],
            replay_complete=replay_complete,
        )
        return SyncResult(
            messages_processed=counter["processed"],
            synced_at=synced_at,
            replay_complete=replay_complete,
        )

    async def _race(self, session: BrokerSession, counter: dict[str, int]) -> bool:
        """Run drain against the budget timer; True when drain won."""
        drain = asyncio.create_task(self._drain(session, counter), name="pmp-sync-drain")
        timer = asyncio.create_task(
            asyncio.sleep(self.sync_config.budget_seconds), name="pmp-sync-timer"
        )

        done, pending = await asyncio.wait({drain, timer}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        if drain in done:
            # Re-raises fatal broker or store errors from the drain task
            drain.result()
            return True

        logger.info(
            "Sync budget exhausted before replay caught up",
            budget_seconds=self.sync_config.budget_seconds,
            messages_processed=counter["processed"],
        )
        return False

    async def _drain(self, session: BrokerSession, counter: dict[str, int]) -> None:
        while not session.caught_up:
            raw = await asyncio.to_thread(session.poll)
            if raw is None:
                continue

            try:
                decoded = decode_message(raw)
            except DecodeError as err:
                metrics.increment("messages_dropped_total", labels={"topic": raw.topic})
                logger.warning(
                    "Skipping undecodable message",
                    topic=raw.topic,
                    partition=raw.partition,
                    offset=raw.offset,
                    error=str(err),
                )
                continue

            write = asyncio.ensure_future(
                asyncio.to_thread(self.store.put, decoded.topic, decoded.date, decoded.payload)
            )
            try:
                await asyncio.shield(write)
            except asyncio.CancelledError:
                # A started write always lands and is counted
                await write
                self._count(counter, decoded.topic)
                raise
            self._count(counter, decoded.topic)

    @staticmethod
    def _count(counter: dict[str, int], topic: str) -> None:
        counter["processed"] += 1
        metrics.increment("messages_consumed_total", labels={"topic": topic})
