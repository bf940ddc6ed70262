"""Kafka ingestion: credentials, broker sessions, and the two consumer topologies.

- StreamConsumer: long-running background consumer feeding the memory cache
- BoundedSyncJob: budget-bounded replay into the durable (Redis) cache
"""

from pmp.ingestion.consumer import ConsumerState, ConsumerStatus, StreamConsumer
from pmp.ingestion.credentials import CredentialResolver, TLSCredentials
from pmp.ingestion.messages import DecodedMessage, RawMessage, decode_message
from pmp.ingestion.session import BrokerSession, SessionTimeouts
from pmp.ingestion.sync_job import BoundedSyncJob, SyncResult

__all__ = [
    "BoundedSyncJob",
    "BrokerSession",
    "ConsumerState",
    "ConsumerStatus",
    "CredentialResolver",
    "DecodedMessage",
    "RawMessage",
    "SessionTimeouts",
    "StreamConsumer",
    "SyncResult",
    "TLSCredentials",
    "decode_message",
]
