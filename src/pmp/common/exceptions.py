"""Error taxonomy for ingestion, caching and the read API.

Propagation policy:
- DecodeError is always recovered locally (skip-and-continue).
- ConfigurationError, BrokerConnectionError and UnauthorizedError are surfaced
  to the caller or operator and never retried by the raising component.
- StoreUnavailableError propagates to callers of CacheStore / StatusAggregator;
  the API turns it into a generic server error.
"""


class PMPError(Exception):
    """Base class for all service errors."""

    pass


class ConfigurationError(PMPError):
    """Missing or incomplete configuration (e.g. TLS credentials)."""

    pass


class BrokerConnectionError(PMPError, ConnectionError):
    """TLS handshake, metadata or subscription failure against the broker."""

    pass


class UnauthorizedError(PMPError):
    """Sync trigger presented a credential that does not match the configured secret."""

    pass


class DecodeError(PMPError):
    """A single message could not be parsed or carries no usable date."""

    def __init__(self, message: str, topic: str | None = None) -> None:
        super().__init__(message)
        self.topic = topic


class StoreUnavailableError(PMPError):
    """Backing cache store is unreachable or returned unreadable data."""

    pass
