"""TLS client credential resolution.

Credentials come from exactly one of two sources, tried in a fixed order:

1. Base64 triple (PMP_TLS_CA_B64 / PMP_TLS_CERT_B64 / PMP_TLS_KEY_B64), used
   only when all three values are present.
2. File-path triple (PMP_TLS_CA_PATH / PMP_TLS_CERT_PATH / PMP_TLS_KEY_PATH),
   with unset paths defaulting to ca.pem, service.cert and service.key under
   PMP_TLS_CERTS_DIR. Used only when all three files exist and are readable.

Resolution reads files at most; it never touches the network.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from pathlib import Path

from pmp.common.config import TLSConfig, config
from pmp.common.exceptions import ConfigurationError
from pmp.common.logging import get_logger

logger = get_logger(__name__, component="ingestion")


@dataclass(frozen=True)
class TLSCredentials:
    """PEM-encoded certificate authority, client certificate and client key."""

    ca: str
    cert: str
    key: str
    source: str = "unknown"

    def __repr__(self) -> str:
        return f"TLSCredentials(source={self.source!r})"


class CredentialResolver:
    """Assemble TLS client credentials from configuration.

    Args:
        tls_config: TLS settings (defaults to global config)

    Example:
        >>> credentials = CredentialResolver().resolve()
        >>> credentials.source
        'base64'
    """

    def __init__(self, tls_config: TLSConfig | None = None) -> None:
        self.tls_config = tls_config or config.tls

    def resolve(self) -> TLSCredentials:
        """Return the credential bundle or raise ConfigurationError."""
        credentials = self._from_base64()
        if credentials is not None:
            return credentials

        credentials = self._from_files()
        if credentials is not None:
            return credentials

        raise ConfigurationError(
            "TLS credentials not found. Set PMP_TLS_CA_B64/PMP_TLS_CERT_B64/PMP_TLS_KEY_B64 "
            f"or place ca.pem, service.cert and service.key in {self.tls_config.certs_dir}/"
        )

    def _from_base64(self) -> TLSCredentials | None:
        values = (self.tls_config.ca_b64, self.tls_config.cert_b64, self.tls_config.key_b64)
        if not all(values):
            if any(values):
                logger.warning("Ignoring incomplete base64 TLS credentials")
            return None

        ca, cert, key = (_decode_b64(name, value) for name, value in zip(("ca", "cert", "key"), values))
        logger.info("Resolved TLS credentials", source="base64")
        return TLSCredentials(ca=ca, cert=cert, key=key, source="base64")

    def _from_files(self) -> TLSCredentials | None:
        paths = (
            self.tls_config.resolved_ca_path,
            self.tls_config.resolved_cert_path,
            self.tls_config.resolved_key_path,
        )

        missing = [str(path) for path in paths if not path.is_file()]
        if missing:
            logger.warning("TLS credential files not found", missing=missing)
            return None

        try:
            ca, cert, key = (_read_text(path) for path in paths)
        except OSError as err:
            logger.warning("TLS credential files not readable", error=str(err))
            return None

        logger.info("Resolved TLS credentials", source="files", certs=[str(p) for p in paths])
        return TLSCredentials(ca=ca, cert=cert, key=key, source="files")


def _decode_b64(name: str, value: str) -> str:
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as err:
        raise ConfigurationError(f"TLS {name} value is not valid base64-encoded text") from err


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")
