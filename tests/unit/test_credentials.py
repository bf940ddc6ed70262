"""Unit tests for TLS credential resolution."""

import pytest

from pmp.common.config import TLSConfig
from pmp.common.exceptions import ConfigurationError
from pmp.ingestion.credentials import CredentialResolver, TLSCredentials

from tests.unit.fakes import CA_PEM, CERT_PEM, KEY_PEM, b64


def _write_cert_files(certs_dir, ca="FILE-CA", cert="FILE-CERT", key="FILE-KEY"):
    certs_dir.mkdir(parents=True, exist_ok=True)
    (certs_dir / "ca.pem").write_text(ca)
    (certs_dir / "service.cert").write_text(cert)
    (certs_dir / "service.key").write_text(key)


class TestBase64Source:
    """Base64 triple is tried first and used only when complete."""

    def test_resolves_decoded_pem(self, tls_config):
        credentials = CredentialResolver(tls_config).resolve()

        assert credentials.ca == CA_PEM
        assert credentials.cert == CERT_PEM
        assert credentials.key == KEY_PEM
        assert credentials.source == "base64"

    def test_base64_wins_over_files(self, tmp_path):
        _write_cert_files(tmp_path)
        config = TLSConfig(
            ca_b64=b64(CA_PEM), cert_b64=b64(CERT_PEM), key_b64=b64(KEY_PEM), certs_dir=tmp_path,
        )

        credentials = CredentialResolver(config).resolve()

        assert credentials.source == "base64"
        assert credentials.ca == CA_PEM

    def test_partial_base64_falls_through_to_files(self, tmp_path):
        _write_cert_files(tmp_path)
        config = TLSConfig(ca_b64=b64(CA_PEM), cert_b64=b64(CERT_PEM), certs_dir=tmp_path)

        credentials = CredentialResolver(config).resolve()

        assert credentials.source == "files"
        assert credentials.ca == "FILE-CA"

    def test_invalid_base64_raises_without_fall_through(self, tmp_path):
        _write_cert_files(tmp_path)
        config = TLSConfig(
            ca_b64="not base64!!", cert_b64=b64(CERT_PEM), key_b64=b64(KEY_PEM), certs_dir=tmp_path,
        )

        with pytest.raises(ConfigurationError, match="ca"):
            CredentialResolver(config).resolve()


class TestFileSource:
    """File-path triple with defaults under the certs directory."""

    def test_default_file_names(self, tmp_path):
        _write_cert_files(tmp_path)

        credentials = CredentialResolver(TLSConfig(certs_dir=tmp_path)).resolve()

        assert (credentials.ca, credentials.cert, credentials.key) == ("FILE-CA", "FILE-CERT", "FILE-KEY")
        assert credentials.source == "files"

    def test_explicit_paths_override_defaults(self, tmp_path):
        other = tmp_path / "elsewhere"
        other.mkdir()
        (other / "my-ca.pem").write_text("OTHER-CA")
        _write_cert_files(tmp_path)

        config = TLSConfig(certs_dir=tmp_path, ca_path=other / "my-ca.pem")
        credentials = CredentialResolver(config).resolve()

        assert credentials.ca == "OTHER-CA"
        assert credentials.cert == "FILE-CERT"

    def test_missing_file_is_incomplete(self, tmp_path):
        _write_cert_files(tmp_path)
        (tmp_path / "service.key").unlink()

        with pytest.raises(ConfigurationError, match="TLS credentials not found"):
            CredentialResolver(TLSConfig(certs_dir=tmp_path)).resolve()


class TestIncompleteCredentials:
    """Neither source resolves."""

    def test_no_sources_raises(self, tmp_path):
        with pytest.raises(ConfigurationError):
            CredentialResolver(TLSConfig(certs_dir=tmp_path / "missing")).resolve()

    def test_only_key_base64_and_no_files_raises(self, tmp_path):
        config = TLSConfig(key_b64=b64(KEY_PEM), certs_dir=tmp_path)

        with pytest.raises(ConfigurationError):
            CredentialResolver(config).resolve()


def test_repr_hides_key_material():
    credentials = TLSCredentials(ca="CA", cert="CERT", key="SECRET-KEY", source="files")

    assert "SECRET-KEY" not in repr(credentials)
    assert "files" in repr(credentials)
