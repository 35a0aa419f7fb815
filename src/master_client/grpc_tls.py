"""TLS helpers for master client channels.

The ``tls`` section of the client configuration names PEM files:

- ``client_ca``: roots used to verify the master; the system store when unset
- ``client_cert`` / ``client_key``: the client identity for mTLS, both or neither
- ``server_name_override``: host name expected in the master's certificate
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import grpc

from .exceptions import ConfigurationError

LOGGER = logging.getLogger(__name__)


def build_client_credentials(tls_options: Mapping[str, Any]) -> grpc.ChannelCredentials:
    """Create channel credentials for (m)TLS connections to a master.

    Raises:
        ConfigurationError: a configured file is missing or unreadable, or only
            one of ``client_cert`` and ``client_key`` is set
    """
    ca_bytes = _read_tls_file(tls_options, "client_ca")
    cert_bytes = _read_tls_file(tls_options, "client_cert")
    key_bytes = _read_tls_file(tls_options, "client_key")

    if (cert_bytes is None) != (key_bytes is None):
        missing = "client_key" if key_bytes is None else "client_cert"
        raise ConfigurationError(f"mTLS needs both client_cert and client_key; {missing} is not set")

    if ca_bytes is None:
        LOGGER.warning("No client CA configured; using system CA for TLS")
    if cert_bytes is None:
        LOGGER.info("Client certificate/key not configured; using TLS without client auth")

    return grpc.ssl_channel_credentials(
        root_certificates=ca_bytes,
        private_key=key_bytes,
        certificate_chain=cert_bytes,
    )


def tls_channel_options(tls_options: Mapping[str, Any]) -> tuple[tuple[str, Any], ...]:
    """Channel options implied by the TLS settings."""
    override = tls_options.get("server_name_override")
    if not override:
        return ()
    return (("grpc.ssl_target_name_override", str(override)),)


def _read_tls_file(tls_options: Mapping[str, Any], key: str) -> bytes | None:
    path_value = tls_options.get(key)
    if not path_value:
        return None
    path = Path(str(path_value))
    try:
        return path.read_bytes()
    except OSError as exc:
        raise ConfigurationError(f"Cannot read TLS {key} at {path}: {exc.strerror or exc}") from exc


__all__ = ["build_client_credentials", "tls_channel_options"]
