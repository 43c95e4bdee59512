from __future__ import annotations

import os
import ssl
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigurationError
from .http_server import load_tls_credential

DEFAULT_PORT = 4242
DEFAULT_REDIRECT_PORT = 80


@dataclass(frozen=True)
class TlsConfig:
    port: int
    # opaque server credential, only ever handed to the transport
    context: ssl.SSLContext


@dataclass(frozen=True)
class ListenConfig:
    """
    Ports to listen on, built once at startup and never mutated.

    Without ``tls`` the content is served in plaintext on ``plaintext_port``.
    With ``tls`` the content is served on ``tls.port`` and ``plaintext_port``
    only redirects to it.
    """

    plaintext_port: int
    tls: Optional[TlsConfig] = None

    @classmethod
    def build(
        cls,
        port: int = DEFAULT_PORT,
        certfile: Optional[str | os.PathLike[str]] = None,
        keyfile: Optional[str | os.PathLike[str]] = None,
        redirect_port: int = DEFAULT_REDIRECT_PORT,
    ) -> "ListenConfig":
        if certfile and keyfile:
            return cls(plaintext_port=redirect_port, tls=TlsConfig(port=port, context=load_tls_credential(certfile, keyfile)))
        if certfile or keyfile:
            raise ConfigurationError("both a TLS certificate and a TLS private key are required for HTTPS")
        return cls(plaintext_port=port)
