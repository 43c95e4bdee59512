from __future__ import annotations

import logging
from typing import Optional, Sequence

from .config import ListenConfig
from .http_server import HttpFileServer, HttpsFileServer, ThreadedListener
from .middleware import ResponseHook
from .mode import ServeMode
from .redirect import RedirectServer

LOG = logging.getLogger(__name__)


class ZoubidaServer:
    """
    Main server class that owns the listeners for one serving mode.

    Without TLS a single plaintext listener serves the files. With TLS the
    plaintext port runs a redirect-only listener, started first, and the files
    are served over HTTPS. Both listeners run on their own threads with no
    ordering between them; the mode and listen configuration are read-only.
    """

    def __init__(
        self,
        mode: ServeMode,
        listen: ListenConfig,
        host: str = "0.0.0.0",
        logger: Optional[logging.Logger] = None,
        middlewares: Optional[Sequence[ResponseHook]] = None,
    ) -> None:
        self.mode = mode
        self.listen = listen
        self.host = host
        self.logger = logger or LOG
        self.middlewares = middlewares
        self._http: Optional[ThreadedListener] = None
        self._https: Optional[HttpsFileServer] = None
        self.http_sock_port: Optional[int] = None
        self.https_sock_port: Optional[int] = None

    @property
    def redirecting(self) -> bool:
        return self.listen.tls is not None

    def start(self) -> None:
        """Bind and start the listeners. Raises ConfigurationError when a port cannot be bound."""
        self.logger.info("%s", self.mode)
        tls = self.listen.tls
        if tls is None:
            self._http = HttpFileServer(
                self.mode, host=self.host, port=self.listen.plaintext_port, middlewares=self.middlewares, logger=self.logger
            )
            self._http.start()
            self.http_sock_port = self._http.sock_port
            return

        self._http = RedirectServer(
            host=self.host,
            port=self.listen.plaintext_port,
            https_port=tls.port,
            middlewares=self.middlewares,
            logger=self.logger,
        )
        self._http.start()
        self.http_sock_port = self._http.sock_port
        self._https = HttpsFileServer(
            self.mode, tls.context, host=self.host, port=tls.port, middlewares=self.middlewares, logger=self.logger
        )
        self._https.start()
        self.https_sock_port = self._https.sock_port

    def stop(self) -> None:
        """Stop listeners and release ports."""
        if self._https:
            try:
                self._https.stop()
            except Exception:
                self.logger.exception("Error stopping HTTPS server")
            self._https = None
        if self._http:
            try:
                self._http.stop()
            except Exception:
                self.logger.exception("Error stopping HTTP server")
            self._http = None
        self.http_sock_port = None
        self.https_sock_port = None
