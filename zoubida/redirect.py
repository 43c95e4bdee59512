from __future__ import annotations

import logging
import re
import urllib.parse
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional, Sequence

from .errors import RedirectConstructionError
from .http_server import ThreadedListener
from .middleware import MiddlewareMixin, ResponseHook, default_middlewares

LOG = logging.getLogger(__name__)

# characters allowed in a URI authority (RFC 3986: userinfo, host, port)
_AUTHORITY_RE = re.compile(r"^[A-Za-z0-9\-._~%!$&'()*+,;=:@\[\]]+$")


def _check_authority(authority: str) -> None:
    if not _AUTHORITY_RE.match(authority):
        raise RedirectConstructionError(f"invalid authority {authority!r}")
    parts = urllib.parse.urlsplit("//" + authority)
    if not parts.hostname:
        raise RedirectConstructionError(f"no host in authority {authority!r}")
    try:
        parts.port
    except ValueError as exc:
        raise RedirectConstructionError(f"invalid port in authority {authority!r}") from exc


def make_https(host: str, target: str, from_port: int, to_port: int) -> str:
    """
    Build the HTTPS URI a plaintext request is redirected to.

    The authority is the Host header with every occurrence of ``from_port``
    replaced by ``to_port`` as plain text, so a host containing the port
    digits elsewhere is rewritten there too:

      make_https("site.example.com:80", "/foo?x=1", 80, 443)
        -> "https://site.example.com:443/foo?x=1"

    Path and query are kept as sent, the path defaulting to ``/``. Raises
    RedirectConstructionError when the result is not a valid URI.
    """
    if target.startswith("/"):
        path_and_query = target
    else:
        # absolute-form request target: keep only its path and query
        parts = urllib.parse.urlsplit(target)
        if not (parts.scheme and parts.netloc):
            raise RedirectConstructionError(f"unsupported request target {target!r}")
        path_and_query = parts.path or "/"
        if parts.query:
            path_and_query += "?" + parts.query

    authority = host.replace(str(from_port), str(to_port))
    _check_authority(authority)
    return f"https://{authority}{path_and_query}"


class RedirectHandler(MiddlewareMixin, BaseHTTPRequestHandler):
    """Answers every request with a permanent redirect to its HTTPS equivalent."""

    def __init__(
        self, *args: Any, from_port: int, to_port: int, middlewares: Sequence[ResponseHook] = (), **kwargs: Any
    ) -> None:
        self.from_port = from_port
        self.to_port = to_port
        self.middlewares = tuple(middlewares)
        super().__init__(*args, **kwargs)

    def log_message(self, format: str, *args: Any) -> None:
        LOG.info("%s - - %s", self.client_address[0], format % args)

    def _redirect(self) -> None:
        host = self.headers.get("Host", "")
        try:
            location = make_https(host, self.path, self.from_port, self.to_port)
        except RedirectConstructionError as exc:
            LOG.warning("failed to convert URI to HTTPS: %s", exc)
            self.send_response(HTTPStatus.BAD_REQUEST)
            self.send_header("Content-Length", "0")
            self.end_headers()
            return
        self.send_response(HTTPStatus.MOVED_PERMANENTLY)
        self.send_header("Location", location)
        self.send_header("Content-Length", "0")
        self.end_headers()

    do_GET = _redirect

    def __getattr__(self, name: str) -> Any:
        # every method, extension methods included, is redirected
        if name.startswith("do_"):
            return self._redirect
        raise AttributeError(name)


class RedirectServer(ThreadedListener):
    """Plaintext listener that never serves content, only redirects to ``https_port``."""

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 80,
        https_port: int = 443,
        middlewares: Optional[Sequence[ResponseHook]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(host=host, port=port, logger=logger)
        self.https_port = https_port
        self.middlewares = tuple(default_middlewares() if middlewares is None else middlewares)

    def _describe(self) -> str:
        return f"redirecting to :{self.https_port}"

    def _make_server(self) -> ThreadingHTTPServer:
        handler_cls = RedirectHandler
        server = ThreadingHTTPServer(
            (self.host, self.port),
            lambda *args, **kwargs: handler_cls(
                *args,
                # the port actually bound is what clients put in their Host header
                from_port=server.server_address[1],
                to_port=self.https_port,
                middlewares=self.middlewares,
                **kwargs,
            ),
        )
        return server
