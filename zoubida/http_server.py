from __future__ import annotations

import logging
import os
import ssl
import stat
import threading
import urllib.parse
from http import HTTPStatus
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, BinaryIO, Optional, Sequence

from .errors import ConfigurationError, RequestResolutionError
from .middleware import MiddlewareMixin, ResponseHook, default_middlewares
from .mode import ResolvedTarget, ServeMode

LOG = logging.getLogger(__name__)


class StaticFileHandler(MiddlewareMixin, SimpleHTTPRequestHandler):
    """
    Serves files from the root picked by the serving mode for each request.

    Directories are served through their ``index.html`` only; listings are
    never produced. Every lookup failure is answered with 400 and a short
    plain-text body, missing files included.
    """

    index_page = "index.html"
    lookup_failed_message = "Oops!"
    resolution_failed_message = "Oops 2!"

    def __init__(self, *args: Any, mode: ServeMode, middlewares: Sequence[ResponseHook] = (), **kwargs: Any) -> None:
        # set before super().__init__, which handles the request right away
        self.mode = mode
        self.middlewares = tuple(middlewares)
        super().__init__(*args, directory=str(mode.root), **kwargs)

    def log_message(self, format: str, *args: Any) -> None:
        LOG.info("%s - - %s", self.client_address[0], format % args)

    def send_head(self) -> Optional[BinaryIO]:
        host = self.headers.get("Host", "")
        try:
            target = self.mode.resolve(host, self.path)
        except RequestResolutionError as exc:
            LOG.debug("unable to resolve root for %r: %s", host, exc)
            self.send_plain_error(HTTPStatus.BAD_REQUEST, self.resolution_failed_message)
            return None

        LOG.debug("servedir=%s", target.filesystem_root)
        try:
            return self._open_target(target)
        except RequestResolutionError as exc:
            LOG.debug("lookup failed for %s: %s", self.path, exc)
            self.send_plain_error(HTTPStatus.BAD_REQUEST, self.lookup_failed_message)
            return None

    def _open_target(self, target: ResolvedTarget) -> Optional[BinaryIO]:
        # translate_path maps the URL path under self.directory and drops . and .. segments
        self.directory = str(target.filesystem_root)
        path = self.translate_path(target.relative_path)
        if os.path.isdir(path):
            parts = urllib.parse.urlsplit(target.relative_path)
            if not parts.path.endswith("/"):
                self.send_response(HTTPStatus.TEMPORARY_REDIRECT)
                location = urllib.parse.urlunsplit((parts[0], parts[1], parts[2] + "/", parts[3], parts[4]))
                self.send_header("Location", location)
                self.send_header("Content-Length", "0")
                self.end_headers()
                return None
            path = os.path.join(path, self.index_page)

        try:
            # ValueError: the decoded path holds a NUL byte
            f = open(path, "rb")
        except (OSError, ValueError) as exc:
            raise RequestResolutionError(f"unable to open {path}: {exc}") from exc
        try:
            fs = os.fstat(f.fileno())
            if not stat.S_ISREG(fs.st_mode):
                raise RequestResolutionError(f"not a regular file: {path}")
            self.send_response(HTTPStatus.OK)
            self.send_header("Content-Type", self.guess_type(path))
            self.send_header("Content-Length", str(fs.st_size))
            self.send_header("Last-Modified", self.date_time_string(fs.st_mtime))
            self.end_headers()
            return f
        except BaseException:
            f.close()
            raise

    def send_plain_error(self, code: int, message: str) -> None:
        body = message.encode("utf-8")
        self.send_response(code)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def _method_not_allowed(self) -> None:
        self.send_response(HTTPStatus.METHOD_NOT_ALLOWED)
        self.send_header("Allow", "GET,HEAD")
        self.send_header("Content-Length", "0")
        self.end_headers()

    def __getattr__(self, name: str) -> Any:
        # only GET and HEAD are served, any other method is refused with 405
        if name.startswith("do_"):
            return self._method_not_allowed
        raise AttributeError(name)


def load_tls_credential(certfile: str | os.PathLike[str], keyfile: str | os.PathLike[str]) -> ssl.SSLContext:
    """Load a PEM certificate chain and private key into a server-side SSL context."""
    ctx = ssl.create_default_context(purpose=ssl.Purpose.CLIENT_AUTH)
    # require TLS >= 1.2
    ctx.minimum_version = ssl.TLSVersion.TLSv1_2
    try:
        ctx.load_cert_chain(certfile=os.fspath(certfile), keyfile=os.fspath(keyfile))
    except OSError as exc:
        raise ConfigurationError(f"unable to load TLS certificate {certfile} / key {keyfile}: {exc}") from exc
    return ctx


class ThreadedListener:
    """A ThreadingHTTPServer run from a daemon thread. Subclasses build the server."""

    kind = "HTTP"

    def __init__(self, host: str = "0.0.0.0", port: int = 80, logger: Optional[logging.Logger] = None) -> None:
        self.host = host
        self.port = port
        self.logger = logger or LOG
        self._server: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None
        self.sock_port: Optional[int] = None

    def _make_server(self) -> ThreadingHTTPServer:
        raise NotImplementedError

    def _describe(self) -> str:
        return ""

    def start(self) -> None:
        if self._server:
            return
        try:
            server = self._make_server()
        except OSError as exc:
            raise ConfigurationError(f"unable to bind {self.kind} listener on {self.host}:{self.port}: {exc}") from exc
        self._server = server
        # if port was 0, determine assigned port
        self.sock_port = server.server_address[1]
        self.logger.info("%s server %s on %s:%d", self.kind, self._describe(), self.host, self.sock_port)
        thr = threading.Thread(target=server.serve_forever, name=f"{self.kind.lower()}-{self.sock_port}", daemon=True)
        self._thread = thr
        thr.start()

    def stop(self) -> None:
        if self._server:
            try:
                self._server.shutdown()
            except Exception:
                self.logger.exception("Error shutting down %s server", self.kind)
            try:
                self._server.server_close()
            except Exception:
                self.logger.exception("Error closing %s server", self.kind)
            self._server = None
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2.0)
            self._thread = None
        self.sock_port = None


class HttpFileServer(ThreadedListener):
    def __init__(
        self,
        mode: ServeMode,
        host: str = "0.0.0.0",
        port: int = 80,
        middlewares: Optional[Sequence[ResponseHook]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(host=host, port=port, logger=logger)
        self.mode = mode
        self.middlewares = tuple(default_middlewares() if middlewares is None else middlewares)

    def _describe(self) -> str:
        return f"serving {self.mode.root}"

    def _make_server(self) -> ThreadingHTTPServer:
        handler_cls = StaticFileHandler
        return ThreadingHTTPServer(
            (self.host, self.port),
            lambda *args, **kwargs: handler_cls(*args, mode=self.mode, middlewares=self.middlewares, **kwargs),
        )


class HttpsFileServer(HttpFileServer):
    kind = "HTTPS"

    def __init__(
        self,
        mode: ServeMode,
        context: ssl.SSLContext,
        host: str = "0.0.0.0",
        port: int = 443,
        middlewares: Optional[Sequence[ResponseHook]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(mode, host=host, port=port, middlewares=middlewares, logger=logger)
        self.context = context

    def _make_server(self) -> ThreadingHTTPServer:
        handler_cls = StaticFileHandler
        return TlsThreadingHTTPServer(
            (self.host, self.port),
            lambda *args, **kwargs: handler_cls(*args, mode=self.mode, middlewares=self.middlewares, **kwargs),
            self.context,
        )


class TlsThreadingHTTPServer(ThreadingHTTPServer):
    """
    ThreadingHTTPServer whose connections are TLS-wrapped in their own thread.

    The listening socket stays plain: ``accept()`` never waits on a client
    handshake, so a stalled or failing handshake only holds its own thread.
    """

    def __init__(self, server_address: Any, handler_cls: Any, context: ssl.SSLContext) -> None:
        self.context = context
        super().__init__(server_address, handler_cls)

    def finish_request(self, request: Any, client_address: Any) -> None:
        try:
            tls_request = self.context.wrap_socket(request, server_side=True)
        except OSError as exc:
            # the failed SSLSocket is closed by wrap_socket
            LOG.debug("TLS handshake with %s failed: %s", client_address[0], exc)
            return
        try:
            super().finish_request(tls_request, client_address)
        finally:
            # the plain socket was detached by wrap_socket, close the TLS one
            self.shutdown_request(tls_request)
