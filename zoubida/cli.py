from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
from typing import Optional

from .config import DEFAULT_PORT, DEFAULT_REDIRECT_PORT, ListenConfig
from .errors import ConfigurationError
from .mode import Mode, resolve_mode
from .server import ZoubidaServer

LOG = logging.getLogger("zoubida.cli")


def _build_parser() -> argparse.ArgumentParser:
    env = os.environ.get
    p = argparse.ArgumentParser(prog="zoubida", description="Serve static files over HTTP(S), from a directory or per subdomain")
    p.add_argument("dir", nargs="?", default=env("ZOUBIDA_DIR"), help="Directory to serve files from, uses current dir by default")
    p.add_argument("--port", "-p", type=int, default=env("ZOUBIDA_PORT", str(DEFAULT_PORT)), help="Port serving the files (HTTPS port when TLS is enabled)")
    p.add_argument("--mode", "-m", choices=[m.value for m in Mode], default=env("ZOUBIDA_MODE", Mode.PATH.value), help="Serving mode")
    p.add_argument("--tls-cert", default=env("ZOUBIDA_TLS_CERT"), help="TLS certificate to use (PEM)")
    p.add_argument("--tls-key", default=env("ZOUBIDA_TLS_KEY"), help="TLS private key to use (PEM)")
    p.add_argument("--redirect-port", type=int, default=env("ZOUBIDA_REDIRECT_PORT", str(DEFAULT_REDIRECT_PORT)), help="Plaintext port redirecting to HTTPS when TLS is enabled")
    p.add_argument("--host", default=env("ZOUBIDA_HOST", "0.0.0.0"), help="Host/interface to bind")
    p.add_argument("--log-level", default=env("ZOUBIDA_LOG", "INFO"), help="Logging level")
    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        mode = resolve_mode(args.dir, args.mode)
        listen = ListenConfig.build(port=args.port, certfile=args.tls_cert, keyfile=args.tls_key, redirect_port=args.redirect_port)
    except ConfigurationError as exc:
        LOG.error("%s", exc)
        return 2

    server = ZoubidaServer(mode=mode, listen=listen, host=args.host, logger=LOG)

    # graceful shutdown handling
    stop_requested = False

    def _on_signal(signum, frame):
        nonlocal stop_requested
        LOG.info("Received signal %s, stopping...", signum)
        stop_requested = True

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)

    try:
        server.start()
        LOG.info("Servers started: HTTP=%s HTTPS=%s", server.http_sock_port, server.https_sock_port)
        # wait until signal
        while not stop_requested:
            signal.pause()
    except KeyboardInterrupt:
        LOG.info("Keyboard interrupt received, stopping servers")
    except Exception:
        LOG.exception("Server failed")
        try:
            server.stop()
        except Exception:
            LOG.exception("Error during stop")
        return 1
    finally:
        server.stop()
        LOG.info("Servers stopped")

    return 0


if __name__ == "__main__":
    sys.exit(main())
