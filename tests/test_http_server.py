from __future__ import annotations

import socket
from pathlib import Path

import pytest

from zoubida.http_server import HttpFileServer
from zoubida.mode import PathMode, SubdomainMode

MARKER = b"x-braindead: never gonna give you up"


def _http_request(port: int, path: str, host: str = "127.0.0.1", method: str = "GET", timeout: float = 2.0) -> bytes:
    s = socket.create_connection(("127.0.0.1", port), timeout=timeout)
    try:
        s.sendall(f"{method} {path} HTTP/1.1\r\nHost: {host}\r\nConnection: close\r\n\r\n".encode("utf-8"))
        s.settimeout(timeout)
        data = b""
        while True:
            part = s.recv(4096)
            if not part:
                break
            data += part
        return data
    finally:
        s.close()


def _split(resp: bytes) -> tuple[bytes, bytes]:
    head, _, body = resp.partition(b"\r\n\r\n")
    return head, body


@pytest.fixture
def path_server(tmp_path: Path):
    srv = HttpFileServer(PathMode(tmp_path), host="127.0.0.1", port=0)
    srv.start()
    try:
        yield srv
    finally:
        srv.stop()


@pytest.fixture
def subdomain_server(tmp_path: Path):
    srv = HttpFileServer(SubdomainMode(tmp_path), host="127.0.0.1", port=0)
    srv.start()
    try:
        yield srv
    finally:
        srv.stop()


def test_http_serves_file(tmp_path: Path, path_server: HttpFileServer) -> None:
    (tmp_path / "file.txt").write_bytes(b"hello-http")
    head, body = _split(_http_request(path_server.sock_port, "/file.txt"))
    assert b"200 OK" in head
    assert b"Content-Type: text/plain" in head
    assert b"Content-Length: 10" in head
    assert b"Last-Modified:" in head
    assert MARKER in head
    assert body == b"hello-http"


def test_path_mode_ignores_host(tmp_path: Path, path_server: HttpFileServer) -> None:
    (tmp_path / "file.txt").write_bytes(b"same")
    for host in ("a.example.com", "example.com", "whatever"):
        head, body = _split(_http_request(path_server.sock_port, "/file.txt", host=host))
        assert b"200 OK" in head
        assert body == b"same"


def test_http_index_fallback(tmp_path: Path, path_server: HttpFileServer) -> None:
    (tmp_path / "index.html").write_text("root-index")
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "index.html").write_text("docs-index")

    head, body = _split(_http_request(path_server.sock_port, "/"))
    assert b"200 OK" in head
    assert b"text/html" in head
    assert body == b"root-index"

    head, body = _split(_http_request(path_server.sock_port, "/docs/?q=1"))
    assert b"200 OK" in head
    assert body == b"docs-index"


def test_http_directory_without_slash_redirects(tmp_path: Path, path_server: HttpFileServer) -> None:
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "index.html").write_text("docs-index")
    head, _ = _split(_http_request(path_server.sock_port, "/docs?q=1"))
    assert b"307 Temporary Redirect" in head
    assert b"Location: /docs/?q=1" in head
    assert MARKER in head


def test_http_directory_without_index_is_400(tmp_path: Path, path_server: HttpFileServer) -> None:
    (tmp_path / "empty").mkdir()
    (tmp_path / "empty" / "other.txt").write_text("not listed")
    head, body = _split(_http_request(path_server.sock_port, "/empty/"))
    assert b"400" in head
    assert body == b"Oops!"
    assert b"other.txt" not in body


def test_http_missing_file_is_400(path_server: HttpFileServer) -> None:
    head, body = _split(_http_request(path_server.sock_port, "/no-such-file"))
    assert b"400 Bad Request" in head
    assert b"Content-Type: text/plain; charset=utf-8" in head
    assert MARKER in head
    assert body == b"Oops!"


def test_http_block_path_traversal(tmp_path: Path) -> None:
    root = tmp_path / "root"
    root.mkdir()
    (tmp_path / "outside.txt").write_bytes(b"secret")
    srv = HttpFileServer(PathMode(root), host="127.0.0.1", port=0)
    srv.start()
    try:
        resp = _http_request(srv.sock_port, "/../outside.txt")
        assert b"200 OK" not in resp
        assert b"secret" not in resp
    finally:
        srv.stop()


def test_http_head_has_no_body(tmp_path: Path, path_server: HttpFileServer) -> None:
    (tmp_path / "file.txt").write_bytes(b"hello-head")
    head, body = _split(_http_request(path_server.sock_port, "/file.txt", method="HEAD"))
    assert b"200 OK" in head
    assert b"Content-Length: 10" in head
    assert body == b""

    head, body = _split(_http_request(path_server.sock_port, "/missing", method="HEAD"))
    assert b"400" in head
    assert body == b""


def test_http_other_methods_not_allowed(path_server: HttpFileServer) -> None:
    for method in ("DELETE", "POST", "PROPFIND"):
        head, body = _split(_http_request(path_server.sock_port, "/", method=method))
        assert b"405 Method Not Allowed" in head
        assert b"Allow: GET,HEAD" in head
        assert MARKER in head
        assert body == b""


def test_http_nul_byte_in_path_is_400(tmp_path: Path, path_server: HttpFileServer) -> None:
    (tmp_path / "file.txt").write_bytes(b"still-served")
    head, body = _split(_http_request(path_server.sock_port, "/a%00b"))
    assert b"400 Bad Request" in head
    assert MARKER in head
    assert body == b"Oops!"
    # the listener keeps serving after the failed lookup
    head, body = _split(_http_request(path_server.sock_port, "/file.txt"))
    assert b"200 OK" in head
    assert body == b"still-served"


def test_http_repeated_requests_identical(tmp_path: Path, path_server: HttpFileServer) -> None:
    (tmp_path / "file.txt").write_bytes(b"stable")
    first = _split(_http_request(path_server.sock_port, "/file.txt"))[1]
    second = _split(_http_request(path_server.sock_port, "/file.txt"))[1]
    assert first == second == b"stable"


def test_subdomain_serves_tenant_root(tmp_path: Path, subdomain_server: HttpFileServer) -> None:
    (tmp_path / "a").mkdir()
    (tmp_path / "a" / "index.html").write_text("site-a")
    (tmp_path / "foo.bar").mkdir()
    (tmp_path / "foo.bar" / "index.html").write_text("site-foo-bar")

    head, body = _split(_http_request(subdomain_server.sock_port, "/", host="a.example.com"))
    assert b"200 OK" in head
    assert body == b"site-a"

    head, body = _split(_http_request(subdomain_server.sock_port, "/", host="foo.bar.example.com:4242"))
    assert b"200 OK" in head
    assert body == b"site-foo-bar"


def test_subdomain_bare_domain_is_400(tmp_path: Path, subdomain_server: HttpFileServer) -> None:
    (tmp_path / "index.html").write_text("parent-root")
    head, body = _split(_http_request(subdomain_server.sock_port, "/", host="example.com"))
    assert b"400" in head
    assert MARKER in head
    assert body == b"Oops 2!"


def test_subdomain_cannot_escape_root(tmp_path: Path, subdomain_server: HttpFileServer) -> None:
    (tmp_path / "index.html").write_text("parent-root")
    for host in ("..example.com", ".example.com"):
        head, body = _split(_http_request(subdomain_server.sock_port, "/", host=host))
        assert b"400" in head
        assert b"parent-root" not in body


def test_subdomain_unknown_tenant_is_400(subdomain_server: HttpFileServer) -> None:
    head, body = _split(_http_request(subdomain_server.sock_port, "/", host="ghost.example.com"))
    assert b"400" in head
    assert body == b"Oops!"


def test_http_custom_middlewares(tmp_path: Path) -> None:
    (tmp_path / "f.txt").write_text("x")

    def _hook(handler) -> None:
        handler.send_header("x-extra", "1")

    srv = HttpFileServer(PathMode(tmp_path), host="127.0.0.1", port=0, middlewares=[_hook])
    srv.start()
    try:
        head, _ = _split(_http_request(srv.sock_port, "/f.txt"))
        assert b"x-extra: 1" in head
        assert MARKER not in head
    finally:
        srv.stop()
