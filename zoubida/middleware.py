from __future__ import annotations

from http.server import BaseHTTPRequestHandler
from typing import Callable, Sequence

# A response hook gets the handler right before its header block is closed.
ResponseHook = Callable[[BaseHTTPRequestHandler], None]

MARKER_HEADER = "x-braindead"
MARKER_VALUE = "never gonna give you up"


class HeaderMiddleware:
    """Appends one fixed header to every response. Existing values are kept."""

    def __init__(self, name: str = MARKER_HEADER, value: str = MARKER_VALUE) -> None:
        self.name = name
        self.value = value

    def __call__(self, handler: BaseHTTPRequestHandler) -> None:
        handler.send_header(self.name, self.value)

    def __repr__(self) -> str:
        return f"HeaderMiddleware({self.name!r}, {self.value!r})"


class MiddlewareMixin:
    """
    Runs ``middlewares`` for every response a request handler emits.

    Hooks fire from ``end_headers``, so responses built by ``send_error`` and
    redirects issued by the file-serving primitive are decorated too.
    """

    middlewares: Sequence[ResponseHook] = ()

    def end_headers(self) -> None:
        for hook in self.middlewares:
            hook(self)  # type: ignore[arg-type]
        super().end_headers()  # type: ignore[misc]


def default_middlewares() -> tuple[ResponseHook, ...]:
    return (HeaderMiddleware(),)
