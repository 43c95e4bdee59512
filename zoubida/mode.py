from __future__ import annotations

import enum
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .errors import ConfigurationError, RequestResolutionError

LOG = logging.getLogger(__name__)


def subdomain(host: str) -> Optional[str]:
    """
    Pure helper that extracts the leaf subdomain from a Host header value.

    The last two dot-separated labels are the parent domain; everything before
    them is returned as one label, internal dots included:

      leiko.braindead.fr    -> "leiko"
      foo.bar.braindead.fr  -> "foo.bar"
      braindead.fr          -> None

    Never raises. Malformed hosts and IP literals give None or a best-effort
    prefix; callers decide whether None is an error.
    """
    parts = host.rsplit(".", 2)
    if len(parts) < 3:
        return None
    return parts[0]


class Mode(str, enum.Enum):
    PATH = "path"
    SUBDOMAIN = "subdomain"


@dataclass(frozen=True)
class ResolvedTarget:
    filesystem_root: Path
    relative_path: str


@dataclass(frozen=True)
class PathMode:
    """Every request is served from ``root``, whatever its Host header."""

    root: Path

    def resolve(self, host: str, path: str) -> ResolvedTarget:
        return ResolvedTarget(self.root, path)

    def __str__(self) -> str:
        return f"serving directory {str(self.root)!r} in mode PATH"


@dataclass(frozen=True)
class SubdomainMode:
    """Requests are served from ``root / <leaf subdomain of the Host header>``."""

    root: Path

    def resolve(self, host: str, path: str) -> ResolvedTarget:
        label = subdomain(host)
        if label is None:
            raise RequestResolutionError(f"no subdomain in host {host!r}")
        # the label is a single path segment, never a nested path
        if label in ("", os.curdir, os.pardir) or "/" in label or os.sep in label:
            raise RequestResolutionError(f"invalid subdomain {label!r}")
        return ResolvedTarget(self.root / label, path)

    def __str__(self) -> str:
        return f"serving directory {str(self.root)!r} in mode SUBDOMAIN"


# Built once at startup and shared by every handler thread. Both variants are
# frozen: nothing may reassign ``root`` after construction, so no locking.
ServeMode = Union[PathMode, SubdomainMode]


def resolve_mode(configured_dir: Optional[Union[str, Path]], mode: Union[Mode, str]) -> ServeMode:
    """Bind the directory to serve (default: current directory) to a serving mode."""
    if configured_dir is None:
        try:
            configured_dir = os.getcwd()
        except OSError as exc:
            raise ConfigurationError(f"unable to read current directory: {exc}") from exc
    root = Path(configured_dir).resolve()
    if not root.is_dir():
        raise ConfigurationError(f"unable to find directory {str(root)!r}")

    try:
        mode = Mode(mode)
    except ValueError as exc:
        raise ConfigurationError(f"unknown serving mode {mode!r}") from exc
    if mode is Mode.SUBDOMAIN:
        return SubdomainMode(root)
    return PathMode(root)
