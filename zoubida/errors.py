from __future__ import annotations


class ZoubidaError(Exception):
    """Base class for errors raised by zoubida."""


class ConfigurationError(ZoubidaError):
    """Startup configuration is unusable: bad root directory, TLS credential or listen address."""


class RequestResolutionError(ZoubidaError):
    """A request cannot be mapped to a file. Surfaced to the client as 400."""


class RedirectConstructionError(ZoubidaError):
    """The HTTPS redirect target for a plaintext request is not a valid URI."""
