from .errors import ConfigurationError, RedirectConstructionError, RequestResolutionError, ZoubidaError
from .config import ListenConfig, TlsConfig
from .http_server import HttpFileServer, HttpsFileServer, StaticFileHandler, load_tls_credential
from .middleware import HeaderMiddleware
from .mode import Mode, PathMode, ResolvedTarget, ServeMode, SubdomainMode, resolve_mode, subdomain
from .redirect import RedirectServer, make_https
from .server import ZoubidaServer

__all__ = [
    "ZoubidaServer",
    "HttpFileServer",
    "HttpsFileServer",
    "RedirectServer",
    "StaticFileHandler",
    "HeaderMiddleware",
    "ListenConfig",
    "TlsConfig",
    "Mode",
    "PathMode",
    "SubdomainMode",
    "ServeMode",
    "ResolvedTarget",
    "resolve_mode",
    "subdomain",
    "make_https",
    "load_tls_credential",
    "ZoubidaError",
    "ConfigurationError",
    "RequestResolutionError",
    "RedirectConstructionError",
]
