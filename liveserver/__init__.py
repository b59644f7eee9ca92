"""Development file server that reloads the browser when files change."""

__version__ = "1.0.0"

from .config import ServerConfig, Verbosity  # noqa: E402
from .exceptions import BindError, ConfigError, LiveServerError  # noqa: E402
from .server import ServerHandle, ServerState, start  # noqa: E402

__all__ = [
    "BindError",
    "ConfigError",
    "LiveServerError",
    "ServerConfig",
    "ServerHandle",
    "ServerState",
    "Verbosity",
    "start",
]
