"""Server configuration.

``ServerConfig`` is plain data: the command line and the optional
``~/.live-server.json`` file both produce one, and ``liveserver.server.start``
consumes it.
"""
import enum
import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .exceptions import ConfigError
from .matchers import Matcher, as_matcher

CONFIG_FILENAME = ".live-server.json"
DEFAULT_PORT = 8080


class Verbosity(enum.IntEnum):
    QUIET = 0
    ERRORS = 1
    INFO = 2
    VERBOSE = 3


def default_host() -> str:
    return os.environ.get("IP") or "0.0.0.0"


@dataclass
class ServerConfig:
    host: str = field(default_factory=default_host)
    port: int = DEFAULT_PORT  # 0 means ephemeral
    root: str = field(default_factory=os.getcwd)
    watch: Optional[Sequence[str]] = None
    ignore: Sequence[Any] = ()
    poll: bool = False
    verbosity: Verbosity = Verbosity.INFO
    # Seconds to gather further changes into one reload. 0 disables batching.
    debounce: float = 0.0
    retry_delay: float = 1.0
    poll_interval: float = 1.0

    def __post_init__(self):
        self.root = os.path.abspath(self.root)
        self.verbosity = Verbosity(self.verbosity)

    @property
    def watch_roots(self) -> List[str]:
        if not self.watch:
            return [self.root]
        return [os.path.abspath(p) for p in self.watch]

    @property
    def matchers(self) -> List[Matcher]:
        return [as_matcher(m) for m in self.ignore]

    def validate(self) -> None:
        if not os.path.isdir(self.root):
            raise ConfigError(f"Root directory {self.root} does not exist")
        if not os.access(self.root, os.R_OK | os.X_OK):
            raise ConfigError(f"Root directory {self.root} is not readable")
        if not 0 <= self.port <= 65535:
            raise ConfigError(f"Invalid port {self.port}")


def load_config_file(path: Optional[str] = None) -> Dict[str, Any]:
    """Read user defaults from a JSON file.

    Returns an empty dict when the file does not exist. Keys are the ones
    accepted on the command line (``port``, ``host``, ``root``, ``watch``,
    ``ignore``, ``ignorePattern``, ``poll``, ``logLevel``, ``wait``).
    """
    if path is None:
        path = os.path.join(os.path.expanduser("~"), CONFIG_FILENAME)
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object")
    return data
