class LiveServerError(Exception):
    """Base class for errors raised by the live server."""


class ConfigError(LiveServerError):
    """Invalid configuration (missing root, unreadable config file...)."""


class BindError(LiveServerError):
    """The listener could not be bound for a reason other than port in use."""
