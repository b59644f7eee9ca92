import logging

from aiohttp.abc import AbstractAccessLogger

from .config import Verbosity

LEVELS = {
    Verbosity.QUIET: logging.ERROR,
    Verbosity.ERRORS: logging.WARNING,
    Verbosity.INFO: logging.INFO,
    Verbosity.VERBOSE: logging.DEBUG,
}

access_logger = logging.getLogger("liveserver.access")


def configure_logging(verbosity: Verbosity) -> None:
    logging.basicConfig(format="%(message)s")
    logging.getLogger("liveserver").setLevel(LEVELS[Verbosity(verbosity)])


class AccessLogger(AbstractAccessLogger):
    """Logs every request as ``METHOD path STATUS time ms - length``."""

    level = logging.INFO

    @property
    def enabled(self) -> bool:
        return self.logger.isEnabledFor(self.level)

    def should_log(self, response) -> bool:
        return True

    def log(self, request, response, time):
        if not self.should_log(response):
            return
        length = response.body_length if response.body_length else "-"
        self.logger.log(
            self.level,
            "%s %s %s %.3f ms - %s",
            request.method, request.path_qs, response.status, time * 1000, length,
        )


class ErrorAccessLogger(AccessLogger):
    """Only logs responses with an error status."""

    level = logging.WARNING

    def should_log(self, response) -> bool:
        return response.status >= 400


def access_logger_for(verbosity: Verbosity):
    """Pick the request logger class, or None for no request logging."""
    if verbosity >= Verbosity.VERBOSE:
        return AccessLogger
    if verbosity >= Verbosity.ERRORS:
        return ErrorAccessLogger
    return None
