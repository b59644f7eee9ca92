"""Server lifecycle: bind, wire the watcher to the reload channel, shut down.

``start()`` returns a ``ServerHandle`` owned by the caller; there is no
process-wide server state, so several servers can run side by side.
"""
import asyncio
import enum
import errno
import logging
import socket
from typing import List, Optional

import psutil
from aiohttp import hdrs, web

from .channel import ReloadChannel
from .config import ServerConfig, Verbosity
from .exceptions import BindError
from .log import access_logger, access_logger_for
from .static import static_handler
from .watcher import ChangeWatcher

logger = logging.getLogger(__name__)

# Wildcard bind address -> address a local browser should use.
LOCAL_ADDRESS = {"0.0.0.0": "127.0.0.1", "::": "::1"}


class ServerState(enum.Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    LISTENING = "listening"
    ERROR_RETRYING = "error-retrying"
    SHUTTING_DOWN = "shutting-down"


def format_url(host: str, port: int) -> str:
    if ":" in host:
        host = f"[{host}]"
    return f"http://{host}:{port}"


def local_ipv4_addresses() -> List[str]:
    addresses = []
    for addrs in psutil.net_if_addrs().values():
        for addr in addrs:
            if addr.family == socket.AF_INET:
                addresses.append(addr.address)
    return addresses


def create_app(root: str, channel: ReloadChannel) -> web.Application:
    static = static_handler(root)

    async def handle(request: web.Request) -> web.StreamResponse:
        # Any upgrade request on the port is a reload channel.
        if request.headers.get(hdrs.UPGRADE, "").lower() == "websocket":
            return await channel.handle(request)
        return await static(request)

    async def close_channels(app):
        await channel.close()

    app = web.Application()
    app.router.add_route("*", "/{path:.*}", handle)
    app.on_shutdown.append(close_channels)
    return app


class ServerHandle:
    def __init__(self, config: ServerConfig):
        self.config = config
        self.state = ServerState.STOPPED
        self.channel = ReloadChannel()
        self.watcher = ChangeWatcher(
            config.watch_roots,
            config.matchers,
            poll=config.poll,
            poll_interval=config.poll_interval,
        )
        self.watching = asyncio.Event()
        self.runner: Optional[web.AppRunner] = None
        self.host: Optional[str] = None
        self.port: Optional[int] = None
        self.url: Optional[str] = None
        self.open_url: Optional[str] = None
        self.urls: List[str] = []
        self._watch_task: Optional[asyncio.Task] = None

    @property
    def closing(self) -> bool:
        return self.state in (ServerState.SHUTTING_DOWN, ServerState.STOPPED)

    def _make_runner(self) -> web.AppRunner:
        app = create_app(self.config.root, self.channel)
        access_log_class = access_logger_for(self.config.verbosity)
        if access_log_class is None:
            return web.AppRunner(app, access_log=None)
        return web.AppRunner(app, access_log_class=access_log_class, access_log=access_logger)

    async def _listen(self) -> bool:
        """Bind the listener; False if shutdown began while retrying."""
        host, port = self.config.host, self.config.port
        while True:
            self.state = ServerState.STARTING
            site = web.TCPSite(self.runner, host, port)
            try:
                await site.start()
                return not self.closing
            except OSError as e:
                await site.stop()
                if e.errno != errno.EADDRINUSE:
                    logger.error("Cannot listen on %s: %s", format_url(host, port), e)
                    raise BindError(f"Cannot listen on {format_url(host, port)}: {e}") from e
                logger.warning("%s is already in use. Trying another port.", format_url(host, port))
            self.state = ServerState.ERROR_RETRYING
            await asyncio.sleep(self.config.retry_delay)
            if self.closing:
                return False
            port = 0

    def _announce(self) -> None:
        address = self.runner.addresses[0]
        self.host, self.port = address[0], address[1]
        local_host = LOCAL_ADDRESS.get(self.host, self.host)
        self.url = format_url(local_host, self.port)
        self.open_url = format_url(LOCAL_ADDRESS.get(self.config.host, self.config.host), self.port)
        self.urls = [self.url]
        if self.config.verbosity >= Verbosity.VERBOSE and self.host in LOCAL_ADDRESS:
            self.urls = [format_url(ip, self.port) for ip in local_ipv4_addresses()] or self.urls

        if self.open_url != self.url:
            logger.info('Serving "%s" at %s (%s)', self.config.root, self.open_url, self.url)
        elif len(self.urls) == 1:
            logger.info('Serving "%s" at %s', self.config.root, self.urls[0])
        else:
            logger.info('Serving "%s" at\n\t%s', self.config.root, "\n\t".join(self.urls))

    async def _watch(self) -> None:
        try:
            await self.watcher.start()
        except OSError as e:
            logger.error("Cannot start watching for changes: %s", e)
            return
        self.watching.set()
        logger.info("Ready for changes")

        async for batch in self.watcher.batches(self.config.debounce):
            for change in batch:
                logger.info("Change detected %s", change.path)
            await self.channel.broadcast()

    async def start(self) -> None:
        self.config.validate()
        self.state = ServerState.STARTING
        self.runner = self._make_runner()
        await self.runner.setup()
        try:
            listening = await self._listen()
        except BindError:
            await self.shutdown()
            raise
        if not listening:
            return
        self.state = ServerState.LISTENING
        self._announce()
        self._watch_task = asyncio.create_task(self._watch())

    async def shutdown(self) -> None:
        """Stop watching and close the listener. Safe to call repeatedly."""
        if self.state is ServerState.STOPPED and self.runner is None:
            return
        self.state = ServerState.SHUTTING_DOWN

        task, self._watch_task = self._watch_task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        await self.watcher.stop()

        runner, self.runner = self.runner, None
        if runner is not None:
            await runner.cleanup()
        self.state = ServerState.STOPPED

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.shutdown()


async def start(config: ServerConfig) -> ServerHandle:
    """Bind and start serving ``config.root``; the watcher starts in the background."""
    handle = ServerHandle(config)
    await handle.start()
    return handle
