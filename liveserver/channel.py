"""Reload channel: one WebSocket per browser tab, broadcast on change."""
import asyncio
import logging
from typing import Set

from aiohttp import WSCloseCode, WSMsgType, web

logger = logging.getLogger(__name__)

CONNECTED = "connected"
RELOAD = "reload"


class ReloadChannel:
    """Registry of open reload connections.

    Everything runs on the event loop, so the set needs no lock; broadcast
    works on a snapshot so connects and disconnects during a send are safe.
    """

    def __init__(self):
        self._clients: Set[web.WebSocketResponse] = set()

    def __len__(self):
        return len(self._clients)

    def add(self, ws) -> None:
        self._clients.add(ws)

    def discard(self, ws) -> None:
        self._clients.discard(ws)

    async def handle(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self.add(ws)
        logger.debug("Reload channel opened (%d open)", len(self))
        try:
            await ws.send_str(CONNECTED)
            # Clients never need to talk; just wait for the close.
            async for msg in ws:
                if msg.type == WSMsgType.ERROR:
                    logger.debug("Reload channel error: %s", ws.exception())
                    break
        except (ConnectionError, RuntimeError) as e:
            logger.debug("Reload channel dropped: %s", e)
        finally:
            self.discard(ws)
            logger.debug("Reload channel closed (%d open)", len(self))
        return ws

    async def _send(self, ws, message: str) -> bool:
        if ws.closed:
            self.discard(ws)
            return False
        try:
            await ws.send_str(message)
        except (ConnectionError, RuntimeError) as e:
            logger.debug("Dropping reload channel: %s", e)
            self.discard(ws)
            return False
        return True

    async def broadcast(self, message: str = RELOAD) -> int:
        """Send ``message`` to every open connection; return the delivery count."""
        clients = list(self._clients)
        if not clients:
            return 0
        sent = await asyncio.gather(*(self._send(ws, message) for ws in clients))
        return sum(sent)

    async def close(self) -> None:
        clients = list(self._clients)
        self._clients.clear()
        await asyncio.gather(
            *(ws.close(code=WSCloseCode.GOING_AWAY, message=b"Server shutdown") for ws in clients)
        )
