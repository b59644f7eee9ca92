"""
Tests for the reload channel registry and its WebSocket endpoint.
"""

import asyncio
import tempfile
import unittest

from aiohttp import WSMsgType
from aiohttp.test_utils import AioHTTPTestCase

from liveserver.channel import CONNECTED, RELOAD, ReloadChannel
from liveserver.server import create_app


class StubSocket:
    def __init__(self, fail=False, on_send=None):
        self.sent = []
        self.closed = False
        self.fail = fail
        self.on_send = on_send

    async def send_str(self, message):
        if self.fail:
            raise ConnectionResetError("Cannot write to closing transport")
        if self.on_send is not None:
            self.on_send()
        self.sent.append(message)

    async def close(self, code=None, message=b""):
        self.closed = True


class TestReloadChannel(unittest.IsolatedAsyncioTestCase):

    async def test_broadcast_reaches_every_client(self):
        channel = ReloadChannel()
        clients = [StubSocket() for _ in range(3)]
        for ws in clients:
            channel.add(ws)
        self.assertEqual(await channel.broadcast(), 3)
        for ws in clients:
            self.assertEqual(ws.sent, [RELOAD])

    async def test_broadcast_without_clients(self):
        self.assertEqual(await ReloadChannel().broadcast(), 0)

    async def test_failed_send_is_pruned(self):
        channel = ReloadChannel()
        good, bad = StubSocket(), StubSocket(fail=True)
        channel.add(bad)
        channel.add(good)
        self.assertEqual(await channel.broadcast(), 1)
        self.assertEqual(good.sent, [RELOAD])
        self.assertEqual(len(channel), 1)
        self.assertEqual(await channel.broadcast(), 1)
        self.assertEqual(good.sent, [RELOAD, RELOAD])

    async def test_closed_socket_is_pruned(self):
        channel = ReloadChannel()
        ws = StubSocket()
        ws.closed = True
        channel.add(ws)
        self.assertEqual(await channel.broadcast(), 0)
        self.assertEqual(ws.sent, [])
        self.assertEqual(len(channel), 0)

    async def test_client_added_during_broadcast_is_skipped(self):
        channel = ReloadChannel()
        late = StubSocket()
        channel.add(StubSocket(on_send=lambda: channel.add(late)))
        self.assertEqual(await channel.broadcast(), 1)
        self.assertEqual(late.sent, [])
        self.assertEqual(len(channel), 2)

    async def test_close(self):
        channel = ReloadChannel()
        clients = [StubSocket(), StubSocket()]
        for ws in clients:
            channel.add(ws)
        await channel.close()
        self.assertEqual(len(channel), 0)
        self.assertTrue(all(ws.closed for ws in clients))


class TestReloadEndpoint(AioHTTPTestCase):

    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.root = tmp.name
        super().setUp()

    async def get_application(self):
        self.channel = ReloadChannel()
        return create_app(self.root, self.channel)

    async def connect(self, path="/ws"):
        ws = await self.client.ws_connect(path)
        self.assertEqual(await ws.receive_str(timeout=5), CONNECTED)
        return ws

    async def test_connected_acknowledgement(self):
        ws = await self.connect()
        self.assertEqual(len(self.channel), 1)
        await ws.close()

    async def test_any_path_upgrades(self):
        ws = await self.connect("/some/page.html")
        await ws.close()

    async def test_each_open_channel_gets_one_reload(self):
        clients = [await self.connect() for _ in range(3)]
        self.assertEqual(await self.channel.broadcast(), 3)
        for ws in clients:
            self.assertEqual(await ws.receive_str(timeout=5), RELOAD)

        late = await self.connect()
        for ws in clients + [late]:
            with self.assertRaises(asyncio.TimeoutError):
                await ws.receive(timeout=0.2)
        for ws in clients + [late]:
            await ws.close()

    async def test_closed_client_leaves_registry(self):
        ws = await self.connect()
        await ws.close()
        for _ in range(50):
            if len(self.channel) == 0:
                break
            await asyncio.sleep(0.02)
        self.assertEqual(len(self.channel), 0)

    async def test_shutdown_closes_clients(self):
        ws = await self.connect()
        closing = asyncio.create_task(self.channel.close())
        msg = await ws.receive(timeout=5)
        self.assertIn(msg.type, (WSMsgType.CLOSE, WSMsgType.CLOSED, WSMsgType.CLOSING))
        await asyncio.wait_for(closing, 5)
        self.assertEqual(len(self.channel), 0)


if __name__ == "__main__":
    unittest.main()
