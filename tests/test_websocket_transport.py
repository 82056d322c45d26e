"""
NodeLink - WebSocket Transport Tests

Tests against a real local WebSocket echo server.

Copyright (c) 2024-2025 NodeLink Developers
"""

import asyncio
import socket

import pytest
import pytest_asyncio
import websockets

from nodelink.transport.auto import AutoTransport
from nodelink.transport.base import TransportConfig, TransportState, TransportType
from nodelink.transport.websocket import WebSocketTransport, probe_websocket
from nodelink.utils.errors import TransportError


def unused_port() -> int:
    """Return a local TCP port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


class Collector:
    """Message handler that lets a test wait for N messages."""

    def __init__(self, expected: int):
        self.messages = []
        self._expected = expected
        self._done = asyncio.Event()

    def __call__(self, payload):
        self.messages.append(payload)
        if len(self.messages) >= self._expected:
            self._done.set()

    async def wait(self, timeout: float = 5.0):
        await asyncio.wait_for(self._done.wait(), timeout)
        return self.messages


@pytest_asyncio.fixture
async def echo_server():
    """WebSocket server echoing every frame back."""
    received = []

    async def handler(ws):
        async for frame in ws:
            received.append(frame)
            await ws.send(frame)

    server = await websockets.serve(handler, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    yield f"ws://127.0.0.1:{port}/eth", received
    server.close()
    await server.wait_closed()


def fast_config(**overrides) -> TransportConfig:
    config = TransportConfig(
        connect_timeout=2.0,
        reconnect_delay=0.01,
        max_reconnect_delay=0.05,
    )
    for key, value in overrides.items():
        setattr(config, key, value)
    return config


class TestProbe:
    """Tests for the handshake probe."""

    @pytest.mark.asyncio
    async def test_probe_succeeds(self, echo_server):
        """Test probe against a listening server."""
        uri, _ = echo_server
        assert await probe_websocket(uri, timeout=2.0)

    @pytest.mark.asyncio
    async def test_probe_refused(self):
        """Test probe against a closed port."""
        uri = f"ws://127.0.0.1:{unused_port()}/eth"
        assert not await probe_websocket(uri, timeout=2.0)

    @pytest.mark.asyncio
    async def test_probe_invalid_uri(self):
        """Test probe with an invalid URI."""
        assert not await probe_websocket("http://127.0.0.1:1/eth", timeout=1.0)


class TestWebSocketTransport:
    """Tests for the streaming transport."""

    @pytest.mark.asyncio
    async def test_sends_queued_before_open_arrive_in_order(self, echo_server):
        """Test sends before connect arrive in order."""
        uri, received = echo_server
        transport = WebSocketTransport(uri, fast_config())
        collector = Collector(expected=3)
        transport.set_message_handler(collector)

        transport.send({"id": 1})
        transport.send({"id": 2})
        transport.open()
        transport.send("raw text")

        await asyncio.wait_for(transport.flush(), 5.0)
        replies = await collector.wait()

        assert received == ['{"id": 1}', '{"id": 2}', "raw text"]
        assert replies == [{"id": 1}, {"id": 2}, "raw text"]
        assert transport.is_connected
        assert transport.stats.messages_sent == 3
        assert transport.stats.messages_received == 3

        await transport.close()
        assert transport.state == TransportState.CLOSED

    @pytest.mark.asyncio
    async def test_async_handler_is_awaited(self, echo_server):
        """Test coroutine handlers are awaited."""
        uri, _ = echo_server
        transport = WebSocketTransport(uri, fast_config())
        seen = asyncio.Event()

        async def handler(payload):
            if payload == {"ping": True}:
                seen.set()

        transport.set_message_handler(handler)
        transport.open()
        transport.send({"ping": True})

        await asyncio.wait_for(seen.wait(), 5.0)
        await transport.close()

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        """Test reconnecting stops after the attempt limit."""
        uri = f"ws://127.0.0.1:{unused_port()}/eth"
        transport = WebSocketTransport(uri, fast_config(max_reconnect_attempts=2))

        transport.send({"id": 1})
        transport.open()
        await asyncio.wait_for(transport.flush(), 5.0)

        assert transport.state == TransportState.ERROR
        assert transport.stats.messages_sent == 0
        assert transport.stats.errors >= 2
        await transport.close()

    @pytest.mark.asyncio
    async def test_send_after_close_raises(self, echo_server):
        """Test send after close raises."""
        uri, _ = echo_server
        transport = WebSocketTransport(uri, fast_config())
        transport.open()
        await transport.close()

        with pytest.raises(TransportError):
            transport.send({"id": 1})


class TestAutoTransportStreaming:
    """End-to-end selection against a live WebSocket server."""

    @pytest.mark.asyncio
    async def test_selects_websocket_and_replays(self, echo_server):
        """Test end-to-end streaming selection."""
        uri, received = echo_server
        selector = AutoTransport(fast_config(streaming_uri=uri, probe_timeout=2.0))
        collector = Collector(expected=2)

        selector.send({"id": 1})
        selector.set_message_handler(collector)
        selector.send({"id": 2})

        await selector.wait_resolved(timeout=5.0)
        assert selector.transport_type == TransportType.WEBSOCKET

        await asyncio.wait_for(selector.flush(), 5.0)
        assert await collector.wait() == [{"id": 1}, {"id": 2}]
        assert received == ['{"id": 1}', '{"id": 2}']

        await selector.close()
