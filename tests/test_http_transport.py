"""
NodeLink - HTTP Polling Transport Tests

Tests against a real local aiohttp server.

Copyright (c) 2024-2025 NodeLink Developers
"""

import asyncio
import logging
import socket

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp import test_utils

from nodelink.transport.auto import AutoTransport
from nodelink.transport.base import TransportConfig, TransportType
from nodelink.transport.http import HttpPollingTransport
from nodelink.utils.errors import TransportError


def unused_port() -> int:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest_asyncio.fixture
async def rpc_server():
    """JSON endpoint answering with the request id, or an error."""
    requests = []

    async def handle(request):
        body = await request.json()
        requests.append(body)
        method = body.get("method")
        if method == "broken":
            return web.Response(status=500, text="internal error")
        if method == "rejected":
            return web.json_response({"error": {"code": -32000, "message": "no filter"}})
        if method == "garbled":
            return web.Response(
                body=b"\xff\xfe\xfa", content_type="application/json", charset="utf-8"
            )
        return web.json_response({"id": body.get("id"), "result": method})

    app = web.Application()
    app.router.add_post("/", handle)
    server = test_utils.TestServer(app)
    await server.start_server()
    yield str(server.make_url("/")), requests
    await server.close()


class TestHttpPollingTransport:
    """Tests for the polling transport."""

    @pytest.mark.asyncio
    async def test_send_dispatches_response(self, rpc_server):
        """Test responses reach the handler in order."""
        uri, requests = rpc_server
        transport = HttpPollingTransport(uri, TransportConfig())
        replies = []
        transport.set_message_handler(replies.append)

        transport.open()
        transport.send({"id": 1, "method": "eth_blockNumber"})
        transport.send({"id": 2, "method": "eth_accounts"})
        await asyncio.wait_for(transport.flush(), 5.0)

        assert [r["id"] for r in requests] == [1, 2]
        assert replies == [
            {"id": 1, "result": "eth_blockNumber"},
            {"id": 2, "result": "eth_accounts"},
        ]
        assert transport.stats.messages_sent == 2
        assert transport.stats.avg_latency > 0

        await transport.close()

    @pytest.mark.asyncio
    async def test_poll_wraps_result(self, rpc_server):
        """Test poll results are wrapped in an envelope."""
        uri, _ = rpc_server
        transport = HttpPollingTransport(uri)
        replies = []
        transport.set_message_handler(replies.append)

        transport.open()
        transport.poll({"id": 5, "method": "eth_getFilterChanges"}, watch_id="w1")
        await asyncio.wait_for(transport.flush(), 5.0)

        assert replies == [{
            "_event": "eth_getFilterChanges",
            "_id": "w1",
            "data": {"id": 5, "result": "eth_getFilterChanges"},
        }]
        await transport.close()

    @pytest.mark.asyncio
    async def test_poll_error_not_dispatched(self, rpc_server):
        """Test poll errors are not delivered."""
        uri, requests = rpc_server
        transport = HttpPollingTransport(uri)
        replies = []
        transport.set_message_handler(replies.append)

        transport.open()
        transport.poll({"id": 6, "method": "rejected"}, watch_id="w2")
        await asyncio.wait_for(transport.flush(), 5.0)

        assert len(requests) == 1
        assert replies == []
        await transport.close()

    @pytest.mark.asyncio
    async def test_server_error_counted_and_worker_survives(self, rpc_server):
        """Test server errors are counted and later sends continue."""
        uri, _ = rpc_server
        transport = HttpPollingTransport(uri)
        replies = []
        transport.set_message_handler(replies.append)

        transport.open()
        transport.send({"id": 1, "method": "broken"})
        transport.send({"id": 2, "method": "eth_syncing"})
        await asyncio.wait_for(transport.flush(), 5.0)

        assert transport.stats.errors == 1
        assert replies == [{"id": 2, "result": "eth_syncing"}]
        await transport.close()

    @pytest.mark.asyncio
    async def test_unreachable_endpoint_counted(self):
        """Test an unreachable endpoint is counted as an error."""
        transport = HttpPollingTransport(f"http://127.0.0.1:{unused_port()}/")
        transport.open()
        transport.send({"id": 1})
        await asyncio.wait_for(transport.flush(), 5.0)

        assert transport.stats.errors == 1
        await transport.close()

    @pytest.mark.asyncio
    async def test_undecodable_response_logged_as_response_error(self, rpc_server, caplog):
        """Test an undecodable response is reported as a response error."""
        uri, requests = rpc_server
        transport = HttpPollingTransport(uri)
        replies = []
        transport.set_message_handler(replies.append)

        transport.open()
        with caplog.at_level(logging.ERROR, logger="nodelink.transport.http"):
            transport.send({"id": 1, "method": "garbled"})
            transport.send({"id": 2, "method": "eth_syncing"})
            await asyncio.wait_for(transport.flush(), 5.0)

        assert len(requests) == 2
        assert transport.stats.errors == 1
        assert "Undecodable response" in caplog.text
        assert "unencodable" not in caplog.text
        assert replies == [{"id": 2, "result": "eth_syncing"}]
        await transport.close()

    @pytest.mark.asyncio
    async def test_unencodable_payload_dropped_before_request(self, rpc_server, caplog):
        """Test an unencodable payload is dropped without a request."""
        uri, requests = rpc_server
        transport = HttpPollingTransport(uri)

        transport.open()
        with caplog.at_level(logging.ERROR, logger="nodelink.transport.http"):
            transport.send(object())
            await asyncio.wait_for(transport.flush(), 5.0)

        assert requests == []
        assert transport.stats.errors == 1
        assert "Dropping unencodable payload" in caplog.text
        await transport.close()

    @pytest.mark.asyncio
    async def test_send_after_close_raises(self, rpc_server):
        """Test send after close raises."""
        uri, _ = rpc_server
        transport = HttpPollingTransport(uri)
        transport.open()
        await transport.close()

        with pytest.raises(TransportError):
            transport.send({"id": 1})


class TestAutoTransportPolling:
    """End-to-end fallback when no WebSocket endpoint is listening."""

    @pytest.mark.asyncio
    async def test_falls_back_and_replays(self, rpc_server):
        """Test end-to-end fallback to polling."""
        uri, requests = rpc_server
        selector = AutoTransport({
            "streaming_uri": f"ws://127.0.0.1:{unused_port()}/eth",
            "polling_uri": uri,
            "probe_timeout": 2.0,
        })
        replies = []

        selector.send({"id": 1, "method": "eth_blockNumber"})
        selector.set_message_handler(replies.append)

        await selector.wait_resolved(timeout=5.0)
        assert selector.transport_type == TransportType.HTTP
        assert selector.can_poll

        selector.poll({"id": 2, "method": "eth_getFilterChanges"}, watch_id=9)
        await asyncio.wait_for(selector.flush(), 5.0)

        assert [r["id"] for r in requests] == [1, 2]
        assert replies[0] == {"id": 1, "result": "eth_blockNumber"}
        assert replies[1]["_id"] == 9

        await selector.close()
