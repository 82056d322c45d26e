"""
NodeLink - WebSocket Transport

Streaming transport over a persistent WebSocket connection to the node.
Also provides the one-shot handshake probe used by the selector.

Copyright (c) 2024-2025 NodeLink Developers
"""

import asyncio
import logging
import time
from typing import Any, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from nodelink.transport.base import (
    Transport,
    TransportConfig,
    TransportState,
    TransportType,
)
from nodelink.transport.codec import decode_payload, encode_payload
from nodelink.utils.errors import TransportError

logger = logging.getLogger(__name__)

# Errors that mean "the endpoint cannot be reached over WebSocket"
CONNECT_ERRORS = (OSError, asyncio.TimeoutError, WebSocketException)


async def _close_quietly(ws) -> None:
    """Close a socket, ignoring failures from sockets that already errored."""
    try:
        await ws.close()
    except Exception as e:
        logger.debug(f"Ignoring error while closing socket: {e}")


async def probe_websocket(uri: str, timeout: Optional[float] = None) -> bool:
    """
    Check whether a WebSocket handshake with ``uri`` succeeds.

    The probe socket is always closed before returning.

    Args:
        uri: WebSocket URI to probe
        timeout: Seconds to wait for the handshake (None = no limit)

    Returns:
        True if the handshake completed
    """
    ws = None
    try:
        ws = await websockets.connect(uri, open_timeout=timeout)
        return True
    except CONNECT_ERRORS as e:
        logger.debug(f"WebSocket probe of {uri} failed: {e!r}")
        return False
    finally:
        if ws is not None:
            await _close_quietly(ws)


class WebSocketTransport(Transport):
    """
    WebSocket transport for streaming communication with the node.

    Features:
    - Ordered outbound queue, usable before the socket is open
    - Automatic reconnection with exponential backoff
    - Ping/pong heartbeat
    """

    transport_type = TransportType.WEBSOCKET

    def __init__(
        self,
        uri: Optional[str] = None,
        config: Optional[TransportConfig] = None,
    ):
        """
        Initialize WebSocket transport.

        Args:
            uri: Server URI (ws://host:port/path), defaults to config.streaming_uri
            config: Transport configuration
        """
        super().__init__(config)
        self._uri = uri or self.config.streaming_uri
        self._ws = None
        self._outbox: "asyncio.Queue[Any]" = asyncio.Queue()
        self._inflight: Any = None
        self._has_inflight = False
        self._run_task: Optional[asyncio.Task] = None
        self._closing = False

    @property
    def uri(self) -> str:
        return self._uri

    def open(self) -> None:
        """Start connecting in the background."""
        if self._run_task is not None or self._closing:
            return
        self._state = TransportState.CONNECTING
        self._run_task = asyncio.get_running_loop().create_task(self._run())

    def send(self, payload: Any) -> None:
        """
        Queue a payload for sending.

        Args:
            payload: Payload to send

        Raises:
            TransportError: If the transport has been closed
        """
        if self._closing:
            raise TransportError(
                "WebSocket transport is closed", {"uri": self._uri}
            )
        self._outbox.put_nowait(payload)

    async def flush(self) -> None:
        """Wait until the outbound queue has been written or discarded."""
        await self._outbox.join()

    async def _run(self) -> None:
        """Connection loop: connect, pump messages, reconnect on loss."""
        delay = self.config.reconnect_delay
        attempts = 0

        while not self._closing:
            try:
                async with websockets.connect(
                    self._uri,
                    open_timeout=self.config.connect_timeout,
                    ping_interval=self.config.ws_ping_interval,
                    ping_timeout=self.config.ws_ping_timeout,
                ) as ws:
                    self._ws = ws
                    self._state = TransportState.CONNECTED
                    self._stats.connect_time = time.time()
                    attempts = 0
                    delay = self.config.reconnect_delay
                    logger.info(f"Connected to WebSocket server: {self._uri}")

                    await self._pump(ws)

            except CONNECT_ERRORS as e:
                logger.warning(f"WebSocket connection to {self._uri} failed: {e!r}")
                self._stats.errors += 1
            finally:
                self._ws = None

            if self._closing:
                break

            attempts += 1
            if (self.config.max_reconnect_attempts > 0 and
                    attempts >= self.config.max_reconnect_attempts):
                logger.error("Max reconnection attempts reached")
                self._state = TransportState.ERROR
                self._discard_pending()
                return

            self._state = TransportState.RECONNECTING
            self._stats.reconnect_count += 1
            logger.info(f"Reconnecting to {self._uri} in {delay:.1f}s...")

            # Exponential backoff
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.config.max_reconnect_delay)

    async def _pump(self, ws) -> None:
        """Run the writer and receiver until either stops."""
        loop = asyncio.get_running_loop()
        writer = loop.create_task(self._write_loop(ws))
        receiver = loop.create_task(self._receive_loop(ws))

        try:
            done, _ = await asyncio.wait(
                {writer, receiver}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (writer, receiver):
                task.cancel()
            await asyncio.gather(writer, receiver, return_exceptions=True)

        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, ConnectionClosed):
                raise exc

    async def _write_loop(self, ws) -> None:
        """Send queued payloads in order."""
        while True:
            if not self._has_inflight:
                self._inflight = await self._outbox.get()
                self._has_inflight = True

            try:
                frame = encode_payload(self._inflight)
            except (TypeError, ValueError) as e:
                logger.error(f"Dropping unencodable payload: {e}")
                self._stats.errors += 1
                self._inflight = None
                self._has_inflight = False
                self._outbox.task_done()
                continue

            await ws.send(frame)

            # Only a completed send leaves the in-flight slot
            self._inflight = None
            self._has_inflight = False
            self._update_send_stats(len(frame))
            self._outbox.task_done()

    async def _receive_loop(self, ws) -> None:
        """Dispatch inbound frames to the handler."""
        try:
            async for raw in ws:
                self._update_receive_stats(len(raw))
                await self._dispatch_message(decode_payload(raw))
        except ConnectionClosed as e:
            logger.info(f"WebSocket connection closed: {e}")

    def _discard_pending(self) -> None:
        """Drop everything still queued so flush() callers are released."""
        dropped = 0
        if self._has_inflight:
            self._inflight = None
            self._has_inflight = False
            self._outbox.task_done()
            dropped += 1
        while not self._outbox.empty():
            self._outbox.get_nowait()
            self._outbox.task_done()
            dropped += 1
        if dropped:
            logger.error(f"Discarded {dropped} unsent message(s) for {self._uri}")
            self._stats.errors += dropped

    async def close(self) -> None:
        """Close the connection and stop reconnecting."""
        if self._closing:
            return
        self._closing = True

        if self._ws is not None:
            await _close_quietly(self._ws)

        if self._run_task is not None:
            self._run_task.cancel()
            try:
                await self._run_task
            except asyncio.CancelledError:
                pass
            self._run_task = None

        self._discard_pending()
        self._state = TransportState.CLOSED
        logger.info("WebSocket transport disconnected")
