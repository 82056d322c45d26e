"""
NodeLink - HTTP Polling Transport

Request/response transport used when no streaming connection is
possible. Replies come back in the HTTP response; anything the node
would push has to be fetched by calling ``poll`` periodically.

Copyright (c) 2024-2025 NodeLink Developers
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp

from nodelink.transport.base import (
    Transport,
    TransportConfig,
    TransportState,
    TransportType,
)
from nodelink.transport.codec import decode_payload, encode_payload, poll_envelope
from nodelink.utils.errors import SendError, TransportError

logger = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    """A queued HTTP request."""
    payload: Any
    is_poll: bool = False
    watch_id: Any = None


class HttpPollingTransport(Transport):
    """
    HTTP polling transport.

    Every ``send`` becomes one JSON POST to the polling URI and the
    decoded response body is handed to the message handler. Requests
    are processed one at a time, in order.
    """

    transport_type = TransportType.HTTP

    def __init__(
        self,
        uri: Optional[str] = None,
        config: Optional[TransportConfig] = None,
    ):
        """
        Initialize HTTP transport.

        Args:
            uri: Endpoint URL, defaults to config.polling_uri
            config: Transport configuration
        """
        super().__init__(config)
        self._uri = uri or self.config.polling_uri
        self._outbox: "asyncio.Queue[PendingRequest]" = asyncio.Queue()
        self._session: Optional[aiohttp.ClientSession] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def uri(self) -> str:
        return self._uri

    def open(self) -> None:
        """Start the request worker."""
        if self._worker is not None or self._state == TransportState.CLOSED:
            return
        self._worker = asyncio.get_running_loop().create_task(self._run())
        self._state = TransportState.CONNECTED
        self._stats.connect_time = time.time()
        logger.info(f"Using HTTP polling transport: {self._uri}")

    def send(self, payload: Any) -> None:
        """
        Queue a payload to be POSTed.

        Args:
            payload: Payload to send
        """
        self._enqueue(PendingRequest(payload))

    def poll(self, payload: Any = None, watch_id: Any = None) -> None:
        """
        Queue a poll request.

        The result reaches the handler wrapped as
        ``{"_event": ..., "_id": watch_id, "data": ...}``. Responses that
        carry an ``error`` member are not delivered.

        Args:
            payload: Request to poll with (e.g. a filter-changes call)
            watch_id: Identifier echoed back in the result envelope
        """
        self._enqueue(PendingRequest(payload, is_poll=True, watch_id=watch_id))

    def _enqueue(self, request: PendingRequest) -> None:
        if self._state == TransportState.CLOSED:
            raise TransportError("HTTP transport is closed", {"uri": self._uri})
        self._outbox.put_nowait(request)

    async def flush(self) -> None:
        """Wait until every queued request has completed."""
        await self._outbox.join()

    async def _run(self) -> None:
        """Process queued requests in order."""
        timeout = aiohttp.ClientTimeout(total=self.config.http_timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            self._session = session
            try:
                while True:
                    request = await self._outbox.get()
                    try:
                        await self._perform(session, request)
                    except (aiohttp.ClientError, asyncio.TimeoutError, SendError) as e:
                        logger.error(f"HTTP request to {self._uri} failed: {e}")
                        self._stats.errors += 1
                    except UnicodeDecodeError as e:
                        logger.error(f"Undecodable response from {self._uri}: {e}")
                        self._stats.errors += 1
                    finally:
                        self._outbox.task_done()
            finally:
                self._session = None

    async def _perform(
        self, session: aiohttp.ClientSession, request: PendingRequest
    ) -> None:
        """POST one request and dispatch the response."""
        try:
            body = encode_payload(request.payload if request.payload is not None else {})
        except (TypeError, ValueError) as e:
            logger.error(f"Dropping unencodable payload: {e}")
            self._stats.errors += 1
            return

        start_time = time.time()

        async with session.post(
            self._uri,
            data=body,
            headers={"Content-Type": "application/json"},
        ) as response:
            text = await response.text()
            if response.status >= 400:
                raise SendError(
                    f"HTTP {response.status} from node",
                    {"status": response.status, "body": text[:200]},
                )

        self._update_send_stats(len(body))
        self._update_receive_stats(len(text))
        self._record_latency(time.time() - start_time)

        if not text:
            return

        data = decode_payload(text)

        if not request.is_poll:
            await self._dispatch_message(data)
            return

        if isinstance(data, dict) and data.get("error"):
            logger.debug(f"Poll {request.watch_id!r} returned error: {data['error']}")
            return

        await self._dispatch_message(
            poll_envelope(request.payload, request.watch_id, data)
        )

    def _discard_pending(self) -> None:
        dropped = 0
        while not self._outbox.empty():
            self._outbox.get_nowait()
            self._outbox.task_done()
            dropped += 1
        if dropped:
            logger.warning(f"Discarded {dropped} queued HTTP request(s)")

    async def close(self) -> None:
        """Stop the worker and close the HTTP session."""
        if self._state == TransportState.CLOSED:
            return
        self._state = TransportState.CLOSED

        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

        self._discard_pending()
        logger.info("HTTP polling transport closed")
