"""
NodeLink - Auto Transport Selection

Picks the transport used to reach the node:

1. a transport the host already configured, or the host's native bridge
2. otherwise a WebSocket connection, if a probe handshake succeeds
3. otherwise HTTP polling

Sends and handler registrations made before the choice is known are
queued and replayed, in order, on the chosen transport.

Copyright (c) 2024-2025 NodeLink Developers
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Union

from nodelink.transport.base import (
    MessageHandler,
    Transport,
    TransportConfig,
    TransportType,
)
from nodelink.transport.http import HttpPollingTransport
from nodelink.transport.native import HostEnvironment, NativeBridgeTransport
from nodelink.transport.websocket import WebSocketTransport, probe_websocket

logger = logging.getLogger(__name__)

Probe = Callable[[str, Optional[float]], Awaitable[bool]]
TransportFactory = Callable[[str, TransportConfig], Transport]


def select_transport_type(
    have_transport: bool,
    native_bridge: bool,
    streaming_ok: Optional[bool] = None,
) -> Optional[TransportType]:
    """
    Apply the selection rule.

    Args:
        have_transport: The host already configured a transport
        native_bridge: The host exposes a native bridge
        streaming_ok: Outcome of the WebSocket probe, None if not probed yet

    Returns:
        The chosen TransportType, or None if a probe is still required.
        A transport already configured by the host counts as NATIVE.
    """
    if have_transport or native_bridge:
        return TransportType.NATIVE
    if streaming_ok is None:
        return None
    return TransportType.WEBSOCKET if streaming_ok else TransportType.HTTP


class AutoTransport:
    """
    Automatic transport selection.

    Construct inside a running event loop unless the host provides a
    transport or native bridge; the WebSocket probe is scheduled as a
    task and the constructor returns immediately.

    Example:
        selector = AutoTransport({"streaming_uri": "ws://node:40404/eth"})
        selector.set_message_handler(print)
        selector.send({"method": "eth_blockNumber", "params": []})
        await selector.wait_resolved()
    """

    def __init__(
        self,
        config: Union[TransportConfig, Mapping[str, Any], None] = None,
        host: Optional[HostEnvironment] = None,
        *,
        probe: Optional[Probe] = None,
        streaming_factory: Optional[TransportFactory] = None,
        polling_factory: Optional[TransportFactory] = None,
    ):
        """
        Initialize the selector and start resolution.

        Args:
            config: TransportConfig or a mapping of options
            host: Host capabilities (defaults to none)
            probe: Coroutine ``probe(uri, timeout) -> bool``
            streaming_factory: Builds the streaming transport
            polling_factory: Builds the polling transport
        """
        if isinstance(config, TransportConfig):
            self.config = config
        else:
            self.config = TransportConfig.from_options(config)

        self._host = host or HostEnvironment()
        self._probe = probe or probe_websocket
        self._streaming_factory = streaming_factory or _default_streaming
        self._polling_factory = polling_factory or _default_polling

        self._transport: Optional[Transport] = None
        self._send_queue: List[Any] = []
        self._handler_queue: List[Optional[MessageHandler]] = []
        self._resolved = asyncio.Event()
        self._probe_task: Optional[asyncio.Task] = None
        self._closed = False

        # Capability checks happen once, before any asynchronous work
        have_transport = self._host.have_transport()
        native_bridge = not have_transport and self._host.has_native_bridge()

        if have_transport:
            logger.info("Host already has a transport, using it")
            self._commit(self._host.transport)
            return

        native = self._start_native() if native_bridge else None
        if native is not None:
            self._commit(native)
        else:
            self._probe_task = asyncio.get_running_loop().create_task(
                self._probe_and_resolve()
            )

    @property
    def transport(self) -> Optional[Transport]:
        """The committed transport, or None while unresolved."""
        return self._transport

    @property
    def transport_type(self) -> Optional[TransportType]:
        if self._transport is None:
            return None
        return getattr(self._transport, "transport_type", None)

    @property
    def is_resolved(self) -> bool:
        return self._transport is not None

    @property
    def can_poll(self) -> bool:
        """True once resolved to a transport that supports poll()."""
        return self._transport is not None and hasattr(self._transport, "poll")

    @property
    def queued_sends(self) -> int:
        return len(self._send_queue)

    @property
    def queued_handlers(self) -> int:
        return len(self._handler_queue)

    def send(self, payload: Any) -> None:
        """
        Send a payload through the chosen transport.

        Queued until the transport is known.

        Args:
            payload: Payload to send
        """
        if self._closed:
            logger.warning("send() on a closed selector ignored")
            return
        if self._transport is not None:
            self._transport.send(payload)
            return
        self._send_queue.append(payload)

    def set_message_handler(self, handler: Optional[MessageHandler]) -> None:
        """
        Set the handler for inbound messages.

        The transport keeps a single handler; the last one set wins.

        Args:
            handler: Callable receiving each decoded inbound payload
        """
        if self._closed:
            return
        if self._transport is not None:
            self._transport.set_message_handler(handler)
            return
        self._handler_queue.append(handler)

    def poll(self, payload: Any = None, watch_id: Any = None) -> None:
        """
        Poll the node through the HTTP fallback.

        Only meaningful when the selector fell back to HTTP polling;
        otherwise this does nothing.

        Args:
            payload: Request to poll with
            watch_id: Identifier echoed back in the result envelope
        """
        if self._closed or not self.can_poll:
            logger.debug("poll() ignored, no polling transport in use")
            return
        self._transport.poll(payload, watch_id)

    async def wait_resolved(self, timeout: Optional[float] = None) -> Transport:
        """
        Wait until a transport has been chosen.

        Args:
            timeout: Seconds to wait (None = no limit)

        Returns:
            The chosen transport

        Raises:
            asyncio.TimeoutError: If no transport was chosen in time
        """
        await asyncio.wait_for(self._resolved.wait(), timeout)
        return self._transport

    async def flush(self) -> None:
        """Wait until the chosen transport has written all sends."""
        if self._transport is not None:
            await self._transport.flush()

    async def close(self) -> None:
        """
        Close the selector.

        Stops a probe that is still running, drops anything queued and
        closes the chosen transport, if any. Later sends are ignored.
        """
        if self._closed:
            return
        self._closed = True

        if self._probe_task is not None and not self._probe_task.done():
            self._probe_task.cancel()
            try:
                await self._probe_task
            except asyncio.CancelledError:
                pass

        if self._send_queue or self._handler_queue:
            logger.debug(
                f"Dropping {len(self._send_queue)} queued send(s) on close"
            )
        self._send_queue.clear()
        self._handler_queue.clear()

        if self._transport is not None:
            await self._transport.close()

    async def _probe_and_resolve(self) -> None:
        """Probe the streaming endpoint once and commit to a transport."""
        uri = self.config.streaming_uri
        try:
            streaming_ok = bool(await self._probe(uri, self.config.probe_timeout))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"WebSocket probe raised {e!r}, treating as failure")
            streaming_ok = False

        self._resolve(streaming_ok)

    def _resolve(self, streaming_ok: bool) -> None:
        """Commit to the streaming or polling transport."""
        if self._closed:
            logger.debug("Selector closed before resolution, not committing")
            return
        if self._transport is not None:
            logger.debug("Ignoring duplicate resolution")
            return

        transport = None
        if select_transport_type(False, False, streaming_ok) == TransportType.WEBSOCKET:
            logger.info(f"WebSocket endpoint reachable, streaming via {self.config.streaming_uri}")
            transport = self._start_transport(
                self._streaming_factory, self.config.streaming_uri
            )

        if transport is None:
            logger.info(
                f"WebSocket endpoint {self.config.streaming_uri} unavailable, "
                f"falling back to HTTP polling via {self.config.polling_uri}"
            )
            transport = self._start_transport(
                self._polling_factory, self.config.polling_uri
            )

        if transport is None:
            logger.error("No transport could be started, sends stay queued")
            return

        self._commit(transport)

    def _start_transport(
        self, factory: TransportFactory, uri: str
    ) -> Optional[Transport]:
        """Build and open a transport, or return None if that fails."""
        try:
            transport = factory(uri, self.config)
            transport.open()
            return transport
        except Exception as e:
            logger.error(f"Could not start transport for {uri}: {e!r}")
            return None

    def _start_native(self) -> Optional[Transport]:
        """Attach to the host bridge, or return None if that fails."""
        try:
            transport = NativeBridgeTransport(self._host.native_bridge, self.config)
            transport.open()
            return transport
        except Exception as e:
            logger.error(f"Native bridge unusable, probing instead: {e!r}")
            return None

    def _commit(self, transport: Transport) -> None:
        """Set the transport and replay everything queued so far."""
        self._transport = transport

        sends, self._send_queue = self._send_queue, []
        handlers, self._handler_queue = self._handler_queue, []

        for payload in sends:
            transport.send(payload)
        for handler in handlers:
            transport.set_message_handler(handler)

        if sends or handlers:
            logger.debug(
                f"Replayed {len(sends)} send(s) and {len(handlers)} handler(s)"
            )
        self._resolved.set()


def _default_streaming(uri: str, config: TransportConfig) -> Transport:
    return WebSocketTransport(uri, config)


def _default_polling(uri: str, config: TransportConfig) -> Transport:
    return HttpPollingTransport(uri, config)
