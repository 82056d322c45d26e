"""
NodeLink - Native Bridge Transport

Transport over a bridge object supplied by the host application (for
example an embedding browser or desktop shell). No network probe is
needed; the host has already wired the channel.

Copyright (c) 2024-2025 NodeLink Developers
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from nodelink.transport.base import (
    Transport,
    TransportConfig,
    TransportState,
    TransportType,
)
from nodelink.transport.codec import decode_payload, encode_payload
from nodelink.utils.errors import TransportError

logger = logging.getLogger(__name__)


class NativeBridgeTransport(Transport):
    """
    Native bridge transport.

    The bridge is any object exposing:

    - ``post_message(text)``: deliver one text frame to the node
    - ``set_receiver(callback)``: register ``callback(text)`` for inbound frames

    Both are called synchronously.
    """

    transport_type = TransportType.NATIVE

    def __init__(self, bridge: Any, config: Optional[TransportConfig] = None):
        super().__init__(config)
        self._bridge = bridge

    @property
    def bridge(self) -> Any:
        return self._bridge

    def open(self) -> None:
        """Attach to the host bridge."""
        if self._state == TransportState.CONNECTED:
            return
        self._bridge.set_receiver(self._on_frame)
        self._state = TransportState.CONNECTED
        logger.info("Using native bridge transport")

    def send(self, payload: Any) -> None:
        """
        Post a payload through the bridge.

        Args:
            payload: Payload to send

        Raises:
            TransportError: If the transport has been closed
        """
        if self._state == TransportState.CLOSED:
            raise TransportError("Native bridge transport is closed")

        frame = encode_payload(payload)
        self._bridge.post_message(frame)
        self._update_send_stats(len(frame))

    def _on_frame(self, raw: Any) -> None:
        """Receive a frame from the host bridge."""
        if self._state == TransportState.CLOSED:
            return

        self._update_receive_stats(len(raw) if hasattr(raw, "__len__") else 0)
        payload = decode_payload(raw) if isinstance(raw, (str, bytes)) else raw

        try:
            result = self._invoke_handler(payload)
        except Exception as e:
            logger.error(f"Handler error: {e}")
            self._stats.errors += 1
            return

        if asyncio.iscoroutine(result):
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                result.close()
                logger.error("Async handler needs a running event loop")
                self._stats.errors += 1
                return
            task = loop.create_task(result)
            task.add_done_callback(self._on_handler_done)

    def _on_handler_done(self, task: "asyncio.Task") -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Handler error: {exc}")
            self._stats.errors += 1

    async def close(self) -> None:
        """Detach from the host bridge."""
        if self._state == TransportState.CLOSED:
            return
        self._state = TransportState.CLOSED
        try:
            self._bridge.set_receiver(None)
        except Exception as e:
            logger.debug(f"Bridge refused receiver reset: {e}")
        logger.info("Native bridge transport closed")


class HostEnvironment:
    """
    Capabilities the host application exposes to the selector.

    Args:
        transport: A transport the host has already configured
        native_bridge: A host bridge object (see NativeBridgeTransport)
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        native_bridge: Any = None,
    ):
        self._transport = transport
        self._native_bridge = native_bridge

    def have_transport(self) -> bool:
        """Check whether the host already configured a transport."""
        return self._transport is not None

    def has_native_bridge(self) -> bool:
        """Check whether a native bridge is available."""
        return self._native_bridge is not None

    @property
    def transport(self) -> Optional[Transport]:
        return self._transport

    @property
    def native_bridge(self) -> Any:
        return self._native_bridge


class CallbackBridge:
    """
    Minimal host bridge built from a plain callable.

    Useful for embedding hosts that only hand over a send function;
    inbound frames are pushed with ``deliver``.
    """

    def __init__(self, post: Callable[[str], None]):
        self._post = post
        self._receiver: Optional[Callable[[Any], None]] = None

    def post_message(self, text: str) -> None:
        self._post(text)

    def set_receiver(self, callback: Optional[Callable[[Any], None]]) -> None:
        self._receiver = callback

    def deliver(self, text: str) -> None:
        """Push an inbound frame to the registered receiver."""
        if self._receiver is not None:
            self._receiver(text)
