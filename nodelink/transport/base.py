"""
NodeLink - Base Transport

Abstract base class for all transport implementations.

Copyright (c) 2024-2025 NodeLink Developers
"""

import asyncio
import time
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from enum import Enum, auto
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_STREAMING_URI = "ws://localhost:40404/eth"
DEFAULT_POLLING_URI = "http://localhost:8080"

# Option names accepted for backwards compatibility with older client configs
OPTION_ALIASES = {
    "websockets": "streaming_uri",
    "httprpc": "polling_uri",
    "streamingUri": "streaming_uri",
    "pollingUri": "polling_uri",
}


class TransportState(Enum):
    """Transport connection state."""
    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    RECONNECTING = auto()
    ERROR = auto()
    CLOSED = auto()


class TransportType(Enum):
    """Kinds of transport the selector can commit to."""
    NATIVE = "native"        # Host-provided bridge, no network probe
    WEBSOCKET = "websocket"  # Persistent full-duplex socket
    HTTP = "http"            # Request/response, caller polls


@dataclass
class TransportConfig:
    """Configuration for the selector and its transports."""

    streaming_uri: str = DEFAULT_STREAMING_URI
    polling_uri: str = DEFAULT_POLLING_URI

    # Probe settings (None = wait for the socket's own open/error event)
    probe_timeout: Optional[float] = 10.0

    # WebSocket settings
    connect_timeout: float = 10.0
    ws_ping_interval: Optional[float] = 20.0
    ws_ping_timeout: Optional[float] = 20.0

    # HTTP settings
    http_timeout: float = 30.0
    poll_interval: float = 1.0

    # Reconnection
    reconnect_delay: float = 1.0
    max_reconnect_delay: float = 60.0
    max_reconnect_attempts: int = 0  # 0 = unlimited

    @classmethod
    def from_options(
        cls, options: Optional[Mapping[str, Any]] = None
    ) -> "TransportConfig":
        """
        Build a config from loosely typed user options.

        Unknown keys are ignored and values of the wrong type fall back
        to the defaults, so a malformed config never prevents startup.

        Args:
            options: Mapping of option names to values

        Returns:
            TransportConfig instance
        """
        config = cls()
        if options is None:
            return config
        if not isinstance(options, Mapping):
            logger.warning(
                f"Ignoring transport options of type {type(options).__name__}"
            )
            return config

        defaults = {f.name: getattr(config, f.name) for f in fields(cls)}

        for key, value in options.items():
            name = OPTION_ALIASES.get(key, key)
            if name not in defaults:
                logger.debug(f"Ignoring unknown transport option: {key}")
                continue
            coerced = _coerce_option(name, value, defaults[name])
            if coerced is _INVALID:
                logger.warning(
                    f"Invalid value for {key!r}: {value!r}, "
                    f"using default {defaults[name]!r}"
                )
                continue
            setattr(config, name, coerced)

        return config


_INVALID = object()
_NULLABLE_OPTIONS = {"probe_timeout", "ws_ping_interval", "ws_ping_timeout"}


def _coerce_option(name: str, value: Any, default: Any) -> Any:
    """Coerce a single option to the type of its default."""
    if value is None:
        return None if name in _NULLABLE_OPTIONS else _INVALID

    if isinstance(default, str) or name in ("streaming_uri", "polling_uri"):
        if isinstance(value, str) and value.strip():
            return value.strip()
        return _INVALID

    if isinstance(value, bool):
        return _INVALID

    if isinstance(default, int) and not isinstance(default, bool):
        if isinstance(value, int) and value >= 0:
            return value
        return _INVALID

    # Float options, including nullable ones whose default is None
    if isinstance(value, (int, float)) and value >= 0:
        return float(value)
    return _INVALID


@dataclass
class TransportStats:
    """Statistics for a transport connection."""

    messages_sent: int = 0
    messages_received: int = 0
    bytes_sent: int = 0
    bytes_received: int = 0
    connect_time: Optional[float] = None
    last_activity: Optional[float] = None
    reconnect_count: int = 0
    errors: int = 0
    latency_samples: List[float] = field(default_factory=list)

    @property
    def avg_latency(self) -> float:
        """Get average latency in milliseconds."""
        if not self.latency_samples:
            return 0.0
        return sum(self.latency_samples) / len(self.latency_samples) * 1000


# Handlers may be plain callables or coroutine functions
MessageHandler = Callable[[Any], Union[None, Awaitable[None]]]


class Transport(ABC):
    """
    Abstract base class for NodeLink transports.

    A transport carries opaque payloads to a remote node and hands
    inbound payloads to a single message handler. Registering a new
    handler replaces the previous one.
    """

    transport_type: TransportType

    def __init__(self, config: Optional[TransportConfig] = None):
        """
        Initialize transport.

        Args:
            config: Transport configuration
        """
        self.config = config or TransportConfig()
        self._state = TransportState.DISCONNECTED
        self._stats = TransportStats()
        self._handler: Optional[MessageHandler] = None

    @property
    def state(self) -> TransportState:
        """Get current transport state."""
        return self._state

    @property
    def stats(self) -> TransportStats:
        """Get transport statistics."""
        return self._stats

    @property
    def is_connected(self) -> bool:
        """Check if transport is connected."""
        return self._state == TransportState.CONNECTED

    def set_message_handler(self, handler: Optional[MessageHandler]) -> None:
        """
        Set the message handler, replacing any previous one.

        Args:
            handler: Callable receiving each decoded inbound payload
        """
        self._handler = handler

    def _invoke_handler(self, payload: Any) -> Any:
        """
        Call the handler and account for the inbound message.

        Returns:
            Whatever the handler returned (possibly a coroutine)
        """
        self._stats.messages_received += 1
        self._stats.last_activity = time.time()

        if self._handler is None:
            logger.debug("Inbound message dropped, no handler set")
            return None
        return self._handler(payload)

    async def _dispatch_message(self, payload: Any) -> None:
        """
        Dispatch a payload to the handler.

        Args:
            payload: Decoded inbound payload
        """
        try:
            result = self._invoke_handler(payload)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.error(f"Handler error: {e}")
            self._stats.errors += 1

    def _update_send_stats(self, bytes_count: int) -> None:
        """Update statistics after sending."""
        self._stats.messages_sent += 1
        self._stats.bytes_sent += bytes_count
        self._stats.last_activity = time.time()

    def _update_receive_stats(self, bytes_count: int) -> None:
        """Update statistics after receiving."""
        self._stats.bytes_received += bytes_count

    def _record_latency(self, latency: float) -> None:
        """
        Record a latency sample.

        Args:
            latency: Latency in seconds
        """
        self._stats.latency_samples.append(latency)
        # Keep only last 100 samples
        if len(self._stats.latency_samples) > 100:
            self._stats.latency_samples = self._stats.latency_samples[-100:]

    @abstractmethod
    def open(self) -> None:
        """
        Start the transport.

        Must not block; connection work runs on the event loop.
        """

    @abstractmethod
    def send(self, payload: Any) -> None:
        """
        Send a payload.

        Payloads are delivered in the order ``send`` was called.

        Args:
            payload: Payload to send
        """

    @abstractmethod
    async def close(self) -> None:
        """Close the transport and release its resources."""

    async def flush(self) -> None:
        """Wait until every payload handed to ``send`` has been written."""

    async def __aenter__(self) -> "Transport":
        """Async context manager entry."""
        self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
