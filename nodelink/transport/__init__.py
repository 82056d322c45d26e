"""
NodeLink - Transport Layer

Transports for reaching a remote node:
- Native: host-provided bridge, no network probe
- WebSocket: persistent streaming connection
- HTTP: request/response with caller-driven polling
- Auto: picks one of the above at runtime and queues until it does

Copyright (c) 2024-2025 NodeLink Developers
"""

from nodelink.transport.base import (
    Transport,
    TransportConfig,
    TransportState,
    TransportStats,
    TransportType,
)
from nodelink.transport.native import CallbackBridge, HostEnvironment, NativeBridgeTransport
from nodelink.transport.websocket import WebSocketTransport, probe_websocket
from nodelink.transport.http import HttpPollingTransport
from nodelink.transport.auto import AutoTransport, select_transport_type

__all__ = [
    "Transport",
    "TransportConfig",
    "TransportState",
    "TransportStats",
    "TransportType",
    "CallbackBridge",
    "HostEnvironment",
    "NativeBridgeTransport",
    "WebSocketTransport",
    "probe_websocket",
    "HttpPollingTransport",
    "AutoTransport",
    "select_transport_type",
]
