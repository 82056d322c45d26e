"""
NodeLink - Transport auto-selection for node clients

Reaches a remote node through whichever transport is available: a
native bridge supplied by the host, a WebSocket stream, or HTTP polling.

Quick Start:
    import asyncio
    import nodelink

    async def main():
        link = nodelink.connect({"streaming_uri": "ws://localhost:40404/eth"})
        link.set_message_handler(print)
        link.send({"jsonrpc": "2.0", "method": "eth_blockNumber", "id": 1})
        await link.wait_resolved()
        await link.flush()

    asyncio.run(main())

Copyright (c) 2024-2025 NodeLink Developers
"""

from nodelink.__version__ import (
    __title__,
    __description__,
    __version__,
    __author__,
    __license__,
    __copyright__,
    VERSION,
)


def connect(config=None, host=None, **kwargs):
    """
    Create a transport selector.

    Args:
        config: TransportConfig, dict of options, or None for defaults
        host: Optional HostEnvironment with an existing transport or bridge
        **kwargs: Extra options merged into a dict config

    Returns:
        AutoTransport instance (resolution continues in the background)
    """
    from dataclasses import asdict
    from nodelink.transport.auto import AutoTransport
    from nodelink.transport.base import TransportConfig

    if kwargs:
        if isinstance(config, TransportConfig):
            options = asdict(config)
        else:
            options = dict(config or {})
        options.update(kwargs)
        config = options
    return AutoTransport(config, host)


from nodelink.config import load_config, NodeLinkConfig

__all__ = [
    "__title__",
    "__description__",
    "__version__",
    "__author__",
    "__license__",
    "__copyright__",
    "VERSION",
    "connect",
    "load_config",
    "NodeLinkConfig",
]
