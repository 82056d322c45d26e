"""
Auto Select Example - Queue Before Resolution

This example shows how NodeLink picks a transport on its own:
1. Create a selector pointing at a node
2. Send requests before the transport is known
3. Watch them replay on whichever transport won
4. Poll for changes when the HTTP fallback is in use

Run a node exposing ws://localhost:40404/eth or http://localhost:8080,
or change the URIs below.

Copyright (c) 2024-2025 NodeLink Developers
"""

import asyncio
import nodelink
from nodelink.utils.logging import setup_logging


def on_message(payload):
    print(f"Received: {payload}")


async def main():
    setup_logging("INFO")

    link = nodelink.connect(
        streaming_uri="ws://localhost:40404/eth",
        polling_uri="http://localhost:8080",
        probe_timeout=3,
    )

    # Nothing is known yet, so both of these are queued
    link.set_message_handler(on_message)
    link.send({"jsonrpc": "2.0", "method": "eth_blockNumber", "params": [], "id": 1})

    await link.wait_resolved()
    print(f"Transport in use: {link.transport_type.value}")

    if link.can_poll:
        for _ in range(3):
            link.poll({"jsonrpc": "2.0", "method": "eth_getFilterChanges",
                       "params": ["0x1"], "id": 2}, watch_id="demo")
            await asyncio.sleep(link.config.poll_interval)

    await asyncio.wait_for(link.flush(), timeout=10)
    await asyncio.sleep(1)
    await link.close()

if __name__ == "__main__":
    asyncio.run(main())
