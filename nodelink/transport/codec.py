"""
NodeLink - Payload Codec

Wire encoding shared by all transports. Payloads are opaque to the
selector; only the transports turn them into text.

Copyright (c) 2024-2025 NodeLink Developers
"""

import json
import logging
from typing import Any, Union

logger = logging.getLogger(__name__)


def encode_payload(payload: Any) -> str:
    """
    Encode a payload for the wire.

    Strings are sent as-is, bytes are decoded as UTF-8 and anything
    else is serialized to JSON.

    Args:
        payload: Payload to encode

    Returns:
        Text frame
    """
    if isinstance(payload, str):
        return payload
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload).decode("utf-8")
    if hasattr(payload, "to_dict"):
        payload = payload.to_dict()
    return json.dumps(payload)


def decode_payload(raw: Union[str, bytes]) -> Any:
    """
    Decode an inbound frame.

    Args:
        raw: Text or bytes received from the remote node

    Returns:
        Decoded JSON value, or the raw text if it is not JSON
    """
    if isinstance(raw, (bytes, bytearray)):
        raw = bytes(raw).decode("utf-8", errors="replace")
    try:
        return json.loads(raw)
    except ValueError:
        logger.debug(f"Inbound frame is not JSON ({len(raw)} chars)")
        return raw


def poll_envelope(payload: Any, watch_id: Any, data: Any) -> dict:
    """
    Wrap a poll result so handlers can tell it apart from replies.

    Args:
        payload: Payload that was polled
        watch_id: Caller-supplied watch identifier
        data: Decoded response

    Returns:
        Envelope dict with ``_event``, ``_id`` and ``data`` keys
    """
    event = payload.get("method") if isinstance(payload, dict) else None
    return {"_event": event, "_id": watch_id, "data": data}
