"""
NodeLink - Utilities Module

Utility functions and helpers.

Copyright (c) 2024-2025 NodeLink Developers
"""

from nodelink.utils.errors import (
    NodeLinkError,
    ConfigurationError,
    TransportError,
    SendError,
)
from nodelink.utils.logging import setup_logging, get_logger

__all__ = [
    "NodeLinkError",
    "ConfigurationError",
    "TransportError",
    "SendError",
    "setup_logging",
    "get_logger",
]
