"""
NodeLink - Configuration Module

Configuration loading and management.

Copyright (c) 2024-2025 NodeLink Developers
"""

from nodelink.config.loader import (
    load_config,
    save_config,
    NodeLinkConfig,
    LoggingConfig,
)

__all__ = [
    "load_config",
    "save_config",
    "NodeLinkConfig",
    "LoggingConfig",
]
