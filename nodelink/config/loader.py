"""
NodeLink - Configuration Loader

Configuration loading from YAML files.

Copyright (c) 2024-2025 NodeLink Developers
"""

import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

import yaml

from nodelink.transport.base import TransportConfig
from nodelink.utils.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILES = ("nodelink.yaml", "nodelink-config.yaml")


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = None
    console: bool = True


@dataclass
class NodeLinkConfig:
    """Complete NodeLink configuration."""
    transport: TransportConfig = field(default_factory=TransportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: Optional[str] = None) -> NodeLinkConfig:
    """
    Load configuration from a YAML file.

    With no path, the default file names are searched in the current
    directory and defaults are returned if none exists. Unreadable or
    malformed files are logged and replaced by defaults.

    Args:
        path: Path to a YAML config file

    Returns:
        NodeLinkConfig instance

    Raises:
        ConfigurationError: If an explicit path does not exist
    """
    if path is None:
        for candidate in DEFAULT_CONFIG_FILES:
            if os.path.exists(candidate):
                path = candidate
                break
        else:
            return NodeLinkConfig()
    elif not os.path.exists(path):
        raise ConfigurationError(f"Config file not found: {path}", {"path": path})

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error loading config: {e}")
        return NodeLinkConfig()

    logger.info(f"Loaded config from {path}")
    return _parse_config(data)


def _parse_config(data: Any) -> NodeLinkConfig:
    """Parse config dictionary."""
    config = NodeLinkConfig()

    if not isinstance(data, dict):
        logger.warning("Config root is not a mapping, using defaults")
        return config

    if "transport" in data:
        config.transport = TransportConfig.from_options(data["transport"])

    log = data.get("logging")
    if isinstance(log, dict):
        level = log.get("level", "INFO")
        if isinstance(level, str):
            config.logging.level = level.upper()
        if isinstance(log.get("file"), str):
            config.logging.file = log["file"]
        if isinstance(log.get("console"), bool):
            config.logging.console = log["console"]

    return config


def config_to_dict(config: NodeLinkConfig) -> Dict[str, Any]:
    """Convert a config to plain dicts, as written by save_config."""
    return {
        "transport": asdict(config.transport),
        "logging": asdict(config.logging),
    }


def save_config(config: NodeLinkConfig, path: str) -> bool:
    """
    Save configuration to a YAML file.

    Returns:
        True if the file was written
    """
    try:
        with open(path, "w") as f:
            yaml.safe_dump(config_to_dict(config), f, default_flow_style=False)
        return True
    except OSError as e:
        logger.error(f"Error saving config: {e}")
        return False
