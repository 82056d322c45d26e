"""
NodeLink Version Information

Transport auto-selection for reaching a remote node
"""

__title__ = "nodelink"
__description__ = "Automatic native/WebSocket/HTTP transport selection for node clients"
__version__ = "0.1.0"
__author__ = "NodeLink Developers"
__license__ = "MIT"
__copyright__ = "Copyright 2024-2025 NodeLink Developers"

# Version tuple for programmatic access
VERSION = tuple(map(int, __version__.split(".")))
