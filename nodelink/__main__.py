"""
NodeLink - Main entry point

Allows running NodeLink as a module:
    python -m nodelink probe
    python -m nodelink send '{"method": "eth_blockNumber"}'

Copyright (c) 2024-2025 NodeLink Developers
"""

from nodelink.cli import main

if __name__ == "__main__":
    main()
