"""
NodeLink - Custom Exceptions

Custom exception classes for NodeLink.

Copyright (c) 2024-2025 NodeLink Developers
"""


class NodeLinkError(Exception):
    """Base exception for NodeLink errors."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code or "NODELINK_ERROR"
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(NodeLinkError):
    """Error in configuration."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "CONFIG_ERROR", details)


class TransportError(NodeLinkError):
    """Transport layer error."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "TRANSPORT_ERROR", details)


class SendError(TransportError):
    """A payload could not be delivered by a transport."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, details)
        self.code = "SEND_ERROR"
