"""
Core Exceptions - lodge-bot
===========================
Centralized exception definitions for the WhatsApp connection layer.
"""


class ConnectionManagerError(Exception):
    """Base exception for connection lifecycle operations."""
    pass


class SessionStorageError(ConnectionManagerError):
    """
    Raised when the credential directory cannot be created or read.

    This is the only error ``ConnectionManager.start`` lets escape: without
    durable storage the session cannot survive a restart, so the caller
    decides whether to exit.
    """
    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        self.message = f"Session storage unavailable at {path}: {reason}"
        super().__init__(self.message)


class SessionNotOpenError(ConnectionManagerError):
    """Raised when sending while no session is open."""
    def __init__(self, status: str):
        self.status = status
        self.message = f"No open WhatsApp session (status: {status})"
        super().__init__(self.message)


class TransportFactoryError(ConnectionManagerError):
    """Raised when a transport factory or message handler import path cannot be resolved."""
    def __init__(self, import_path: str, reason: str):
        self.import_path = import_path
        self.reason = reason
        self.message = f"Cannot resolve '{import_path}': {reason}"
        super().__init__(self.message)
