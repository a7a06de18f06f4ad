"""
Custom exceptions for the connect handshake
"""

from typing import Optional, Dict, Any


class HandshakeError(Exception):
    """Base exception for a failed handshake round-trip"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class HandshakeStatusError(HandshakeError):
    """Raised when the backend answers with a status that is neither ready nor pending"""
    def __init__(self, status: int, details: Optional[Dict[str, Any]] = None):
        self.status = status
        super().__init__(f"Unexpected status {status}", details)


class HandshakeTransportError(HandshakeError):
    """Raised when the backend cannot be reached or its response is malformed"""
    pass


class RevocationError(HandshakeError):
    """Raised when the backend refuses to revoke a device token"""
    pass
