"""
Custom exceptions for the authenticated request relay
"""

from typing import Optional, Dict, Any

from config import RELAY_CONFIG


class RelayError(Exception):
    """Base exception for relayed requests"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class UnexpectedStatusError(RelayError):
    """Raised when the target answers with a non-2xx status"""
    def __init__(self, status: int, reason: str, body: str,
                 body_limit: int = RELAY_CONFIG["error_body_limit"]):
        self.status = status
        self.reason = reason or ""
        self.body = (body or "")[:body_limit]
        super().__init__(f"HTTP {status}: {self.reason} - {self.body}", {"status": status})


class RelayTransportError(RelayError):
    """Raised when the target cannot be reached"""
    pass
