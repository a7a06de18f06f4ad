"""
Authenticated request relay for UI clients
"""

from .exceptions import RelayError, UnexpectedStatusError, RelayTransportError
from .headers import merge_headers
from .csrf import CsrfTokenDiscovery
from .relay import AuthenticatedRequestRelay

__all__ = [
    "RelayError",
    "UnexpectedStatusError",
    "RelayTransportError",
    "merge_headers",
    "CsrfTokenDiscovery",
    "AuthenticatedRequestRelay",
]
