"""
Handshake session identifiers
"""

import secrets

SESSION_ID_BYTES = 32


def generate_session_id(byte_length: int = SESSION_ID_BYTES) -> str:
    """
    Generate an opaque session id from a CSPRNG.

    Returns:
        ``byte_length`` random bytes as lowercase hex (64 characters by default)
    """
    return secrets.token_hex(byte_length)
