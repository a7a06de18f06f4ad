"""
Security helpers for handling credentials and error text.

Device tokens, session ids and CSRF tokens pass through this host; these
helpers keep them out of logs and user-facing error messages.
"""

import logging
import re
import time
from datetime import datetime
from typing import Optional, Dict, Any, Union

# Plain stdlib logger: core.logging_config imports this module for its redaction filter
logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"
MAX_ERROR_LENGTH = 500
GENERIC_ERROR = "An unexpected error occurred"

SENSITIVE_PATTERNS = [
    re.compile(r"Bearer [a-zA-Z0-9_-]+", re.IGNORECASE),
    re.compile(r"ghp_[a-zA-Z0-9]{36}", re.IGNORECASE),   # personal access tokens
    re.compile(r"ghs_[a-zA-Z0-9]{36}", re.IGNORECASE),   # app installation tokens
    re.compile(r"ghu_[a-zA-Z0-9]{36}", re.IGNORECASE),   # user-to-server tokens
    re.compile(r"token[=:]\s*['\"]?[a-zA-Z0-9_-]+", re.IGNORECASE),
    re.compile(r"[a-f0-9]{64}", re.IGNORECASE),
    re.compile(r"password[=:]\s*['\"]?[^\s'\"]+", re.IGNORECASE),
]

SENSITIVE_STORAGE_KEYS = ["deviceToken", "accessToken", "token", "secret"]

TOKEN_FORMAT = re.compile(r"^[a-zA-Z0-9_-]+$")
MIN_TOKEN_LENGTH = 20


def redact_secrets(text: str) -> str:
    """Replace every credential-looking substring of ``text`` with a marker"""
    for pattern in SENSITIVE_PATTERNS:
        text = pattern.sub(REDACTED, text)
    return text


def sanitize_error_message(error: Any) -> str:
    """
    Turn an exception or message into text safe to persist or show.

    Args:
        error: Exception instance or string

    Returns:
        Message with credentials redacted, truncated to 500 characters
    """
    if isinstance(error, BaseException):
        message = str(error) or type(error).__name__
    elif isinstance(error, str):
        message = error
    else:
        message = GENERIC_ERROR

    sanitized = redact_secrets(message)
    if len(sanitized) > MAX_ERROR_LENGTH:
        sanitized = sanitized[:MAX_ERROR_LENGTH] + "..."

    return sanitized


def mask_token(token: Optional[str]) -> str:
    """Mask a token for safe logging, keeping the first and last four characters"""
    if not token:
        return "(none)"
    if len(token) <= 8:
        return "***"
    return f"{token[:4]}...{token[-4:]}"


def is_valid_token_format(token: Optional[str]) -> bool:
    """Check that a token is a plausible opaque credential"""
    if not token or not isinstance(token, str):
        return False
    if len(token) < MIN_TOKEN_LENGTH:
        return False
    return bool(TOKEN_FORMAT.match(token))


def _expiry_to_epoch_ms(expiry: Union[str, int, float]) -> Optional[float]:
    if isinstance(expiry, (int, float)):
        return float(expiry)
    if not isinstance(expiry, str):
        return None
    try:
        parsed = datetime.fromisoformat(expiry.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed.timestamp() * 1000


def is_token_expired(expiry: Union[str, int, float, None], buffer_ms: int = 60000) -> bool:
    """
    Check whether a token expiry lies in the past, or within ``buffer_ms``.

    Args:
        expiry: Epoch milliseconds or an ISO-8601 timestamp. None counts as expired.
        buffer_ms: Safety margin before the real expiry

    Returns:
        True if the token should no longer be used
    """
    if not expiry:
        return True

    expiry_ms = _expiry_to_epoch_ms(expiry)
    if expiry_ms is None:
        logger.warning("Unparseable token expiry; treating token as expired")
        return True

    now_ms = time.time() * 1000
    return expiry_ms - now_ms < buffer_ms


def sanitize_storage_for_logging(data: Dict[str, Any]) -> Dict[str, Any]:
    """Replace credential values in a stored record with presence markers"""
    sanitized: Dict[str, Any] = {}

    for key, value in data.items():
        if any(k.lower() in key.lower() for k in SENSITIVE_STORAGE_KEYS):
            sanitized[key] = "[PRESENT]" if value else "[EMPTY]"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_storage_for_logging(value)
        else:
            sanitized[key] = value

    return sanitized
