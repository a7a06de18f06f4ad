"""
Configuration validation module.

Validates the host configuration on startup to catch misconfigurations early
and provide clear error messages before any network or storage work begins.
"""

import os
import re
from typing import Dict, List, Any, Optional, Tuple
from pathlib import Path
from urllib.parse import urlparse

from core.logging_config import get_logger

logger = get_logger(__name__)

APP_SLUG_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]{0,33}$")


class ConfigValidationError(Exception):
    """Raised when configuration validation fails"""
    pass


class ConfigValidator:
    """Validates host configuration"""

    def __init__(self, settings: Optional[Dict[str, Any]] = None):
        """
        Args:
            settings: Optional overrides, keyed like the names in config.py.
                Missing names are read from config.py.
        """
        self.settings = settings or {}
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def _get(self, name: str) -> Any:
        if name in self.settings:
            return self.settings[name]
        import config
        return getattr(config, name)

    def validate_all(self) -> Tuple[bool, List[str], List[str]]:
        """
        Validate all configuration settings.

        Returns:
            Tuple of (is_valid, errors, warnings)
        """
        self.errors.clear()
        self.warnings.clear()

        self._validate_backend_config()
        self._validate_handshake_config()
        self._validate_storage_config()
        self._validate_server_config()
        self._validate_logging_config()

        is_valid = len(self.errors) == 0
        return is_valid, self.errors.copy(), self.warnings.copy()

    def _validate_backend_config(self):
        """Validate backend and provider endpoints"""
        backend = self._get("BACKEND_BASE_URL")
        parsed = urlparse(backend or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            self.errors.append(f"BACKEND_BASE_URL has invalid URL format: {backend!r}")
        elif parsed.scheme == "http" and parsed.hostname not in ("localhost", "127.0.0.1"):
            self.warnings.append("BACKEND_BASE_URL uses plain HTTP; device tokens will travel unencrypted")
        if backend and backend.endswith("/"):
            self.warnings.append("BACKEND_BASE_URL has a trailing slash; endpoint paths already start with '/'")

        slug = self._get("GITHUB_APP_SLUG")
        if not slug or not APP_SLUG_PATTERN.match(slug):
            self.errors.append(f"GITHUB_APP_SLUG is not a valid GitHub App slug: {slug!r}")

        host = self._get("GITHUB_HOST")
        if not host or "/" in host:
            self.errors.append(f"GITHUB_HOST must be a bare host name: {host!r}")

    def _validate_handshake_config(self):
        """Validate polling cadence and budget"""
        handshake = self._get("HANDSHAKE_CONFIG")

        interval = handshake.get("poll_interval_seconds", 2.0)
        if interval <= 0:
            self.errors.append(f"Handshake poll interval must be positive, got {interval}")
        elif interval < 1.0 or interval > 10.0:
            self.warnings.append(f"Handshake poll interval {interval}s is unusual. Recommended: 2-3s")

        max_attempt = handshake.get("max_attempt", 60)
        if not isinstance(max_attempt, int) or max_attempt < 0:
            self.errors.append(f"Handshake max_attempt must be a non-negative integer, got {max_attempt!r}")

    def _validate_storage_config(self):
        """Validate the durable store location"""
        storage = self._get("STORAGE_CONFIG")
        store_path = Path(storage.get("path", "./state/storage.json"))

        # The store creates its own directory; its nearest existing ancestor must be writable
        ancestor = store_path.parent
        while not ancestor.exists() and ancestor != ancestor.parent:
            ancestor = ancestor.parent
        if not os.access(ancestor, os.W_OK):
            self.errors.append(f"State store directory '{ancestor}' is not writable")

        if storage.get("connect_state_key") == storage.get("credential_key"):
            self.errors.append("Connect state and credential record must use different store keys")

    def _validate_server_config(self):
        """Validate the local message surface"""
        server = self._get("SERVER_CONFIG")
        port = server.get("port", 8765)
        if not isinstance(port, int) or not (1 <= port <= 65535):
            self.errors.append(f"WS_PORT must be between 1 and 65535, got {port!r}")
        if server.get("host") not in ("localhost", "127.0.0.1", "::1"):
            self.warnings.append(f"Message surface bound to non-loopback host {server.get('host')!r}")

    def _validate_logging_config(self):
        """Validate logging configuration"""
        logging_config = self._get("LOGGING_CONFIG")

        log_level = logging_config.get("log_level", "INFO")
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if log_level.upper() not in valid_levels:
            self.errors.append(f"Invalid log level '{log_level}'. Must be one of: {', '.join(valid_levels)}")

        max_size = logging_config.get("max_log_size_mb", 10)
        if max_size < 1 or max_size > 1000:
            self.warnings.append(f"Log file size {max_size}MB may be {'too small' if max_size < 5 else 'too large'}. Recommended: 5-100MB")

        backup_count = logging_config.get("backup_count", 5)
        if backup_count < 1 or backup_count > 50:
            self.warnings.append(f"Log backup count {backup_count} may be {'too low' if backup_count < 3 else 'too high'}. Recommended: 3-20")


def validate_startup_config(settings: Optional[Dict[str, Any]] = None) -> None:
    """
    Validate configuration on startup.

    Raises:
        ConfigValidationError: If critical configuration errors are found
    """
    validator = ConfigValidator(settings)
    is_valid, errors, warnings = validator.validate_all()

    for warning in warnings:
        logger.warning(f"Configuration warning: {warning}")

    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")

        error_msg = f"Found {len(errors)} configuration error(s) that must be fixed before starting the host."
        if warnings:
            error_msg += f" Also found {len(warnings)} warning(s) that should be addressed."

        raise ConfigValidationError(error_msg)

    if warnings:
        logger.info(f"Configuration validated successfully with {len(warnings)} warning(s)")
    else:
        logger.info("Configuration validated successfully")
