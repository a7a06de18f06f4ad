"""
Centralized configuration for the background host
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Remote backend that brokers the GitHub App handshake
BACKEND_BASE_URL = os.getenv("BACKEND_BASE_URL", "https://api.analygits.com")

# GitHub App used for the installation step
GITHUB_HOST = os.getenv("GITHUB_HOST", "github.com")
GITHUB_APP_SLUG = os.getenv("GITHUB_APP_SLUG", "analygitsapp")

DEFAULT_BRANCH = "main"

# Handshake polling settings
HANDSHAKE_CONFIG = {
    "poll_endpoint": "/api/handshake/poll",
    "revoke_endpoint": "/api/auth/token",
    "max_attempt": 60,  # attempts 0..60 inclusive
    "poll_interval_seconds": float(os.getenv("HANDSHAKE_POLL_INTERVAL_SECONDS", "2.0")),
    "open_browser": os.getenv("OPEN_BROWSER", "true").lower() == "true",
}

# Authenticated request relay settings
RELAY_CONFIG = {
    "default_headers": {
        "Accept": "application/json, text/plain, */*",
        "X-Requested-With": "XMLHttpRequest",
        "Content-Type": "application/json",
    },
    # Sent with every CSRF token request, alongside the fetch marker
    "csrf_fetch_headers": {
        "Accept": "application/json, text/plain, */*",
        "X-Requested-With": "XMLHttpRequest",
    },
    "csrf_header": "X-CSRF-Token",
    "csrf_fetch_value": "Fetch",
    "error_body_limit": 200,
    "cookie_file": os.getenv("RELAY_COOKIE_FILE", ""),
}

# Durable state store
STORAGE_CONFIG = {
    "path": os.getenv("STATE_STORE_PATH", "./state/storage.json"),
    "connect_state_key": "connectState",
    "credential_key": "credentialRecord",
}

# Local message surface for UI clients
SERVER_CONFIG = {
    "host": os.getenv("WS_HOST", "localhost"),
    "port": int(os.getenv("WS_PORT", "8765")),
}

# Logging configuration
LOGGING_CONFIG = {
    "log_level": os.getenv("LOG_LEVEL", "INFO"),
    "log_dir": os.getenv("LOG_DIR", "./logs"),
    "enable_file_logging": os.getenv("ENABLE_FILE_LOGGING", "true").lower() == "true",
    "enable_console_logging": os.getenv("ENABLE_CONSOLE_LOGGING", "true").lower() == "true",
    "structured_logging": os.getenv("ENVIRONMENT", "development").lower() == "production",
    "max_log_size_mb": int(os.getenv("MAX_LOG_SIZE_MB", "10")),
    "backup_count": int(os.getenv("LOG_BACKUP_COUNT", "5")),
}


def get_install_url(session_id: str) -> str:
    """Installation page for the GitHub App, correlated to a handshake session"""
    return f"https://{GITHUB_HOST}/apps/{GITHUB_APP_SLUG}/installations/new?state={session_id}"
