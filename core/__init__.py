"""
Core host infrastructure: logging and configuration validation
"""

from .logging_config import setup_logging, get_logger
from .config_validator import ConfigValidator, ConfigValidationError, validate_startup_config

__all__ = [
    "setup_logging",
    "get_logger",
    "ConfigValidator",
    "ConfigValidationError",
    "validate_startup_config",
]
