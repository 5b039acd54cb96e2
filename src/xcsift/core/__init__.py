"""Core module exports."""

from xcsift.core.errors import (
    ConfigError,
    ErrorCode,
    InputError,
    XcsiftError,
)
from xcsift.core.logging import configure_logging, get_logger

__all__ = [
    # Errors
    "ConfigError",
    "ErrorCode",
    "InputError",
    "XcsiftError",
    # Logging
    "configure_logging",
    "get_logger",
]
