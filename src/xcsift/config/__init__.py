"""Config module exports."""

from xcsift.config.loader import load_config, write_template
from xcsift.config.models import LoggingConfig, LogOutputConfig, XcsiftConfig

__all__ = [
    "load_config",
    "write_template",
    "LoggingConfig",
    "LogOutputConfig",
    "XcsiftConfig",
]
