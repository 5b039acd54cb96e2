"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. CLI flags (passed as overrides to load_config())
2. Environment variables (XCSIFT__KEY)
3. TOML file (--config PATH, ./.xcsift.toml, ~/.config/xcsift/config.toml)
4. Built-in defaults (this file)

Environment Variable Format:
    XCSIFT__<KEY>=<VALUE>
    XCSIFT__LOGGING__LEVEL=DEBUG

Example .xcsift.toml:
    format = "github-actions"
    warnings = true
    slow_threshold = 1.5
    coverage = true
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
OutputFormat = Literal["json", "github-actions"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        XCSIFT__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="WARNING",
        description="Root log level. Diagnostics go to stderr, never to the report.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class XcsiftConfig(BaseModel):
    """Resolved xcsift settings.

    Field names match the keys accepted in ``.xcsift.toml``.
    """

    model_config = ConfigDict(extra="forbid")

    format: OutputFormat = "json"
    warnings: bool = Field(default=False, description="Include the warnings array.")
    werror: bool = Field(default=False, description="Treat warnings as errors.")
    quiet: bool = Field(default=False, description="No output on a clean success.")
    slow_threshold: float | None = Field(
        default=None,
        gt=0,
        description="Seconds after which a test is reported as slow.",
    )
    coverage: bool = False
    coverage_details: bool = False
    coverage_path: str | None = None
    build_info: bool = False
    executable: bool = False
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
