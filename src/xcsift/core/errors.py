"""xcsift error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Input

Only the configuration loader and the CLI input handling raise these. The
parser and coverage discovery degrade to a smaller report instead.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_FILE_NOT_FOUND = 2004
    CONFIG_READ_ERROR = 2005

    # Input (3xxx)
    INPUT_MISSING = 3001
    INPUT_EMPTY = 3002


@dataclass(frozen=True, slots=True)
class XcsiftError(Exception):
    """Base error with structured context."""

    code: ErrorCode
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'CONFIG_PARSE_ERROR')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(XcsiftError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def file_not_found(cls, path: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
            message=f"Config file not found: {path}",
            details={"path": path},
        )

    @classmethod
    def read_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_READ_ERROR,
            message=f"Failed to read config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )


class InputError(XcsiftError):
    """Problems with the build output handed to the CLI."""

    @classmethod
    def missing(cls) -> "InputError":
        return cls(
            code=ErrorCode.INPUT_MISSING,
            message=(
                "No input provided. Pipe xcodebuild output into xcsift, "
                "e.g. xcodebuild build 2>&1 | xcsift"
            ),
        )

    @classmethod
    def empty(cls) -> "InputError":
        return cls(
            code=ErrorCode.INPUT_EMPTY,
            message="Input is empty. Make sure to redirect stderr with 2>&1",
        )
