"""Build log parsing: line classification and per-run aggregation."""

from xcsift.parsing.models import (
    BuildInfo,
    BuildResult,
    BuildSummary,
    Diagnostic,
    Executable,
    FailedTest,
    LinkerError,
    ParseOptions,
    SlowTest,
    TargetBuildInfo,
)
from xcsift.parsing.parser import extract_tested_target, parse

__all__ = [
    "BuildInfo",
    "BuildResult",
    "BuildSummary",
    "Diagnostic",
    "Executable",
    "FailedTest",
    "LinkerError",
    "ParseOptions",
    "SlowTest",
    "TargetBuildInfo",
    "extract_tested_target",
    "parse",
]
