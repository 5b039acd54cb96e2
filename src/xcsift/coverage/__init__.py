"""Coverage discovery and normalization.

Usage:
    from xcsift.coverage import CoverageDiscovery

    coverage = CoverageDiscovery().discover(target_filter="MyApp")
    if coverage is not None:
        print(f"{coverage.line_coverage:.1f}%")
"""

from xcsift.coverage.discovery import CoverageDiscovery, discover_coverage
from xcsift.coverage.models import CodeCoverage, FileCoverage
from xcsift.coverage.schemas import (
    SCHEMA_REGISTRY,
    CoverageSchema,
    LlvmCovSchema,
    XccovSchema,
    decode_coverage,
)
from xcsift.coverage.shell import ShellRunner, SubprocessShellRunner

__all__ = [
    "CodeCoverage",
    "CoverageDiscovery",
    "CoverageSchema",
    "FileCoverage",
    "LlvmCovSchema",
    "SCHEMA_REGISTRY",
    "ShellRunner",
    "SubprocessShellRunner",
    "XccovSchema",
    "decode_coverage",
    "discover_coverage",
]
