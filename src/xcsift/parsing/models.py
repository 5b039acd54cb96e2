"""Result model for one parse of build tool output.

Every collection is computed on every run; the ``print_*`` flags on
:class:`BuildResult` only decide what an encoder may show. Summary counts
are always the true totals.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from xcsift.coverage.models import CodeCoverage

Status = Literal["success", "failed"]
WarningKind = Literal["runtime", "swiftui"]


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """A compiler (or runtime) error or warning.

    ``column`` is kept for CI annotations only and is never part of the
    serialized record. ``kind`` is set for runtime warnings.
    """

    message: str
    file: str | None = None
    line: int | None = None
    column: int | None = None
    kind: WarningKind | None = None

    @property
    def dedup_key(self) -> str:
        return f"{self.file or ''}:{self.line or 0}:{self.message}"


@dataclass(frozen=True, slots=True)
class FailedTest:
    test: str
    message: str
    file: str | None = None
    line: int | None = None
    duration: float | None = None


@dataclass(frozen=True, slots=True)
class SlowTest:
    test: str
    duration: float


@dataclass(frozen=True, slots=True)
class LinkerError:
    """Undefined or duplicate symbol, or a one-line ``ld:`` failure.

    One-liners (framework/library not found, architecture mismatch) carry
    only ``message``; symbol errors leave ``message`` empty.
    """

    symbol: str = ""
    architecture: str = ""
    referenced_from: str = ""
    message: str = ""
    conflicting_files: tuple[str, ...] = ()

    @property
    def dedup_key(self) -> str:
        return f"{self.symbol}:{self.message}"


@dataclass(frozen=True, slots=True)
class Executable:
    path: str
    name: str
    target: str


@dataclass(frozen=True, slots=True)
class TargetBuildInfo:
    name: str
    duration: str | None = None
    phases: tuple[str, ...] = ()
    depends_on: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class BuildInfo:
    targets: tuple[TargetBuildInfo, ...] = ()
    slowest_targets: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class BuildSummary:
    errors: int
    warnings: int
    failed_tests: int
    linker_errors: int
    passed_tests: int | None = None
    build_time: str | None = None
    test_time: str | None = None
    coverage_percent: float | None = None
    slow_tests: int = 0
    flaky_tests: int = 0
    executables: int = 0


@dataclass(frozen=True, slots=True)
class ParseOptions:
    """Presentation flags and inputs for one parse."""

    print_warnings: bool = False
    warnings_as_errors: bool = False
    print_coverage_details: bool = False
    print_build_info: bool = False
    print_executables: bool = False
    slow_threshold: float | None = None
    coverage: CodeCoverage | None = None


@dataclass(frozen=True, slots=True)
class BuildResult:
    status: Status
    summary: BuildSummary
    errors: tuple[Diagnostic, ...] = ()
    warnings: tuple[Diagnostic, ...] = ()
    failed_tests: tuple[FailedTest, ...] = ()
    linker_errors: tuple[LinkerError, ...] = ()
    coverage: CodeCoverage | None = None
    slow_tests: tuple[SlowTest, ...] = ()
    flaky_tests: tuple[str, ...] = ()
    build_info: BuildInfo = field(default_factory=BuildInfo)
    executables: tuple[Executable, ...] = ()
    print_warnings: bool = False
    print_coverage_details: bool = False
    print_build_info: bool = False
    print_executables: bool = False

    # Visibility: a section is shown only when requested (where a flag
    # exists) and non-empty.

    @property
    def show_errors(self) -> bool:
        return bool(self.errors)

    @property
    def show_warnings(self) -> bool:
        return self.print_warnings and bool(self.warnings)

    @property
    def show_failed_tests(self) -> bool:
        return bool(self.failed_tests)

    @property
    def show_linker_errors(self) -> bool:
        return bool(self.linker_errors)

    @property
    def show_coverage(self) -> bool:
        return self.print_coverage_details and self.coverage is not None

    @property
    def show_slow_tests(self) -> bool:
        return bool(self.slow_tests)

    @property
    def show_flaky_tests(self) -> bool:
        return bool(self.flaky_tests)

    @property
    def show_build_info(self) -> bool:
        return self.print_build_info and bool(self.build_info.targets)

    @property
    def show_executables(self) -> bool:
        return self.print_executables and bool(self.executables)
