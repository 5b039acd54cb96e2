"""GitHub Actions workflow-command rendering of a BuildResult.

See https://docs.github.com/actions/reference/workflow-commands-for-github-actions
"""

from __future__ import annotations

from xcsift.core.formatting import pluralize
from xcsift.parsing.models import BuildResult, Diagnostic, FailedTest, LinkerError


def _location(file: str | None, line: int | None, column: int | None) -> str:
    if file is None:
        return ""
    if line is None:
        return f"file={file}"
    if column is None:
        return f"file={file},line={line}"
    return f"file={file},line={line},col={column}"


def _annotate_diagnostic(level: str, diagnostic: Diagnostic) -> str:
    location = _location(diagnostic.file, diagnostic.line, diagnostic.column)
    return f"::{level} {location}::{diagnostic.message}"


def _annotate_linker_error(error: LinkerError) -> str:
    if error.symbol:
        return (
            f"::error ::Undefined symbol '{error.symbol}' for {error.architecture}, "
            f"referenced from {error.referenced_from}"
        )
    return f"::error ::{error.message}"


def _annotate_failed_test(test: FailedTest) -> str:
    location = _location(test.file, test.line, None)
    properties = f"{location},title={test.test}" if location else f"title={test.test}"
    return f"::error {properties}::{test.message}"


def summary_line(result: BuildResult) -> str:
    """One-line human summary, e.g. ``Build failed, 2 errors, 1 warning, in 12.3s``."""
    summary = result.summary
    parts = ["Build succeeded" if result.status == "success" else "Build failed"]

    if summary.errors > 0:
        parts.append(pluralize(summary.errors, "error"))
    if summary.linker_errors > 0:
        parts.append(pluralize(summary.linker_errors, "linker error"))
    if summary.warnings > 0:
        parts.append(pluralize(summary.warnings, "warning"))
    if summary.failed_tests > 0:
        parts.append(pluralize(summary.failed_tests, "failed test"))
    if summary.passed_tests:
        parts.append(pluralize(summary.passed_tests, "passed test"))
    if summary.build_time is not None:
        parts.append(f"in {summary.build_time}")
    if summary.coverage_percent is not None:
        parts.append(f"{summary.coverage_percent:.1f}% coverage")
    if summary.slow_tests > 0:
        parts.append(pluralize(summary.slow_tests, "slow test"))
    if summary.flaky_tests > 0:
        parts.append(pluralize(summary.flaky_tests, "flaky test"))
    return ", ".join(parts)


def format_github_actions(result: BuildResult) -> str:
    """Workflow commands for every error, linker error, (shown) warning and failed test.

    Warnings are annotated only when the result was parsed with warnings
    enabled. The last line is always a ``::notice`` summary.
    """
    lines = [_annotate_diagnostic("error", e) for e in result.errors]
    lines.extend(_annotate_linker_error(e) for e in result.linker_errors)
    if result.print_warnings:
        lines.extend(_annotate_diagnostic("warning", w) for w in result.warnings)
    lines.extend(_annotate_failed_test(t) for t in result.failed_tests)
    lines.append(f"::notice ::{summary_line(result)}")
    return "\n".join(lines)
