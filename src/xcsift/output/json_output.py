"""JSON rendering of a BuildResult.

Only visible sections are emitted (see the ``show_*`` properties on
:class:`BuildResult`); absent optional values are omitted rather than
written as null. A diagnostic's column is never emitted.
"""

from __future__ import annotations

import json
from typing import Any

from xcsift.coverage.models import CodeCoverage
from xcsift.parsing.models import (
    BuildInfo,
    BuildResult,
    BuildSummary,
    Diagnostic,
    FailedTest,
    LinkerError,
)


def _summary_to_dict(summary: BuildSummary) -> dict[str, Any]:
    data: dict[str, Any] = {
        "errors": summary.errors,
        "warnings": summary.warnings,
        "failed_tests": summary.failed_tests,
        "linker_errors": summary.linker_errors,
    }
    if summary.passed_tests is not None:
        data["passed_tests"] = summary.passed_tests
    if summary.build_time is not None:
        data["build_time"] = summary.build_time
    if summary.test_time is not None:
        data["test_time"] = summary.test_time
    if summary.coverage_percent is not None:
        data["coverage_percent"] = summary.coverage_percent
    if summary.slow_tests:
        data["slow_tests"] = summary.slow_tests
    if summary.flaky_tests:
        data["flaky_tests"] = summary.flaky_tests
    if summary.executables:
        data["executables"] = summary.executables
    return data


def _diagnostic_to_dict(diagnostic: Diagnostic) -> dict[str, Any]:
    data: dict[str, Any] = {}
    if diagnostic.file is not None:
        data["file"] = diagnostic.file
    if diagnostic.line is not None:
        data["line"] = diagnostic.line
    data["message"] = diagnostic.message
    if diagnostic.kind is not None:
        data["type"] = diagnostic.kind
    return data


def _failed_test_to_dict(test: FailedTest) -> dict[str, Any]:
    data: dict[str, Any] = {"test": test.test, "message": test.message}
    if test.file is not None:
        data["file"] = test.file
    if test.line is not None:
        data["line"] = test.line
    if test.duration is not None:
        data["duration"] = test.duration
    return data


def _linker_error_to_dict(error: LinkerError) -> dict[str, Any]:
    data: dict[str, Any] = {
        "symbol": error.symbol,
        "architecture": error.architecture,
        "referenced_from": error.referenced_from,
        "message": error.message,
    }
    if error.conflicting_files:
        data["conflicting_files"] = list(error.conflicting_files)
    return data


def _coverage_to_dict(coverage: CodeCoverage) -> dict[str, Any]:
    return {
        "line_coverage": coverage.line_coverage,
        "files": [
            {
                "path": f.path,
                "name": f.name,
                "line_coverage": f.line_coverage,
                "covered_lines": f.covered_lines,
                "executable_lines": f.executable_lines,
            }
            for f in coverage.files
        ],
    }


def _build_info_to_dict(build_info: BuildInfo) -> dict[str, Any]:
    targets: list[dict[str, Any]] = []
    for target in build_info.targets:
        entry: dict[str, Any] = {"name": target.name}
        if target.duration is not None:
            entry["duration"] = target.duration
        if target.phases:
            entry["phases"] = list(target.phases)
        if target.depends_on:
            entry["depends_on"] = list(target.depends_on)
        targets.append(entry)

    data: dict[str, Any] = {"targets": targets}
    if build_info.slowest_targets:
        data["slowest_targets"] = list(build_info.slowest_targets)
    return data


def result_to_dict(result: BuildResult) -> dict[str, Any]:
    """Serializable view of ``result`` honoring section visibility."""
    data: dict[str, Any] = {
        "status": result.status,
        "summary": _summary_to_dict(result.summary),
    }
    if result.show_errors:
        data["errors"] = [_diagnostic_to_dict(e) for e in result.errors]
    if result.show_warnings:
        data["warnings"] = [_diagnostic_to_dict(w) for w in result.warnings]
    if result.show_failed_tests:
        data["failed_tests"] = [_failed_test_to_dict(t) for t in result.failed_tests]
    if result.show_linker_errors:
        data["linker_errors"] = [_linker_error_to_dict(e) for e in result.linker_errors]
    if result.show_coverage and result.coverage is not None:
        data["coverage"] = _coverage_to_dict(result.coverage)
    if result.show_slow_tests:
        data["slow_tests"] = [{"test": s.test, "duration": s.duration} for s in result.slow_tests]
    if result.show_flaky_tests:
        data["flaky_tests"] = list(result.flaky_tests)
    if result.show_build_info:
        data["build_info"] = _build_info_to_dict(result.build_info)
    if result.show_executables:
        data["executables"] = [
            {"path": e.path, "name": e.name, "target": e.target} for e in result.executables
        ]
    return data


def to_json(result: BuildResult, *, indent: int | None = 2) -> str:
    return json.dumps(result_to_dict(result), indent=indent, ensure_ascii=False)
