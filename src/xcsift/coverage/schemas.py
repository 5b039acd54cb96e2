"""Coverage JSON schemas and tagged-attempt decoding.

Two unrelated document shapes are understood:

xccov (``xcrun xccov view --report --json``)::

    {"targets": [{"name": "App.app",
                  "files": [{"path": "/src/A.swift", "lineCoverage": 0.85,
                             "coveredLines": 17, "executableLines": 20}]}]}

llvm-cov (``llvm-cov export -format=text``, SwiftPM's ``codecov/*.json``)::

    {"data": [{"files": [{"filename": "/src/A.swift",
                          "summary": {"lines": {"covered": 17, "count": 20}}}]}]}

Each schema either decodes the document completely or returns None; the
registry is tried in order and the first success wins.
"""

from __future__ import annotations

import posixpath
from collections.abc import Sequence
from typing import Any, Protocol

from xcsift.coverage.models import CodeCoverage, FileCoverage


class CoverageSchema(Protocol):
    """Protocol for one coverage JSON document shape."""

    @property
    def schema_id(self) -> str: ...

    def decode(self, document: Any, *, target_filter: str | None = None) -> CodeCoverage | None:
        """Decode ``document`` or return None if it is not this shape or has no files."""
        ...


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _as_int(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def target_matches(name: str, target_filter: str | None) -> bool:
    """Bidirectional substring match between a target name and the filter.

    Deliberately loose: filter "App" also keeps "AppKit".
    """
    if target_filter is None:
        return True
    return target_filter in name or name in target_filter


class XccovSchema:
    """``targets[].files[]`` reports produced by xccov for .xcresult bundles."""

    @property
    def schema_id(self) -> str:
        return "xccov"

    def decode(self, document: Any, *, target_filter: str | None = None) -> CodeCoverage | None:
        if not isinstance(document, dict):
            return None
        targets = document.get("targets")
        if not isinstance(targets, list):
            return None

        files: list[FileCoverage] = []
        for target in targets:
            if not isinstance(target, dict):
                continue
            name = target.get("name")
            if isinstance(name, str):
                # Coverage of the test bundle itself is noise
                if name.endswith(".xctest"):
                    continue
                if not target_matches(name, target_filter):
                    continue

            entries = target.get("files")
            if not isinstance(entries, list):
                continue
            for entry in entries:
                file_cov = self._decode_file(entry)
                if file_cov is not None:
                    files.append(file_cov)

        return CodeCoverage.from_files(files)

    @staticmethod
    def _decode_file(entry: Any) -> FileCoverage | None:
        if not isinstance(entry, dict):
            return None
        path = entry.get("path")
        ratio = entry.get("lineCoverage")
        if not isinstance(path, str) or not _is_number(ratio):
            return None
        # xccov reports a fraction; values above 1.0 are already percentages
        percentage = float(ratio) if ratio > 1.0 else float(ratio) * 100.0
        return FileCoverage(
            path=path,
            name=posixpath.basename(path),
            line_coverage=percentage,
            covered_lines=_as_int(entry.get("coveredLines")) or 0,
            executable_lines=_as_int(entry.get("executableLines")) or 0,
        )


class LlvmCovSchema:
    """``data[0].files[]`` exports produced by llvm-cov (SwiftPM coverage)."""

    @property
    def schema_id(self) -> str:
        return "llvm-cov"

    def decode(self, document: Any, *, target_filter: str | None = None) -> CodeCoverage | None:  # noqa: ARG002
        if not isinstance(document, dict):
            return None
        data = document.get("data")
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            return None
        entries = data[0].get("files")
        if not isinstance(entries, list):
            return None

        files: list[FileCoverage] = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            filename = entry.get("filename")
            summary = entry.get("summary")
            lines = summary.get("lines") if isinstance(summary, dict) else None
            if not isinstance(filename, str) or not isinstance(lines, dict):
                continue
            covered = _as_int(lines.get("covered"))
            count = _as_int(lines.get("count"))
            if covered is None or count is None:
                continue
            files.append(
                FileCoverage(
                    path=filename,
                    name=posixpath.basename(filename),
                    line_coverage=covered / count * 100.0 if count > 0 else 0.0,
                    covered_lines=covered,
                    executable_lines=count,
                )
            )

        return CodeCoverage.from_files(files)


# Schema registry - order matters: xccov reports are checked first
SCHEMA_REGISTRY: Sequence[CoverageSchema] = (
    XccovSchema(),
    LlvmCovSchema(),
)

SCHEMA_BY_ID: dict[str, CoverageSchema] = {s.schema_id: s for s in SCHEMA_REGISTRY}


def decode_coverage(
    document: Any,
    *,
    target_filter: str | None = None,
    schemas: Sequence[CoverageSchema] = SCHEMA_REGISTRY,
) -> CodeCoverage | None:
    """Try each schema in order; None if no schema yields any file."""
    for schema in schemas:
        coverage = schema.decode(document, target_filter=target_filter)
        if coverage is not None:
            return coverage
    return None
