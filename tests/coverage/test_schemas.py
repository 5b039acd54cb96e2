"""Tests for coverage JSON schema decoding."""

from typing import Any

import pytest

from xcsift.coverage.models import CodeCoverage, FileCoverage
from xcsift.coverage.schemas import (
    SCHEMA_BY_ID,
    SCHEMA_REGISTRY,
    LlvmCovSchema,
    XccovSchema,
    decode_coverage,
    target_matches,
)


def _xccov(*targets: dict[str, Any]) -> dict[str, Any]:
    return {"targets": list(targets)}


def _target(name: str, *files: dict[str, Any]) -> dict[str, Any]:
    return {"name": name, "files": list(files)}


def _xccov_file(path: str, ratio: float, covered: int, executable: int) -> dict[str, Any]:
    return {
        "path": path,
        "lineCoverage": ratio,
        "coveredLines": covered,
        "executableLines": executable,
    }


def _llvm_cov(*files: tuple[str, int, int]) -> dict[str, Any]:
    return {
        "data": [
            {
                "files": [
                    {"filename": name, "summary": {"lines": {"covered": covered, "count": count}}}
                    for name, covered, count in files
                ]
            }
        ]
    }


class TestCodeCoverage:
    """Aggregation of per-file figures."""

    def test_overall_is_weighted_by_lines(self) -> None:
        coverage = CodeCoverage.from_files(
            [
                FileCoverage("/a.swift", "a.swift", 100.0, 10, 10),
                FileCoverage("/b.swift", "b.swift", 0.0, 0, 30),
            ]
        )

        assert coverage is not None
        assert coverage.line_coverage == 25.0

    def test_no_executable_lines(self) -> None:
        coverage = CodeCoverage.from_files([FileCoverage("/a.swift", "a.swift", 0.0, 0, 0)])

        assert coverage is not None
        assert coverage.line_coverage == 0.0

    def test_no_files(self) -> None:
        assert CodeCoverage.from_files([]) is None


class TestTargetMatches:
    """Bidirectional substring filter."""

    @pytest.mark.parametrize(
        ("name", "target_filter", "expected"),
        [
            ("MyApp.app", None, True),
            ("MyApp.app", "MyApp", True),
            ("App", "MyApp", True),
            ("AppKit", "App", True),
            ("Networking", "MyApp", False),
        ],
    )
    def test_matches(self, name: str, target_filter: str | None, expected: bool) -> None:
        assert target_matches(name, target_filter) is expected


class TestXccovSchema:
    """``targets[].files[]`` documents."""

    def test_fraction_and_percentage_normalize_alike(self) -> None:
        coverage = XccovSchema().decode(
            _xccov(
                _target(
                    "MyApp.app",
                    _xccov_file("/src/A.swift", 0.85, 17, 20),
                    _xccov_file("/src/B.swift", 85.0, 17, 20),
                )
            )
        )

        assert coverage is not None
        assert [f.line_coverage for f in coverage.files] == [pytest.approx(85.0), 85.0]
        assert coverage.files[0].name == "A.swift"
        assert coverage.line_coverage == pytest.approx(85.0)

    def test_test_bundles_are_skipped(self) -> None:
        coverage = XccovSchema().decode(
            _xccov(
                _target("MyApp.app", _xccov_file("/src/A.swift", 0.5, 5, 10)),
                _target("MyAppTests.xctest", _xccov_file("/tests/T.swift", 1.0, 10, 10)),
            )
        )

        assert coverage is not None
        assert [f.path for f in coverage.files] == ["/src/A.swift"]

    def test_target_filter(self) -> None:
        document = _xccov(
            _target("MyApp.app", _xccov_file("/src/A.swift", 0.5, 5, 10)),
            _target("Networking.framework", _xccov_file("/src/N.swift", 1.0, 10, 10)),
        )

        coverage = XccovSchema().decode(document, target_filter="MyApp")

        assert coverage is not None
        assert [f.path for f in coverage.files] == ["/src/A.swift"]

    def test_filter_matching_nothing(self) -> None:
        document = _xccov(_target("MyApp.app", _xccov_file("/src/A.swift", 0.5, 5, 10)))

        assert XccovSchema().decode(document, target_filter="Other") is None

    def test_malformed_entries_are_skipped(self) -> None:
        document = _xccov(
            _target(
                "MyApp.app",
                {"path": "/src/NoRatio.swift"},
                "not a dict",
                _xccov_file("/src/A.swift", 0.5, 5, 10),
            ),
            {"name": "Broken", "files": "nope"},
        )

        coverage = XccovSchema().decode(document)

        assert coverage is not None
        assert len(coverage.files) == 1

    @pytest.mark.parametrize("document", [{}, [], {"targets": "x"}, {"data": []}])
    def test_other_shapes(self, document: Any) -> None:
        assert XccovSchema().decode(document) is None


class TestLlvmCovSchema:
    """``data[0].files[]`` documents."""

    def test_decodes_line_summary(self) -> None:
        coverage = LlvmCovSchema().decode(
            _llvm_cov(("/src/A.swift", 15, 20), ("/src/Empty.swift", 0, 0))
        )

        assert coverage is not None
        assert coverage.files[0] == FileCoverage(
            path="/src/A.swift",
            name="A.swift",
            line_coverage=75.0,
            covered_lines=15,
            executable_lines=20,
        )
        assert coverage.files[1].line_coverage == 0.0
        assert coverage.line_coverage == 75.0

    def test_no_files(self) -> None:
        assert LlvmCovSchema().decode({"data": [{"files": []}]}) is None

    @pytest.mark.parametrize("document", [{}, {"data": []}, {"data": ["x"]}, {"targets": []}])
    def test_other_shapes(self, document: Any) -> None:
        assert LlvmCovSchema().decode(document) is None


class TestDecodeCoverage:
    """Tagged-attempt decoding across the registry."""

    def test_registry_order(self) -> None:
        assert [s.schema_id for s in SCHEMA_REGISTRY] == ["xccov", "llvm-cov"]
        assert isinstance(SCHEMA_BY_ID["llvm-cov"], LlvmCovSchema)

    def test_xccov_document(self) -> None:
        document = _xccov(_target("MyApp.app", _xccov_file("/src/A.swift", 0.5, 5, 10)))

        coverage = decode_coverage(document)

        assert coverage is not None
        assert coverage.line_coverage == 50.0

    def test_llvm_document(self) -> None:
        coverage = decode_coverage(_llvm_cov(("/src/A.swift", 1, 4)))

        assert coverage is not None
        assert coverage.line_coverage == 25.0

    def test_unknown_document(self) -> None:
        assert decode_coverage({"something": "else"}) is None
