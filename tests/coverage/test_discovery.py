"""Tests for coverage discovery.

External tools are replaced by a recording fake so the fallback chain can be
exercised on any OS.
"""

from __future__ import annotations

import json
import os
import subprocess
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from xcsift.coverage.discovery import DERIVED_DATA, CoverageDiscovery
from xcsift.coverage.shell import SubprocessShellRunner

XCCOV_REPORT = {
    "targets": [
        {
            "name": "MyApp.app",
            "files": [
                {"path": "/src/A.swift", "lineCoverage": 0.5, "coveredLines": 5, "executableLines": 10}
            ],
        },
        {
            "name": "Networking.framework",
            "files": [
                {"path": "/src/N.swift", "lineCoverage": 1.0, "coveredLines": 10, "executableLines": 10}
            ],
        },
    ]
}

LLVM_EXPORT = {
    "data": [{"files": [{"filename": "/src/A.swift", "summary": {"lines": {"covered": 3, "count": 4}}}]}]
}

Handler = Callable[[list[str]], str | None]


class FakeShell:
    """Records invocations and answers from per-command handlers."""

    def __init__(self, handlers: dict[str, Handler | str | None] | None = None) -> None:
        self.handlers = handlers or {}
        self.calls: list[tuple[str, list[str]]] = []

    def run(self, command: str, args: list[str]) -> str | None:
        self.calls.append((command, args))
        handler = self.handlers.get(command)
        if callable(handler):
            return handler(args)
        return handler

    def commands(self) -> list[str]:
        return [command for command, _ in self.calls]


@pytest.fixture
def workspace(tmp_path: Path) -> tuple[Path, Path]:
    cwd = tmp_path / "project"
    home = tmp_path / "home"
    cwd.mkdir()
    home.mkdir()
    return cwd, home


def _discovery(shell: FakeShell, workspace: tuple[Path, Path], **kwargs: Any) -> CoverageDiscovery:
    cwd, home = workspace
    return CoverageDiscovery(shell, cwd=cwd, home=home, **kwargs)


class TestExplicitPath:
    """An explicit coverage path is used when it exists."""

    def test_json_file(self, workspace: tuple[Path, Path]) -> None:
        cwd, _ = workspace
        (cwd / "coverage.json").write_text(json.dumps(LLVM_EXPORT))
        shell = FakeShell()

        coverage = _discovery(shell, workspace).discover("coverage.json")

        assert coverage is not None
        assert coverage.line_coverage == 75.0
        assert shell.calls == []

    def test_directory_with_json(self, workspace: tuple[Path, Path]) -> None:
        cwd, _ = workspace
        codecov = cwd / ".build" / "debug" / "codecov"
        codecov.mkdir(parents=True)
        (codecov / "MyPackage.json").write_text(json.dumps(LLVM_EXPORT))

        coverage = _discovery(FakeShell(), workspace).discover(str(codecov))

        assert coverage is not None
        assert coverage.files[0].path == "/src/A.swift"

    def test_xcresult_bundle(self, workspace: tuple[Path, Path]) -> None:
        cwd, _ = workspace
        bundle = cwd / "Test.xcresult"
        bundle.mkdir()
        shell = FakeShell({"xcrun": json.dumps(XCCOV_REPORT)})

        coverage = _discovery(shell, workspace).discover(bundle, target_filter="MyApp")

        assert shell.calls == [("xcrun", ["xccov", "view", "--report", "--json", str(bundle)])]
        assert coverage is not None
        assert [f.path for f in coverage.files] == ["/src/A.swift"]

    def test_malformed_json_file(self, workspace: tuple[Path, Path]) -> None:
        cwd, _ = workspace
        (cwd / "coverage.json").write_text("{not json")

        assert _discovery(FakeShell(), workspace).discover("coverage.json") is None

    def test_deeply_nested_json_file(self, workspace: tuple[Path, Path]) -> None:
        cwd, _ = workspace
        (cwd / "coverage.json").write_text("[" * 100_000)

        assert _discovery(FakeShell(), workspace).discover("coverage.json") is None

    def test_undecodable_tool_output(
        self, workspace: tuple[Path, Path], monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        if not os.path.exists("/usr/bin/env"):
            pytest.skip("requires /usr/bin/env")
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir()
        xcrun = bin_dir / "xcrun"
        xcrun.write_text("#!/bin/sh\nprintf '{\"targets\": [\\377]}'\n")
        xcrun.chmod(0o755)
        monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
        cwd, home = workspace
        bundle = cwd / "Test.xcresult"
        bundle.mkdir()
        discovery = CoverageDiscovery(SubprocessShellRunner(), cwd=cwd, home=home)

        assert discovery.discover(bundle) is None

    def test_missing_path_falls_back_to_auto_detection(self, workspace: tuple[Path, Path]) -> None:
        cwd, _ = workspace
        codecov = cwd / ".build" / "debug" / "codecov"
        codecov.mkdir(parents=True)
        (codecov / "MyPackage.json").write_text(json.dumps(LLVM_EXPORT))

        coverage = _discovery(FakeShell(), workspace).discover("does/not/exist.json")

        assert coverage is not None


class TestDefaultSearchPaths:
    """SwiftPM locations and the current directory."""

    def test_swiftpm_codecov_directory(self, workspace: tuple[Path, Path]) -> None:
        cwd, _ = workspace
        codecov = cwd / ".build" / "arm64-apple-macosx" / "debug" / "codecov"
        codecov.mkdir(parents=True)
        (codecov / "Pkg.json").write_text(json.dumps(LLVM_EXPORT))

        coverage = _discovery(FakeShell(), workspace).discover()

        assert coverage is not None
        assert coverage.line_coverage == 75.0

    def test_nothing_found(self, workspace: tuple[Path, Path]) -> None:
        shell = FakeShell()

        assert _discovery(shell, workspace).discover() is None
        # No DerivedData, so no tool was needed
        assert shell.calls == []


class TestProfraw:
    """Raw profiles are merged and exported."""

    def _setup(self, cwd: Path) -> Path:
        codecov = cwd / ".build" / "debug" / "codecov"
        codecov.mkdir(parents=True)
        (codecov / "default.profraw").write_bytes(b"\x00")
        binary = cwd / ".build" / "debug" / "MyPackageTests.xctest"
        binary.write_bytes(b"\x7fELF")
        return binary

    def test_linux_tools_run_directly(self, workspace: tuple[Path, Path]) -> None:
        cwd, _ = workspace
        binary = self._setup(cwd)
        shell = FakeShell({"llvm-profdata": "", "llvm-cov": json.dumps(LLVM_EXPORT)})

        coverage = _discovery(shell, workspace, use_xcrun=False).discover()

        assert coverage is not None
        assert coverage.line_coverage == 75.0
        assert shell.commands() == ["llvm-profdata", "llvm-cov"]
        merge_args = shell.calls[0][1]
        assert merge_args[:2] == ["merge", "-sparse"]
        assert merge_args[2].endswith("default.profraw")
        profdata = merge_args[-1]
        export_args = shell.calls[1][1]
        assert export_args == [
            "export",
            str(binary),
            f"-instr-profile={profdata}",
            "-format=text",
        ]
        # Temporary profdata directory is gone afterwards
        assert not Path(profdata).parent.exists()

    def test_macos_tools_via_xcrun(self, workspace: tuple[Path, Path]) -> None:
        cwd, _ = workspace
        bundle_binary = cwd / ".build" / "debug" / "Pkg.xctest" / "Contents" / "MacOS" / "PkgTests"
        bundle_binary.parent.mkdir(parents=True)
        bundle_binary.write_bytes(b"\xcf\xfa")
        codecov = cwd / ".build" / "debug" / "codecov"
        codecov.mkdir(parents=True)
        (codecov / "default.profraw").write_bytes(b"\x00")

        def xcrun(args: list[str]) -> str | None:
            return "" if args[0] == "llvm-profdata" else json.dumps(LLVM_EXPORT)

        shell = FakeShell({"xcrun": xcrun})

        coverage = _discovery(shell, workspace, use_xcrun=True).discover()

        assert coverage is not None
        assert [args[0] for _, args in shell.calls] == ["llvm-profdata", "llvm-cov"]
        assert shell.calls[1][1][2] == str(bundle_binary)

    def test_merge_failure_cleans_up(self, workspace: tuple[Path, Path]) -> None:
        cwd, _ = workspace
        self._setup(cwd)
        shell = FakeShell({"llvm-profdata": None})

        assert _discovery(shell, workspace, use_xcrun=False).discover() is None
        assert shell.commands() == ["llvm-profdata"]
        assert not Path(shell.calls[0][1][-1]).parent.exists()

    def test_missing_test_binary(self, workspace: tuple[Path, Path]) -> None:
        cwd, _ = workspace
        codecov = cwd / ".build" / "debug" / "codecov"
        codecov.mkdir(parents=True)
        (codecov / "default.profraw").write_bytes(b"\x00")
        shell = FakeShell()

        assert _discovery(shell, workspace, use_xcrun=False).discover() is None
        assert shell.calls == []


class TestDerivedData:
    """Newest recent result bundle under DerivedData."""

    def _bundle(self, home: Path, project: str, name: str, mtime: float) -> Path:
        bundle = home / DERIVED_DATA / project / "Logs" / "Test" / name
        bundle.mkdir(parents=True)
        os.utime(bundle, (mtime, mtime))
        return bundle

    def test_newest_bundle_wins(self, workspace: tuple[Path, Path]) -> None:
        _, home = workspace
        old = self._bundle(home, "MyApp-abc", "Old.xcresult", 1_000_000)
        new = self._bundle(home, "MyApp-abc", "New.xcresult", 2_000_000)
        shell = FakeShell(
            {"find": f"{old}\n{new}\n", "xcrun": json.dumps(XCCOV_REPORT)}
        )

        coverage = _discovery(shell, workspace).discover()

        assert coverage is not None
        find_args = shell.calls[0][1]
        assert find_args[0] == str(home / DERIVED_DATA)
        assert find_args[1:] == ["-name", "*.xcresult", "-type", "d", "-mtime", "-7"]
        assert shell.calls[1] == ("xcrun", ["xccov", "view", "--report", "--json", str(new)])

    def test_project_hint_limits_search(self, workspace: tuple[Path, Path]) -> None:
        _, home = workspace
        bundle = self._bundle(home, "MyApp-abc", "Run.xcresult", 1_000_000)
        self._bundle(home, "Other-def", "Run.xcresult", 2_000_000)
        shell = FakeShell({"find": f"{bundle}\n", "xcrun": json.dumps(XCCOV_REPORT)})

        coverage = _discovery(shell, workspace).discover(target_filter="MyApp")

        assert coverage is not None
        assert [f.path for f in coverage.files] == ["/src/A.swift"]
        assert shell.calls[0][1][0] == str(home / DERIVED_DATA / "MyApp-abc")

    def test_unmatched_hint_falls_through(self, workspace: tuple[Path, Path]) -> None:
        cwd, home = workspace
        self._bundle(home, "Other-def", "Run.xcresult", 1_000_000)
        codecov = cwd / ".build" / "debug" / "codecov"
        codecov.mkdir(parents=True)
        (codecov / "Pkg.json").write_text(json.dumps(LLVM_EXPORT))
        shell = FakeShell()

        coverage = _discovery(shell, workspace).discover(target_filter="MyApp")

        assert coverage is not None
        assert shell.calls == []

    def test_find_failure(self, workspace: tuple[Path, Path]) -> None:
        _, home = workspace
        self._bundle(home, "MyApp-abc", "Run.xcresult", 1_000_000)
        shell = FakeShell({"find": None})

        assert _discovery(shell, workspace).discover() is None

    def test_xccov_failure(self, workspace: tuple[Path, Path]) -> None:
        _, home = workspace
        bundle = self._bundle(home, "MyApp-abc", "Run.xcresult", 1_000_000)
        shell = FakeShell({"find": str(bundle), "xcrun": "not json"})

        assert _discovery(shell, workspace).discover() is None


class TestSubprocessShellRunner:
    """Real subprocess execution, with subprocess.run patched."""

    def test_success_returns_stdout(self, monkeypatch: pytest.MonkeyPatch) -> None:
        seen: dict[str, Any] = {}

        def fake_run(argv: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
            seen["argv"] = argv
            seen["kwargs"] = kwargs
            return subprocess.CompletedProcess(argv, 0, stdout="out", stderr="")

        monkeypatch.setattr(subprocess, "run", fake_run)

        assert SubprocessShellRunner(timeout=5).run("xcrun", ["xccov"]) == "out"
        assert seen["argv"] == ["/usr/bin/env", "xcrun", "xccov"]
        assert seen["kwargs"] == {
            "capture_output": True,
            "text": True,
            "encoding": "utf-8",
            "errors": "replace",
            "timeout": 5,
        }

    def test_non_zero_exit(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            subprocess,
            "run",
            lambda argv, **_: subprocess.CompletedProcess(argv, 1, stdout="", stderr="boom"),
        )

        assert SubprocessShellRunner().run("llvm-cov", []) is None

    def test_undecodable_bytes_are_replaced(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        if not os.path.exists("/usr/bin/env"):
            pytest.skip("requires /usr/bin/env")
        script = tmp_path / "emit-latin1"
        script.write_text("#!/bin/sh\nprintf 'caf\\351'\n")
        script.chmod(0o755)
        monkeypatch.setenv("PATH", f"{tmp_path}{os.pathsep}{os.environ.get('PATH', '')}")

        assert SubprocessShellRunner().run("emit-latin1", []) == "caf\ufffd"

    @pytest.mark.parametrize(
        "error", [FileNotFoundError("env"), subprocess.TimeoutExpired(["x"], 1)]
    )
    def test_launch_failure(self, monkeypatch: pytest.MonkeyPatch, error: Exception) -> None:
        def fake_run(argv: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:  # noqa: ARG001
            raise error

        monkeypatch.setattr(subprocess, "run", fake_run)

        assert SubprocessShellRunner().run("find", []) is None
