"""Locate coverage data on disk and normalize it.

Fallback chain, first success wins:

1. An explicit path, if it exists.
2. The newest ``.xcresult`` bundle (modified in the last 7 days) under
   Xcode's DerivedData, limited to project directories matching the
   tested-target hint when one is known.
3. Conventional SwiftPM / xcodebuild output directories, then the current
   directory.

Inside a directory: a ready ``*.json`` export, else raw ``*.profraw``
profiles (merged and exported with llvm-profdata / llvm-cov), else nested
``.xcresult`` bundles (reported with xccov).

Nothing here raises. Missing tools, unreadable files and unknown JSON all
end in "no coverage".
"""

from __future__ import annotations

import json
import logging
import sys
import tempfile
from pathlib import Path
from typing import Any

from xcsift.coverage.models import CodeCoverage
from xcsift.coverage.schemas import SCHEMA_BY_ID, decode_coverage
from xcsift.coverage.shell import ShellRunner, SubprocessShellRunner

logger = logging.getLogger(__name__)

DERIVED_DATA = Path("Library") / "Developer" / "Xcode" / "DerivedData"

DEFAULT_SEARCH_PATHS = (
    ".build/debug/codecov",
    ".build/arm64-apple-macosx/debug/codecov",
    ".build/x86_64-apple-macosx/debug/codecov",
    ".build/arm64-unknown-linux-gnu/debug/codecov",
    ".build/x86_64-unknown-linux-gnu/debug/codecov",
    "DerivedData",
    ".",
)

# Only result bundles from the last week are considered
XCRESULT_MAX_AGE_DAYS = 7


class CoverageDiscovery:
    """Finds and converts coverage for the project in ``cwd``.

    Args:
        shell: Runner for external tools (``find``, ``xcrun``, llvm tools).
        cwd: Directory relative search paths are resolved against.
        home: Home directory holding ``Library/Developer/Xcode/DerivedData``.
        use_xcrun: Invoke llvm tools through ``xcrun`` (default on macOS).
    """

    def __init__(
        self,
        shell: ShellRunner | None = None,
        *,
        cwd: Path | None = None,
        home: Path | None = None,
        use_xcrun: bool | None = None,
    ) -> None:
        self.shell: ShellRunner = shell or SubprocessShellRunner()
        self.cwd = cwd or Path.cwd()
        self.home = home or Path.home()
        self.use_xcrun = sys.platform == "darwin" if use_xcrun is None else use_xcrun

    def discover(
        self,
        explicit_path: str | Path | None = None,
        target_filter: str | None = None,
    ) -> CodeCoverage | None:
        """Run the fallback chain. Returns None when no coverage can be produced."""
        try:
            return self._discover(explicit_path, target_filter)
        except OSError as e:
            logger.debug("Coverage discovery failed: %s", e)
            return None

    def _resolve(self, path: str | Path) -> Path:
        candidate = Path(path).expanduser()
        return candidate if candidate.is_absolute() else self.cwd / candidate

    def _discover(
        self, explicit_path: str | Path | None, target_filter: str | None
    ) -> CodeCoverage | None:
        path: Path | None = None
        if explicit_path:
            explicit = self._resolve(explicit_path)
            if explicit.exists():
                path = explicit
            else:
                logger.debug("Coverage path %s does not exist, auto-detecting", explicit)

        if path is None:
            latest = self.find_latest_xcresult(project_hint=target_filter)
            if latest is not None:
                return self.convert_xcresult(latest, target_filter)

            path = next(
                (p for p in map(self._resolve, DEFAULT_SEARCH_PATHS) if p.exists()),
                None,
            )
            if path is None:
                logger.debug("No coverage location found")
                return None

        logger.debug("Reading coverage from %s", path)
        if path.suffix == ".xcresult":
            return self.convert_xcresult(path, target_filter)
        if path.is_dir():
            return self._from_directory(path, target_filter)
        return self.parse_json_file(path, target_filter)

    def _from_directory(self, directory: Path, target_filter: str | None) -> CodeCoverage | None:
        json_files = sorted(p for p in directory.iterdir() if p.name.endswith(".json"))
        if json_files:
            return self.parse_json_file(json_files[0], target_filter)

        profiles = sorted(directory.rglob("*.profraw"))
        if profiles:
            return self.convert_profraw(profiles)

        bundles = sorted(directory.rglob("*.xcresult"))
        if bundles:
            return self.convert_xcresult(bundles[0], target_filter)

        latest = self.find_latest_xcresult()
        if latest is not None:
            return self.convert_xcresult(latest, target_filter)
        return None

    # Locating artifacts

    def find_latest_xcresult(self, project_hint: str | None = None) -> Path | None:
        """Newest recent ``.xcresult`` bundle under DerivedData.

        With a hint, only ``<hint>-*`` and ``<hint>Tests-*`` project
        directories are searched; if none exist the caller falls through to
        the SwiftPM locations instead.
        """
        derived_data = self.home / DERIVED_DATA
        if not derived_data.is_dir():
            return None

        if project_hint:
            prefixes = (f"{project_hint}-", f"{project_hint}Tests-")
            search_paths = sorted(
                str(d) for d in derived_data.iterdir() if d.name.startswith(prefixes) and d.is_dir()
            )
            if not search_paths:
                logger.debug("No DerivedData project matches %r", project_hint)
                return None
        else:
            search_paths = [str(derived_data)]

        output = self.shell.run(
            "find",
            [
                *search_paths,
                "-name",
                "*.xcresult",
                "-type",
                "d",
                "-mtime",
                f"-{XCRESULT_MAX_AGE_DAYS}",
            ],
        )
        if output is None:
            return None

        newest: Path | None = None
        newest_mtime = 0.0
        for line in output.splitlines():
            if not line:
                continue
            candidate = Path(line)
            try:
                mtime = candidate.stat().st_mtime
            except OSError:
                continue
            if newest is None or mtime > newest_mtime:
                newest, newest_mtime = candidate, mtime
        return newest

    def find_test_binary(self) -> Path | None:
        """Test executable for llvm-cov under ``.build``.

        On macOS the binary sits in ``Foo.xctest/Contents/MacOS/``; on Linux
        the ``.xctest`` path is the executable itself.
        """
        build_dir = self.cwd / ".build"
        if not build_dir.is_dir():
            return None

        for bundle in sorted(build_dir.rglob("*.xctest")):
            if bundle.is_file():
                return bundle
            macos_dir = bundle / "Contents" / "MacOS"
            if not macos_dir.is_dir():
                continue
            for item in sorted(macos_dir.iterdir()):
                if item.is_file() and not item.name.endswith(".dSYM"):
                    return item
        return None

    # Conversion

    def _llvm_tool(self, tool: str, args: list[str]) -> str | None:
        if self.use_xcrun:
            return self.shell.run("xcrun", [tool, *args])
        return self.shell.run(tool, args)

    def convert_profraw(self, profiles: list[Path]) -> CodeCoverage | None:
        """Merge raw profiles and export them to llvm-cov JSON."""
        binary = self.find_test_binary()
        if binary is None:
            logger.debug("No test binary found for %d profraw files", len(profiles))
            return None

        with tempfile.TemporaryDirectory(prefix="xcsift-") as tmp:
            profdata = Path(tmp) / "coverage.profdata"
            merged = self._llvm_tool(
                "llvm-profdata",
                ["merge", "-sparse", *(str(p) for p in profiles), "-o", str(profdata)],
            )
            if merged is None:
                return None
            exported = self._llvm_tool(
                "llvm-cov",
                ["export", str(binary), f"-instr-profile={profdata}", "-format=text"],
            )
        if exported is None:
            return None
        return self.parse_json_text(exported)

    def convert_xcresult(self, bundle: Path, target_filter: str | None = None) -> CodeCoverage | None:
        """Report a result bundle with xccov and decode the xccov schema."""
        output = self.shell.run("xcrun", ["xccov", "view", "--report", "--json", str(bundle)])
        if output is None:
            return None
        document = _load_json(output)
        if document is None:
            return None
        return SCHEMA_BY_ID["xccov"].decode(document, target_filter=target_filter)

    # JSON

    def parse_json_text(self, text: str, target_filter: str | None = None) -> CodeCoverage | None:
        document = _load_json(text)
        if document is None:
            return None
        return decode_coverage(document, target_filter=target_filter)

    def parse_json_file(self, path: Path, target_filter: str | None = None) -> CodeCoverage | None:
        try:
            text = path.read_text()
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("Failed to read coverage file %s: %s", path, e)
            return None
        return self.parse_json_text(text, target_filter)


def _load_json(text: str) -> Any | None:
    try:
        return json.loads(text)
    except (ValueError, RecursionError) as e:
        logger.debug("Coverage output is not JSON: %s", e)
        return None


def discover_coverage(
    explicit_path: str | Path | None = None,
    target_filter: str | None = None,
) -> CodeCoverage | None:
    """Convenience wrapper using the real shell and current directory."""
    return CoverageDiscovery().discover(explicit_path, target_filter)
