"""Normalized coverage model shared by both coverage JSON schemas."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class FileCoverage:
    """Line coverage for one source file.

    ``line_coverage`` is always a percentage (0-100), never a fraction.
    """

    path: str
    name: str
    line_coverage: float
    covered_lines: int
    executable_lines: int


@dataclass(frozen=True, slots=True)
class CodeCoverage:
    """Overall line coverage plus the per-file breakdown."""

    line_coverage: float
    files: tuple[FileCoverage, ...] = field(default_factory=tuple)

    @classmethod
    def from_files(cls, files: list[FileCoverage]) -> CodeCoverage | None:
        """Aggregate files into an overall figure; None when there are no files."""
        if not files:
            return None
        covered = sum(f.covered_lines for f in files)
        executable = sum(f.executable_lines for f in files)
        overall = covered / executable * 100.0 if executable > 0 else 0.0
        return cls(line_coverage=overall, files=tuple(files))
