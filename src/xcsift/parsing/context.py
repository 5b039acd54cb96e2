"""Per-run aggregation state.

A :class:`ParseContext` is created for one input, fed every line in order,
and turned into an immutable :class:`BuildResult` exactly once.
"""

from __future__ import annotations

from dataclasses import replace

from xcsift.core.formatting import format_seconds, parse_duration
from xcsift.parsing import classifier
from xcsift.parsing.classifier import (
    BuildTime,
    DependencyEdge,
    DependencyHeader,
    SwiftTestingSummary,
    XCTestSummary,
)
from xcsift.parsing.linker import LinkerBlockParser
from xcsift.parsing.models import (
    BuildInfo,
    BuildResult,
    BuildSummary,
    Diagnostic,
    Executable,
    FailedTest,
    ParseOptions,
    SlowTest,
    TargetBuildInfo,
)

SLOWEST_TARGETS_LIMIT = 5


class ParseContext:
    def __init__(self) -> None:
        self.errors: list[Diagnostic] = []
        self.warnings: list[Diagnostic] = []
        self.failed_tests: list[FailedTest] = []
        self.executables: list[Executable] = []
        self.linker = LinkerBlockParser()

        self._seen_errors: set[str] = set()
        self._seen_warnings: set[str] = set()
        self._failed_index: dict[str, int] = {}
        self._executable_paths: set[str] = set()

        self.build_time: str | None = None
        self.test_time = 0.0

        # Cross-framework counters
        self.xctest_executed: int | None = None
        self.xctest_failed: int | None = None
        self.swift_testing_executed: int | None = None
        self.swift_testing_failed: int | None = None
        self.parallel_total: int | None = None

        self.passed_count = 0
        self._passed_seen: set[str] = set()
        self.passed_durations: dict[str, float] = {}
        self.failed_durations: dict[str, float] = {}

        # Build info, keyed by target in first-seen order
        self.target_order: list[str] = []
        self.target_phases: dict[str, list[str]] = {}
        self.target_durations: dict[str, str] = {}
        self.target_dependencies: dict[str, list[str]] = {}
        self._dependency_target: str | None = None

    # Line dispatch

    def consume(self, line: str) -> None:
        """Fold one line of build output into the context."""
        if not line or len(line) > classifier.MAX_LINE_LENGTH:
            return
        if self.linker.feed(line):
            return
        if self._consume_build_info(line):
            return
        if not classifier.has_trigger(line):
            return

        total = classifier.parallel_test_total(line)
        if total is not None:
            # Scheduling lines all carry the same total
            if self.parallel_total is None:
                self.parallel_total = total
            return

        executable = classifier.classify_executable(line)
        if executable is not None:
            if executable.path not in self._executable_paths:
                self._executable_paths.add(executable.path)
                self.executables.append(executable)
            return

        failed = classifier.classify_failed_test(line)
        if failed is not None:
            self._add_failed_test(failed)
            return

        error = classifier.classify_error(line)
        if error is not None:
            self._add_unique(self.errors, self._seen_errors, error)
            return

        warning = classifier.classify_warning(line) or classifier.classify_runtime_warning(line)
        if warning is not None:
            self._add_unique(self.warnings, self._seen_warnings, warning)
            return

        passed = classifier.classify_passed_test(line)
        if passed is not None:
            self._add_passed_test(passed.name, passed.duration)
            return

        timing = classifier.classify_timing(line)
        if timing is not None:
            self._apply_timing(timing)

    def _consume_build_info(self, line: str) -> bool:
        dependency = classifier.classify_dependency(line)
        if isinstance(dependency, DependencyHeader):
            self._dependency_target = dependency.target
            self._touch_target(dependency.target)
            if dependency.no_dependencies:
                self.target_dependencies[dependency.target] = []
            return True
        if isinstance(dependency, DependencyEdge) and self._dependency_target is not None:
            deps = self.target_dependencies.setdefault(self._dependency_target, [])
            if dependency.dependency not in deps:
                deps.append(dependency.dependency)
            return True

        phase = classifier.classify_phase(line)
        if phase is not None:
            self._touch_target(phase.target)
            phases = self.target_phases.setdefault(phase.target, [])
            if phase.phase not in phases:
                phases.append(phase.phase)
            return True

        timing = classifier.classify_target_timing(line)
        if timing is not None:
            self._touch_target(timing.target)
            self.target_durations[timing.target] = timing.duration
            return True

        return False

    # Folding helpers

    def _touch_target(self, target: str) -> None:
        if target not in self.target_order:
            self.target_order.append(target)

    @staticmethod
    def _add_unique(items: list[Diagnostic], seen: set[str], item: Diagnostic) -> None:
        if item.dedup_key not in seen:
            seen.add(item.dedup_key)
            items.append(item)

    def _add_failed_test(self, test: FailedTest) -> None:
        if test.duration is not None:
            self.failed_durations[test.test] = test.duration

        index = self._failed_index.get(test.test)
        if index is None:
            self._failed_index[test.test] = len(self.failed_tests)
            self.failed_tests.append(test)
            return

        # Same test reported again: keep the richest location/duration
        existing = self.failed_tests[index]
        merged = replace(
            existing,
            message=test.message if test.file is not None else existing.message,
            file=test.file if test.file is not None else existing.file,
            line=test.line if test.line is not None else existing.line,
            duration=test.duration if test.duration is not None else existing.duration,
        )
        if (merged.file, merged.line, merged.duration) != (
            existing.file,
            existing.line,
            existing.duration,
        ):
            self.failed_tests[index] = merged

    def _add_passed_test(self, name: str, duration: float | None) -> None:
        if name in self._passed_seen:
            return
        self._passed_seen.add(name)
        self.passed_count += 1
        if duration is not None:
            self.passed_durations[name] = duration

    def _apply_timing(
        self, event: BuildTime | XCTestSummary | SwiftTestingSummary
    ) -> None:
        if isinstance(event, BuildTime):
            self.build_time = event.value
        elif isinstance(event, XCTestSummary):
            if event.executed is not None:
                self.xctest_executed = event.executed
            if event.failed is not None:
                self.xctest_failed = event.failed
            if event.seconds is not None:
                self.test_time += event.seconds
        else:
            if event.failed is not None:
                self.swift_testing_failed = event.failed
            if event.executed is not None:
                self.swift_testing_executed = event.executed
            if event.seconds is not None:
                self.test_time += event.seconds

    def enrich_last_error(self, failure_line: str, context: list[str]) -> None:
        """Prefix the script-phase failure error with the lines that explain it."""
        if context and self.errors and self.errors[-1].message == failure_line:
            message = " ".join(context) + " " + failure_line
            self.errors[-1] = Diagnostic(message=message)
            self._seen_errors.add(self.errors[-1].dedup_key)

    # Result assembly

    def total_executed(self) -> int | None:
        # Parallel scheduling counts are more reliable than Swift Testing's summary
        if self.parallel_total is not None:
            return self.parallel_total + (self.xctest_executed or 0)
        xctest = self.xctest_executed or 0
        swift_testing = self.swift_testing_executed or 0
        if xctest > 0 or swift_testing > 0:
            return xctest + swift_testing
        return None

    def total_failed(self) -> int:
        aggregated = (self.xctest_failed or 0) + (self.swift_testing_failed or 0)
        return aggregated if aggregated > 0 else len(self.failed_tests)

    def total_passed(self) -> int | None:
        executed = self.total_executed()
        if executed is not None:
            return max(executed - self.total_failed(), 0)
        if self.passed_count > 0:
            return self.passed_count
        return None

    def slow_tests(self, threshold: float | None) -> list[SlowTest]:
        if threshold is None:
            return []
        slow = [
            SlowTest(test=name, duration=duration)
            for name, duration in self.passed_durations.items()
            if duration > threshold
        ]
        reported = {s.test for s in slow}
        slow.extend(
            SlowTest(test=name, duration=duration)
            for name, duration in self.failed_durations.items()
            if duration > threshold and name not in reported
        )
        return sorted(slow, key=lambda s: s.duration, reverse=True)

    def flaky_tests(self) -> list[str]:
        failed_names = {t.test for t in self.failed_tests}
        return sorted(failed_names.intersection(self._passed_seen))

    def build_info(self) -> BuildInfo:
        targets = tuple(
            TargetBuildInfo(
                name=name,
                duration=self.target_durations.get(name),
                phases=tuple(self.target_phases.get(name, ())),
                depends_on=tuple(self.target_dependencies.get(name, ())),
            )
            for name in self.target_order
        )
        timed = [t for t in targets if t.duration is not None]
        timed.sort(key=lambda t: parse_duration(t.duration) or 0.0, reverse=True)
        return BuildInfo(
            targets=targets,
            slowest_targets=tuple(t.name for t in timed[:SLOWEST_TARGETS_LIMIT]),
        )

    def to_result(self, options: ParseOptions) -> BuildResult:
        errors = list(self.errors)
        warnings = list(self.warnings)
        if options.warnings_as_errors and warnings:
            errors.extend(Diagnostic(message=w.message, file=w.file, line=w.line) for w in warnings)
            warnings = []

        status = "success" if not errors and self.total_failed() == 0 else "failed"
        slow = self.slow_tests(options.slow_threshold)
        flaky = self.flaky_tests()
        coverage = options.coverage

        summary = BuildSummary(
            errors=len(errors),
            warnings=len(warnings),
            failed_tests=self.total_failed(),
            linker_errors=len(self.linker.errors),
            passed_tests=self.total_passed(),
            build_time=self.build_time,
            test_time=format_seconds(self.test_time) if self.test_time > 0 else None,
            coverage_percent=coverage.line_coverage if coverage is not None else None,
            slow_tests=len(slow),
            flaky_tests=len(flaky),
            executables=len(self.executables),
        )

        return BuildResult(
            status=status,
            summary=summary,
            errors=tuple(errors),
            warnings=tuple(warnings),
            failed_tests=tuple(self.failed_tests),
            linker_errors=tuple(self.linker.errors),
            coverage=coverage,
            slow_tests=tuple(slow),
            flaky_tests=tuple(flaky),
            build_info=self.build_info(),
            executables=tuple(self.executables),
            print_warnings=options.print_warnings,
            print_coverage_details=options.print_coverage_details,
            print_build_info=options.print_build_info,
            print_executables=options.print_executables,
        )
