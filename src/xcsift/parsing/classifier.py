"""Line classification for xcodebuild and SwiftPM output.

Every function here is pure: it looks at a single line and returns a typed
event, or None when the line is not of that category. Categories with
several line shapes are expressed as ordered ``(predicate, extractor)``
rules; the first rule whose predicate holds and whose extractor returns a
value wins.

Multi-line linker blocks need state and live in :mod:`xcsift.parsing.linker`.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TypeVar

from xcsift.parsing.models import Diagnostic, Executable, FailedTest, WarningKind

T = TypeVar("T")

Rule = tuple[Callable[[str], bool], Callable[[str], T | None]]

MAX_LINE_LENGTH = 5000

_TRIGGERS = (
    "error:",
    "warning:",
    "failed",
    "passed",
    "✘",
    "✓",
    "✔",
    "❌",
    "Build succeeded",
    "Build failed",
    "Executed",
    "] Testing ",
    "BUILD SUCCEEDED",
    "BUILD FAILED",
    "Build complete!",
    "Fatal error",
)

PHASE_SCRIPT_FAILURE = "Command PhaseScriptExecution failed with a nonzero exit"

_PARALLEL_TESTING_RE = re.compile(r"\[(\d+)/(\d+)\] Testing (.+)$")
_TEST_SUITE_BUNDLE_RE = re.compile(r"Test Suite '(.+?)\.xctest'")
_COLON_FAILED_RE = re.compile(r"^(.+?): (\S+) failed: (.+)$")

_SWIFTUI_RUNTIME_PHRASES = (
    "Accessing Environment",
    "Accessing StateObject",
    "StateObject's wrappedValue",
    "Publishing changes from background",
    "Publishing changes from within view",
    "Modifying state during view update",
    "will always read the default value",
)


# Events that are not part of the result model


@dataclass(frozen=True, slots=True)
class PassedTest:
    name: str
    duration: float | None = None


@dataclass(frozen=True, slots=True)
class BuildTime:
    value: str


@dataclass(frozen=True, slots=True)
class XCTestSummary:
    """``Executed N tests, with F failures ... in T (T2) seconds``."""

    executed: int | None
    failed: int | None
    seconds: float | None


@dataclass(frozen=True, slots=True)
class SwiftTestingSummary:
    """``Test run with N tests ... passed/failed after T seconds``."""

    executed: int | None
    failed: int | None
    seconds: float | None


TimingEvent = BuildTime | XCTestSummary | SwiftTestingSummary


@dataclass(frozen=True, slots=True)
class PhaseEvent:
    target: str
    phase: str


@dataclass(frozen=True, slots=True)
class TargetTiming:
    target: str
    duration: str


@dataclass(frozen=True, slots=True)
class DependencyHeader:
    """``Target 'T' in project 'P'`` from the dependency graph dump."""

    target: str
    no_dependencies: bool


@dataclass(frozen=True, slots=True)
class DependencyEdge:
    dependency: str


# Helpers


def first_match(rules: Sequence[Rule[T]], line: str) -> T | None:
    """Evaluate rules in priority order, returning the first extracted value."""
    for predicate, extract in rules:
        if predicate(line):
            result = extract(line)
            if result is not None:
                return result
    return None


def _is_int(text: str) -> bool:
    return text.isascii() and text.isdigit()


def _to_float(text: str) -> float | None:
    try:
        return float(text)
    except ValueError:
        return None


def _clean_float(text: str) -> float | None:
    return _to_float(text.strip(". \t"))


def _first_int(text: str) -> int | None:
    words = text.split()
    if words and _is_int(words[0]):
        return int(words[0])
    return None


def _split_location(prefix: str, *, with_column: bool = True) -> tuple[str, int | None, int | None]:
    """Split ``file:line:col`` / ``file:line`` / ``file`` prefixes.

    File paths may themselves contain colons, so numbers are taken from
    the right.
    """
    parts = prefix.split(":")
    if with_column and len(parts) >= 3 and _is_int(parts[-2]) and _is_int(parts[-1]):
        return ":".join(parts[:-2]), int(parts[-2]), int(parts[-1])
    if len(parts) >= 2 and _is_int(parts[-1]):
        return ":".join(parts[:-1]), int(parts[-1]), None
    return prefix, None, None


def _between(line: str, start: str, end: str) -> str | None:
    """Text between the first ``start`` and the next ``end``."""
    begin = line.find(start)
    if begin < 0:
        return None
    begin += len(start)
    stop = line.find(end, begin)
    if stop < 0:
        return None
    return line[begin:stop]


def _last_enclosed(line: str, open_char: str, close_char: str) -> str | None:
    """Text inside the last ``open_char ... close_char`` pair."""
    begin = line.rfind(open_char)
    stop = line.rfind(close_char)
    if begin < 0 or stop < 0 or begin >= stop:
        return None
    return line[begin + 1 : stop]


def _seconds_after(text: str, marker: str) -> float | None:
    """Duration in ``<marker>X seconds`` style text."""
    idx = text.find(marker)
    if idx < 0:
        return None
    rest = text[idx + len(marker) :]
    end = rest.find(" seconds")
    if end < 0:
        return None
    return _to_float(rest[:end])


def normalize_test_name(name: str) -> str:
    """``-[Module.Class testMethod]`` -> ``Module.Class testMethod``."""
    if name.startswith("-[") and name.endswith("]"):
        return name[2:-1]
    return name


def has_trigger(line: str) -> bool:
    """Cheap prefilter run before any pattern cascade."""
    if any(trigger in line for trigger in _TRIGGERS):
        return True
    if line.startswith(("RegisterWithLaunchServices", "Validate")):
        return True
    return line.startswith("/") and ".swift:" in line


def _is_indented(line: str) -> bool:
    return line.startswith((" ", "\t"))


def is_json_like(line: str) -> bool:
    """True for lines that look like JSON, e.g. embedded tool output.

    Such lines often contain ``"error:"`` inside string values and must not
    be reported as diagnostics.
    """
    trimmed = line.strip(" \t")

    if trimmed.startswith(("{", "[", "}", "]")):
        return True
    if trimmed.startswith('"') and '" :' in trimmed:
        return True
    if '\\"' in line and '"' in line and ":" in line:
        return True

    if "error:" in line:
        if trimmed.startswith('"') and ":" in trimmed:
            return True
        if _is_indented(line) and trimmed.startswith('"'):
            return True
        if not trimmed.startswith("error:"):
            has_quoted = '"' in line and ":" in line
            has_escaped = "\\" in line and '"' in line
            looks_like_path = any(
                marker in line for marker in ("file:", ".swift:", ".m:", ".h:")
            )
            if has_quoted and has_escaped and not looks_like_path:
                return True

    return False


def is_visual_continuation(line: str) -> bool:
    """Caret/pipe rendering of a diagnostic already reported on its own line."""
    return line.startswith(" ") and ("|" in line or "`" in line)


# Errors and warnings


def _located(marker: str, *, with_column: bool = True) -> Callable[[str], Diagnostic]:
    def extract(line: str) -> Diagnostic:
        prefix, _, message = line.partition(marker)
        file, line_no, column = _split_location(prefix, with_column=with_column)
        return Diagnostic(message=message, file=file, line=line_no, column=column)

    return extract


def _fatal_without_message(line: str) -> Diagnostic | None:
    prefix = line[: -len(": Fatal error")]
    file, line_no, _ = _split_location(prefix, with_column=False)
    if line_no is None:
        return None
    return Diagnostic(message="Fatal error", file=file, line=line_no)


ERROR_RULES: tuple[Rule[Diagnostic], ...] = (
    (lambda s: ": error: " in s, _located(": error: ")),
    (lambda s: ": Fatal error: " in s, _located(": Fatal error: ", with_column=False)),
    (
        lambda s: s.endswith(": Fatal error") and " xctest[" not in s,
        _fatal_without_message,
    ),
    (lambda s: s.startswith("❌ "), lambda s: Diagnostic(message=s[2:])),
    (lambda s: s.startswith("error: "), lambda s: Diagnostic(message=s[len("error: ") :])),
    (lambda s: PHASE_SCRIPT_FAILURE in s, lambda s: Diagnostic(message=s)),
)

WARNING_RULES: tuple[Rule[Diagnostic], ...] = (
    (lambda s: ": warning: " in s, _located(": warning: ")),
    (lambda s: s.startswith("warning: "), lambda s: Diagnostic(message=s[len("warning: ") :])),
)


def classify_error(line: str) -> Diagnostic | None:
    if is_json_like(line) or is_visual_continuation(line):
        return None
    return first_match(ERROR_RULES, line)


def classify_warning(line: str) -> Diagnostic | None:
    if is_json_like(line) or is_visual_continuation(line):
        return None
    return first_match(WARNING_RULES, line)


def runtime_warning_kind(message: str) -> WarningKind:
    if any(phrase in message for phrase in _SWIFTUI_RUNTIME_PHRASES):
        return "swiftui"
    return "runtime"


def classify_runtime_warning(line: str) -> Diagnostic | None:
    """``/abs/path/File.swift:42 Message`` printed by the Swift runtime."""
    if ": warning:" in line or ": error:" in line:
        return None
    if not line.startswith("/") or ".swift:" not in line:
        return None
    if "|" in line or "`-" in line:
        return None

    head, _, rest = line.partition(".swift:")
    digits = 0
    while digits < len(rest) and _is_int(rest[digits]):
        digits += 1
    if digits == 0 or digits >= len(rest) or rest[digits] != " ":
        return None

    message = rest[digits + 1 :]
    if not message:
        return None
    return Diagnostic(
        message=message,
        file=head + ".swift",
        line=int(rest[:digits]),
        kind=runtime_warning_kind(message),
    )


# Tests


def _xctest_case_name(line: str, verdict: str) -> str | None:
    if not line.startswith("Test Case '"):
        return None
    return _between(line, "Test Case '", f"' {verdict} (")


def _passed_test_case(line: str) -> PassedTest | None:
    name = _xctest_case_name(line, "passed")
    if name is None:
        return None
    return PassedTest(name=name, duration=_seconds_after(line, "' passed ("))


def _passed_swift_testing(line: str) -> PassedTest | None:
    rest = line[len('✓ Test "') :]
    end = rest.find('" passed')
    if end < 0:
        return None
    tail = rest[end + len('" passed') :]
    return PassedTest(name=rest[:end], duration=_seconds_after(tail, " after "))


PASSED_RULES: tuple[Rule[PassedTest], ...] = (
    (lambda s: s.startswith("Test Case '"), _passed_test_case),
    (lambda s: s.startswith(('✓ Test "', '✔ Test "')), _passed_swift_testing),
)


def classify_passed_test(line: str) -> PassedTest | None:
    result = first_match(PASSED_RULES, line)
    if result is None:
        return None
    return PassedTest(name=normalize_test_name(result.name), duration=result.duration)


def _assertion_failure(line: str) -> FailedTest:
    stripped = line.strip(" \t")
    marker = line.find(": error: -[")
    if marker >= 0:
        name_start = marker + len(": error: -[")
        name_end = line.find("] : ", name_start)
        if name_end >= 0:
            file, line_no, _ = _split_location(line[:marker], with_column=False)
            if line_no is not None:
                return FailedTest(
                    test=line[name_start:name_end],
                    message=line[name_end + len("] : ") :],
                    file=file,
                    line=line_no,
                )

    bracket = line.find("-[")
    if bracket >= 0:
        close = line.find("]", bracket + 2)
        if close >= 0:
            return FailedTest(test=line[bracket + 2 : close], message=stripped)

    return FailedTest(test="Test assertion", message=stripped)


def _failed_test_case(line: str) -> FailedTest | None:
    name = _xctest_case_name(line, "failed")
    if name is None:
        return None
    duration = _seconds_after(line, "' failed (")
    message = f"{duration:.3f} seconds" if duration is not None else "failed"
    return FailedTest(test=name, message=message, duration=duration)


def _swift_testing_issue(line: str) -> FailedTest | None:
    rest = line[len('✘ Test "') :]
    name, sep, location = rest.partition('" recorded an issue at ')
    if not sep:
        return None
    parts = location.split(":", 3)
    if len(parts) < 4 or not _is_int(parts[1]):
        return None
    return FailedTest(
        test=name,
        message=parts[3].strip(" \t"),
        file=parts[0],
        line=int(parts[1]),
    )


def _swift_testing_failed(line: str) -> FailedTest | None:
    rest = line[len('✘ Test "') :]
    name, sep, tail = rest.partition('" failed after ')
    if not sep:
        return None
    end = tail.find(" seconds")
    duration = _to_float(tail[:end]) if end >= 0 else None
    return FailedTest(test=name, message="Test failed", duration=duration)


def _emoji_failure(line: str) -> FailedTest | None:
    open_paren = line.find(" (")
    close_paren = line.rfind(")")
    if open_paren < 0 or close_paren < open_paren + 2:
        return None
    return FailedTest(test=line[2:open_paren], message=line[open_paren + 2 : close_paren])


def _parenthesized_failure(line: str) -> FailedTest | None:
    open_paren = line.find(" (")
    close_paren = line.rfind(") failed")
    if open_paren < 0 or close_paren < open_paren + 2:
        return None
    return FailedTest(test=line[:open_paren], message=line[open_paren + 2 : close_paren])


def _colon_failure(line: str) -> FailedTest | None:
    match = _COLON_FAILED_RE.match(line)
    if match is None:
        return None
    return FailedTest(test=match.group(2), message=match.group(3).strip())


FAILED_RULES: tuple[Rule[FailedTest], ...] = (
    (
        lambda s: any(
            a in s for a in ("XCTAssertEqual failed", "XCTAssertTrue failed", "XCTAssertFalse failed")
        ),
        _assertion_failure,
    ),
    (lambda s: s.startswith("Test Case '"), _failed_test_case),
    (lambda s: s.startswith('✘ Test "'), _swift_testing_issue),
    (lambda s: s.startswith('✘ Test "'), _swift_testing_failed),
    (lambda s: s.startswith("❌ "), _emoji_failure),
    (lambda s: s.endswith((") failed", ") failed.")), _parenthesized_failure),
    (
        lambda s: "error:" not in s and "warning:" not in s and not s.startswith("✘"),
        _colon_failure,
    ),
)


def classify_failed_test(line: str) -> FailedTest | None:
    result = first_match(FAILED_RULES, line)
    if result is None:
        return None
    return FailedTest(
        test=normalize_test_name(result.test),
        message=result.message,
        file=result.file,
        line=result.line,
        duration=result.duration,
    )


def parallel_test_total(line: str) -> int | None:
    """Total from a ``[i/total] Testing Module.Class/method`` scheduling line."""
    if "] Testing " not in line:
        return None
    match = _PARALLEL_TESTING_RE.search(line)
    if match is None:
        return None
    return int(match.group(2))


def extract_test_suite_bundle(line: str) -> str | None:
    """Bundle name from ``Test Suite 'NameTests.xctest' started``."""
    if "Test Suite '" not in line or ".xctest" not in line or "started" not in line:
        return None
    match = _TEST_SUITE_BUNDLE_RE.search(line)
    return match.group(1) if match else None


# Build and test timing


def _bracket_build_time(line: str) -> BuildTime | None:
    value = _last_enclosed(line, "[", "]")
    return BuildTime(value) if value is not None else None


def _spm_build_time(line: str) -> BuildTime | None:
    value = _between(line, "(", ")")
    return BuildTime(value) if value is not None else None


def _xctest_summary(line: str) -> XCTestSummary | None:
    trimmed = line.strip(" \t")
    with_idx = trimmed.find(", with ")
    if with_idx < 0:
        return None
    executed = _first_int(trimmed[len("Executed ") : with_idx])

    after_with = trimmed[with_idx + len(", with ") :]
    failed = None
    failure_idx = after_with.find(" failure")
    if failure_idx >= 0:
        words = after_with[:failure_idx].split()
        if words and _is_int(words[-1]):
            failed = int(words[-1])

    seconds = None
    in_idx = trimmed.find(" in ", with_idx)
    if in_idx >= 0:
        after_in = trimmed[in_idx + len(" in ") :]
        paren = after_in.find(" (")
        if paren >= 0:
            seconds = _clean_float(after_in[:paren])
        else:
            secs = after_in.rfind(" seconds")
            if secs >= 0:
                seconds = _clean_float(after_in[:secs])

    return XCTestSummary(executed=executed, failed=failed, seconds=seconds)


def _seconds_tail(text: str) -> float | None:
    secs = text.rfind(" seconds")
    return _clean_float(text[:secs] if secs >= 0 else text)


def _swift_testing_failed_summary(line: str) -> SwiftTestingSummary | None:
    start = line.find("Test run with ") + len("Test run with ")
    failed_idx = line.find(" failed, ", start)
    if failed_idx < 0:
        return None
    passed_idx = line.find(" passed after ", failed_idx)
    if passed_idx < 0:
        return None
    failed = _first_int(line[start:failed_idx])
    passed = _first_int(line[failed_idx + len(" failed, ") : passed_idx])
    executed = passed + failed if passed is not None and failed is not None else None
    seconds = _seconds_tail(line[passed_idx + len(" passed after ") :])
    return SwiftTestingSummary(executed=executed, failed=failed, seconds=seconds)


def _swift_testing_passed_summary(line: str) -> SwiftTestingSummary | None:
    start = line.find("Test run with ") + len("Test run with ")
    passed_idx = line.find(" passed after ")
    if passed_idx < start:
        return None
    total = _first_int(line[start:passed_idx])
    if total is None:
        return None
    seconds = None
    if total > 0:
        seconds = _seconds_tail(line[passed_idx + len(" passed after ") :])
    return SwiftTestingSummary(executed=total, failed=0, seconds=seconds)


TIMING_RULES: tuple[Rule[TimingEvent], ...] = (
    (
        lambda s: "** BUILD SUCCEEDED **" in s or "** BUILD FAILED **" in s,
        _bracket_build_time,
    ),
    (lambda s: s.startswith("Build complete!"), _spm_build_time),
    (
        lambda s: s.startswith("Build succeeded in "),
        lambda s: BuildTime(s[len("Build succeeded in ") :]),
    ),
    (
        lambda s: s.startswith("Build failed after "),
        lambda s: BuildTime(s[len("Build failed after ") :]),
    ),
    (lambda s: s.strip(" \t").startswith("Executed "), _xctest_summary),
    (lambda s: "Test run with " in s, _swift_testing_failed_summary),
    (lambda s: "Test run with " in s, _swift_testing_passed_summary),
)


def classify_timing(line: str) -> TimingEvent | None:
    return first_match(TIMING_RULES, line)


# Build phases, targets and executables

PHASE_PREFIXES: tuple[tuple[str, str], ...] = (
    ("CompileSwiftSources ", "CompileSwiftSources"),
    ("CompileC ", "CompileC"),
    ("Ld ", "Link"),
    ("CopySwiftLibs ", "CopySwiftLibs"),
    ("PhaseScriptExecution ", "PhaseScriptExecution"),
    ("LinkAssetCatalog ", "LinkAssetCatalog"),
    ("ProcessInfoPlistFile ", "ProcessInfoPlistFile"),
)


def _in_target(line: str) -> str | None:
    return _between(line, "(in target '", "'")


def _xcodebuild_phase(line: str) -> PhaseEvent | None:
    target = _in_target(line)
    if target is None:
        return None
    for prefix, phase in PHASE_PREFIXES:
        if line.startswith(prefix):
            return PhaseEvent(target=target, phase=phase)
    if "SwiftDriver" in line and "Compilation" in line:
        return PhaseEvent(target=target, phase="SwiftCompilation")
    return None


def _spm_compiling(line: str) -> PhaseEvent | None:
    rest = line[line.find("] Compiling ") + len("] Compiling ") :]
    words = rest.split(" ", 1)
    target = words[0]
    # "[1/1] Compiling plugin GenerateManual" is a build tool plugin, not a target
    if not target or target == "plugin":
        return None
    return PhaseEvent(target=target, phase="Compiling")


def _spm_linking(line: str) -> PhaseEvent | None:
    target = line[line.find("] Linking ") + len("] Linking ") :].strip(" \t")
    if not target:
        return None
    return PhaseEvent(target=target, phase="Linking")


PHASE_RULES: tuple[Rule[PhaseEvent], ...] = (
    (lambda s: "(in target '" in s, _xcodebuild_phase),
    (lambda s: "] Compiling " in s, _spm_compiling),
    (lambda s: "] Linking " in s, _spm_linking),
)


def classify_phase(line: str) -> PhaseEvent | None:
    return first_match(PHASE_RULES, line)


def _timing_of_project_target(line: str) -> TargetTiming | None:
    name = _between(line, "Build target ", " of project ")
    duration = _last_enclosed(line, "(", ")")
    if name is None or duration is None:
        return None
    return TargetTiming(target=name, duration=duration)


def _timing_of_completed_target(line: str) -> TargetTiming | None:
    name = _between(line, "Build target '", "'")
    duration = _last_enclosed(line, "(", ")")
    if name is None or duration is None:
        return None
    return TargetTiming(target=name, duration=duration)


TARGET_TIMING_RULES: tuple[Rule[TargetTiming], ...] = (
    (
        lambda s: s.startswith("Build target ") and " of project " in s,
        _timing_of_project_target,
    ),
    (
        lambda s: s.startswith("Build target '") and "' completed" in s,
        _timing_of_completed_target,
    ),
)


def classify_target_timing(line: str) -> TargetTiming | None:
    return first_match(TARGET_TIMING_RULES, line)


def classify_dependency(line: str) -> DependencyHeader | DependencyEdge | None:
    """Lines of the ``xcodebuild`` target dependency graph dump.

    Example::

        Target 'App' in project 'App'
            ➜ Explicit dependency on target 'Core' in project 'App'
        Target 'Core' in project 'App' (no dependencies)
    """
    trimmed = line.strip(" \t")
    if trimmed.startswith("Target '") and "' in project '" in trimmed:
        name = _between(trimmed, "Target '", "'")
        if name is not None:
            return DependencyHeader(
                target=name,
                no_dependencies=trimmed.endswith("(no dependencies)"),
            )
    if "dependency on target '" in trimmed:
        dependency = _between(trimmed, "dependency on target '", "'")
        if dependency is not None:
            return DependencyEdge(dependency=dependency)
    return None


def classify_executable(line: str) -> Executable | None:
    """App bundle announced by ``RegisterWithLaunchServices`` or ``Validate``."""
    for prefix in ("RegisterWithLaunchServices ", "Validate "):
        if line.startswith(prefix):
            rest = line[len(prefix) :]
            break
    else:
        return None

    path, sep, after = rest.partition(" (in target '")
    if not sep or not path.endswith(".app"):
        return None
    target, sep, _ = after.partition("' from project")
    if not sep:
        return None
    return Executable(path=path, name=path.rsplit("/", 1)[-1], target=target)
