"""Entry points: turn one captured build log into a BuildResult."""

from __future__ import annotations

from xcsift.core.logging import get_logger
from xcsift.parsing import classifier
from xcsift.parsing.context import ParseContext
from xcsift.parsing.models import BuildResult, ParseOptions

log = get_logger("parsing.parser")

# Lines inspected above a failed run-script phase for the actual cause
_SCRIPT_CONTEXT_LINES = 3


def _script_failure_context(lines: list[str], index: int) -> list[str]:
    context: list[str] = []
    for previous in lines[max(0, index - _SCRIPT_CONTEXT_LINES) : index]:
        text = previous.strip(" \t")
        if not text or text.startswith(("Warning:", "Run script build phase")):
            continue
        if ": warning:" in text and "error:" not in text:
            continue
        context.append(text)
    return context


def parse(text: str, options: ParseOptions | None = None) -> BuildResult:
    """Parse xcodebuild / ``swift build`` / ``swift test`` output.

    Never raises on unrecognized input; lines that match nothing are
    ignored.

    Args:
        text: The full captured output (stdout and stderr merged).
        options: Presentation flags, warnings-as-errors, slow-test
            threshold and precomputed coverage.

    Returns:
        The immutable result for this input.
    """
    options = options or ParseOptions()
    context = ParseContext()
    lines = text.split("\n")

    for index, line in enumerate(lines):
        context.consume(line)
        if classifier.PHASE_SCRIPT_FAILURE in line:
            context.enrich_last_error(line, _script_failure_context(lines, index))

    result = context.to_result(options)
    log.debug(
        "parse_complete",
        lines=len(lines),
        status=result.status,
        errors=result.summary.errors,
        warnings=result.summary.warnings,
        failed_tests=result.summary.failed_tests,
        passed_tests=result.summary.passed_tests,
    )
    return result


def extract_tested_target(text: str) -> str | None:
    """Name of the first test bundle that started, minus a ``Tests`` suffix.

    ``Test Suite 'MyAppTests.xctest' started`` -> ``MyApp``. Used as the
    coverage target filter.
    """
    for line in text.split("\n"):
        bundle = classifier.extract_test_suite_bundle(line)
        if bundle is not None:
            return bundle.removesuffix("Tests")
    return None
