"""xcsift CLI - turn xcodebuild / SwiftPM output into a compact report.

Usage::

    xcodebuild test 2>&1 | xcsift -w
    swift test --enable-code-coverage 2>&1 | xcsift -c -f github-actions
"""

import os
from pathlib import Path
from typing import Any

import click

from xcsift.config import load_config, write_template
from xcsift.config.models import XcsiftConfig
from xcsift.core.errors import InputError, XcsiftError
from xcsift.core.logging import configure_logging, get_logger
from xcsift.coverage import CodeCoverage, discover_coverage
from xcsift.output import format_github_actions, to_json
from xcsift.parsing import BuildResult, ParseOptions, extract_tested_target, parse

log = get_logger("cli.main")


def read_input() -> str:
    """Read piped build output from stdin.

    Raises:
        InputError: If stdin is a terminal or the input is blank.
    """
    stdin = click.get_text_stream("stdin")
    if stdin.isatty():
        raise InputError.missing()
    text = stdin.read()
    if not text.strip():
        raise InputError.empty()
    return text


def collect_coverage(config: XcsiftConfig, text: str) -> CodeCoverage | None:
    """Discover coverage for the tested target, warning when the target had none."""
    target = extract_tested_target(text)
    coverage = discover_coverage(config.coverage_path or None, target)
    if coverage is None and target is not None:
        click.echo(
            f"Warning: Target '{target}' was detected but no matching coverage data was found.",
            err=True,
        )
    return coverage


def to_parse_options(config: XcsiftConfig, coverage: CodeCoverage | None = None) -> ParseOptions:
    return ParseOptions(
        print_warnings=config.warnings,
        warnings_as_errors=config.werror,
        print_coverage_details=config.coverage_details,
        print_build_info=config.build_info,
        print_executables=config.executable,
        slow_threshold=config.slow_threshold,
        coverage=coverage,
    )


def render(result: BuildResult, config: XcsiftConfig) -> str | None:
    """Encode ``result`` in the configured format, or None when quiet suppresses it."""
    if config.quiet and result.status == "success" and result.summary.warnings == 0:
        return None
    if config.format == "github-actions":
        return format_github_actions(result)
    output = to_json(result)
    if os.environ.get("GITHUB_ACTIONS") == "true":
        output += "\n" + format_github_actions(result)
    return output


def _flag(value: bool) -> bool | None:
    # Unset flags must not override the config file
    return True if value else None


@click.command()
@click.version_option(version="0.1.0", prog_name="xcsift")
@click.option("-w", "--warnings", "warnings", is_flag=True, help="Print the detailed warnings list")
@click.option("-W", "--Werror", "werror", is_flag=True, help="Treat warnings as errors")
@click.option("-q", "--quiet", is_flag=True, help="No output when the build succeeds without warnings")
@click.option("-c", "--coverage", is_flag=True, help="Include code coverage")
@click.option("--coverage-path", type=str, default=None, help="Coverage data path (default: auto-detect)")
@click.option("--coverage-details", is_flag=True, help="Include per-file coverage breakdown")
@click.option(
    "-f",
    "--format",
    "output_format",
    type=click.Choice(["json", "github-actions"]),
    default=None,
    help="Output format (default: json)",
)
@click.option("--slow-threshold", type=float, default=None, help="Seconds after which a test is slow")
@click.option("--build-info", is_flag=True, help="Include per-target phases, timing and dependencies")
@click.option("-e", "--executable", is_flag=True, help="Include built app bundles")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Config file (default: ./.xcsift.toml, then ~/.config/xcsift/config.toml)",
)
@click.option("--init", "init_config", is_flag=True, help="Write a .xcsift.toml template and exit")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(
    warnings: bool,
    werror: bool,
    quiet: bool,
    coverage: bool,
    coverage_path: str | None,
    coverage_details: bool,
    output_format: str | None,
    slow_threshold: float | None,
    build_info: bool,
    executable: bool,
    config_path: Path | None,
    init_config: bool,
    verbose: bool,
) -> None:
    """Parse xcodebuild / swift build / swift test output from stdin."""
    configure_logging(level="DEBUG" if verbose else "WARNING")

    if init_config:
        try:
            path = write_template()
        except XcsiftError as e:
            raise click.ClickException(e.message) from e
        click.echo(f"Created {path.name}")
        return

    overrides: dict[str, Any] = {
        "warnings": _flag(warnings),
        "werror": _flag(werror),
        "quiet": _flag(quiet),
        "coverage": _flag(coverage),
        "coverage_details": _flag(coverage_details),
        "coverage_path": coverage_path,
        "format": output_format,
        "slow_threshold": slow_threshold,
        "build_info": _flag(build_info),
        "executable": _flag(executable),
    }
    try:
        config = load_config(config_path, **overrides)
        if not verbose:
            configure_logging(config=config.logging)
        text = read_input()
    except XcsiftError as e:
        log.debug("cli_error", error=e.error_name, details=e.details)
        raise click.ClickException(e.message) from e

    found_coverage = collect_coverage(config, text) if config.coverage else None
    result = parse(text, to_parse_options(config, found_coverage))

    output = render(result, config)
    if output is not None:
        click.echo(output)


if __name__ == "__main__":
    cli()
