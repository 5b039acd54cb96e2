"""Formatting helpers shared by the report encoders."""

from __future__ import annotations


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    """Return grammatically correct singular/plural form.

    Args:
        count: The number of items
        singular: Singular form (e.g., "error")
        plural: Plural form (default: singular + "s")

    Returns:
        Formatted string like "1 error" or "3 errors"
    """
    if plural is None:
        plural = singular + "s"
    word = singular if count == 1 else plural
    return f"{count} {word}"


def format_seconds(seconds: float) -> str:
    """Format an accumulated test time, e.g. 4.0 -> "4.000s"."""
    return f"{seconds:.3f}s"


def parse_duration(text: str | None) -> float | None:
    """Parse a build-tool duration string such as "12.4s" or "0.5 seconds".

    Returns None for missing or unparseable input.
    """
    if not text:
        return None
    cleaned = text.strip()
    for suffix in (" seconds", " sec", "s"):
        if cleaned.endswith(suffix):
            cleaned = cleaned[: -len(suffix)]
            break
    try:
        return float(cleaned.strip())
    except ValueError:
        return None
