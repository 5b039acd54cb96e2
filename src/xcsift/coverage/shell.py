"""External command execution for coverage conversion."""

from __future__ import annotations

import logging
import subprocess
from typing import Protocol

logger = logging.getLogger(__name__)

ENV_EXECUTABLE = "/usr/bin/env"


class ShellRunner(Protocol):
    """Runs an external tool and returns its stdout, or None on any failure."""

    def run(self, command: str, args: list[str]) -> str | None: ...


class SubprocessShellRunner:
    """Runs tools through ``/usr/bin/env`` so they resolve via PATH.

    ``subprocess.run`` drains stdout completely before reaping the process,
    so large reports cannot fill the pipe and deadlock.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout

    def run(self, command: str, args: list[str]) -> str | None:
        argv = [ENV_EXECUTABLE, command, *args]
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                encoding="utf-8",
                # Tools may print non-UTF-8 bytes; those must not escape as errors
                errors="replace",
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("Failed to run %s: %s", command, e)
            return None

        if result.returncode != 0:
            logger.debug(
                "%s exited with %d: %s", command, result.returncode, result.stderr.strip()
            )
            return None
        return result.stdout
