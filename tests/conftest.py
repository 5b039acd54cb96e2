"""Shared fixtures for the xcsift test suite.

Tests import xcsift from this checkout's ``src/``. Every test also runs
with a throwaway HOME and without ``GITHUB_ACTIONS`` or ``XCSIFT__*``
variables, so a developer's ``~/.config/xcsift/config.toml`` or a CI
environment cannot change config resolution or output format.
"""

import os
import sys
from pathlib import Path

import pytest

_SRC = Path(__file__).parent.parent / "src"
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.delenv("GITHUB_ACTIONS", raising=False)
    for key in list(os.environ):
        if key.upper().startswith("XCSIFT__"):
            monkeypatch.delenv(key)
