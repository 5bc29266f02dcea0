"""Shared test fixtures for httpchain.

Provides a mock-backed transport factory, isolated config directories,
output state management, and a CLI runner. These fixtures are discovered
by pytest and available to all test modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import httpx
import pytest

from httpchain.output import OutputFormat, OutputManager, reset_output, set_output
from httpchain.transport import HttpxTransport

BASE_URL = "https://api.example.com"

Handler = Callable[[httpx.Request], httpx.Response]


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches Rich consoles bound to sys.stdout/sys.stderr
    at creation time. When CliRunner swaps those streams, a cached manager
    would keep writing to closed files.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Transports
# ---------------------------------------------------------------------------


def mock_transport(handler: Handler) -> HttpxTransport:
    """Create an :class:`HttpxTransport` whose client dispatches to *handler*."""
    return HttpxTransport(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.fixture
def make_transport() -> Callable[[Handler], HttpxTransport]:
    return mock_transport


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME to a subdirectory of tmp_path, forces the XDG
    layout, and clears the HTTPCHAIN_* environment variables.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setattr("httpchain.config._is_xdg_platform", lambda: True)
    for var in ["HTTPCHAIN_PROFILE", "HTTPCHAIN_BASE_URL"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for the test."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
