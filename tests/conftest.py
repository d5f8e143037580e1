"""Shared test fixtures and configuration."""

from __future__ import annotations

import sys

import pytest

from stdioprobe.config.settings import ProbeSettings, Settings

# ── Child programs standing in for the external server ──

SILENT = "import time; time.sleep(60)"

ECHO = """
import sys
for line in sys.stdin.buffer:
    sys.stdout.buffer.write(line)
    sys.stdout.buffer.flush()
"""

BANNER = """
import sys, time
sys.stdout.write("ready on stdio\\n")
sys.stdout.flush()
sys.stderr.write("Brave Search MCP Server running on stdio\\n")
sys.stderr.flush()
time.sleep(60)
"""

IGNORE_SIGTERM = """
import signal, sys, time
signal.signal(signal.SIGTERM, signal.SIG_IGN)
sys.stdout.write("armed\\n")
sys.stdout.flush()
time.sleep(60)
"""


def python_command(source: str) -> list[str]:
    """Command line running ``source`` in a fresh, unbuffered interpreter."""
    return [sys.executable, "-u", "-c", source]


@pytest.fixture
def settings() -> Settings:
    """Create a test Settings instance with defaults."""
    return Settings(_env_file=None)  # type: ignore[call-arg]


@pytest.fixture
def fast_probe_settings() -> ProbeSettings:
    """Probe timings shrunk so a full run takes about a second."""
    return ProbeSettings(
        command=python_command(SILENT),
        send_delay=0.3,
        response_window=0.7,
        ceiling=5.0,
        kill_grace=0.5,
        drain_timeout=0.5,
    )


@pytest.fixture
def make_command():
    """Factory turning Python source into a child command line."""
    return python_command


@pytest.fixture
def silent_command() -> list[str]:
    return python_command(SILENT)


@pytest.fixture
def echo_command() -> list[str]:
    return python_command(ECHO)


@pytest.fixture
def banner_command() -> list[str]:
    return python_command(BANNER)


@pytest.fixture
def ignore_sigterm_command() -> list[str]:
    return python_command(IGNORE_SIGTERM)
