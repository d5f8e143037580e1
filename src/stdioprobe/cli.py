"""CLI entry point for stdioprobe."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError
from pydantic_settings import SettingsError

if TYPE_CHECKING:
    from stdioprobe.config.settings import Settings
    from stdioprobe.models.probe import ProbeReport

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point: probe the configured process and exit 0 or 1."""
    parser = argparse.ArgumentParser(
        prog="stdioprobe",
        description="stdioprobe — Check that a stdio JSON-RPC server starts and accepts input",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Log level (overrides config)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"stdioprobe {_get_version()}",
    )
    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Command to probe, e.g. '-- npx -y @brave/brave-search-mcp-server' (overrides config)",
    )

    args = parser.parse_args(argv)

    # Load settings
    from stdioprobe.config.settings import Settings

    try:
        if args.config:
            config_path = Path(args.config)
            if not config_path.exists():
                print(f"Error: Config file not found: {config_path}", file=sys.stderr)
                sys.exit(1)
            settings = Settings.from_yaml(config_path)
        else:
            settings = Settings()
    except (ValidationError, SettingsError) as e:
        print(f"Error: Invalid configuration:\n{e}", file=sys.stderr)
        sys.exit(1)

    # Apply CLI overrides
    if args.log_level:
        settings.observability.log_level = args.log_level
    command = args.command[1:] if args.command[:1] == ["--"] else args.command

    from stdioprobe.observability.logging import setup_logging

    setup_logging(settings.observability)

    sys.exit(run(settings, command or None))


def run(settings: Settings, command: list[str] | None = None) -> int:
    """Probe once, print the summary, and return the process exit code."""
    from stdioprobe.core.exceptions import SpawnError
    from stdioprobe.core.probe import ProcessProbe

    probe = ProcessProbe(settings.probe, command=command)
    print(f"Testing {' '.join(probe.command)}...\n")

    try:
        report = asyncio.run(probe.run())
    except SpawnError as e:
        print(f"Failed to start: {e.reason}", file=sys.stderr)
        return 1

    _print_summary(report)
    return report.exit_code


def _print_summary(report: ProbeReport) -> None:
    from stdioprobe.models.probe import ProbeOutcome

    if report.outcome is ProbeOutcome.COMPLETED:
        print("\nServer appears to be running")
    else:
        print(f"\nTimeout - server took longer than {report.ceiling:g}s")
    if report.outcome is ProbeOutcome.COMPLETED and not report.request_sent:
        print("Warning: the capability request could not be written")
    print("Output:", report.stdout_text)
    print("Errors:", report.stderr_text)
    sys.stdout.flush()


def _get_version() -> str:
    """Get the package version."""
    try:
        from stdioprobe import __version__

        return __version__
    except ImportError:
        return "unknown"


if __name__ == "__main__":
    main()
