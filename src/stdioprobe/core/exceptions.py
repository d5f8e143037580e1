"""Probe exceptions."""

from __future__ import annotations


class ProbeError(Exception):
    """Base exception for probe failures."""


class SpawnError(ProbeError):
    """Raised when the external process cannot be started."""

    def __init__(self, command: list[str], reason: str) -> None:
        self.command = command
        self.reason = reason
        super().__init__(f"Failed to start {' '.join(command)!r}: {reason}")


class CeilingExceededError(ProbeError):
    """Raised when the probe sequence did not finish before the ceiling timer."""

    def __init__(self, ceiling: float) -> None:
        self.ceiling = ceiling
        super().__init__(f"Process did not finish the probe within {ceiling:g}s")
