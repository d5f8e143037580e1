"""Probe models — The outbound capability request and the final probe report."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from stdioprobe.core.exceptions import CeilingExceededError


class CapabilityListRequest(BaseModel):
    """The single JSON-RPC request written to the probed process.

    Serializes to exactly ``{"jsonrpc":"2.0","method":"tools/list","id":1}``.
    """

    jsonrpc: Literal["2.0"] = "2.0"
    method: Literal["tools/list"] = "tools/list"
    id: int = 1

    def to_line(self) -> bytes:
        """Compact UTF-8 JSON followed by a newline."""
        return self.model_dump_json().encode("utf-8") + b"\n"


class ProbeOutcome(str, Enum):
    """Terminal state of a probe run."""

    COMPLETED = "completed"
    TIMED_OUT = "timed_out"


class ProbeReport(BaseModel):
    """Everything observed during one probe run."""

    outcome: ProbeOutcome = Field(description="Which terminal path ended the probe")
    command: list[str] = Field(description="Executable and arguments that were launched")
    stdout: bytes = Field(default=b"", description="Raw bytes captured from the process's stdout")
    stderr: bytes = Field(default=b"", description="Raw bytes captured from the process's stderr")
    request_sent: bool = Field(default=False, description="Whether the capability request was written")
    request_sent_at: float | None = Field(default=None, description="Seconds from spawn until the request was written")
    elapsed_seconds: float = Field(default=0.0, description="Seconds from spawn to the terminal path")
    ceiling: float = Field(description="Ceiling that was in force for this run")
    returncode: int | None = Field(default=None, description="Child return code after teardown")

    @property
    def exit_code(self) -> int:
        """0 when the sequence completed, 1 when the ceiling fired."""
        return 0 if self.outcome is ProbeOutcome.COMPLETED else 1

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")

    def raise_for_outcome(self) -> None:
        """Raise ``CeilingExceededError`` if the ceiling ended the probe."""
        if self.outcome is ProbeOutcome.TIMED_OUT:
            raise CeilingExceededError(self.ceiling)
