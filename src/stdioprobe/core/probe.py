"""Process probe — Bounded liveness check for a stdio JSON-RPC server.

A probe run follows a fixed schedule measured from the moment the child
process is spawned:

  1. ``send_delay``: write one capability listing request to stdin
  2. ``response_window`` later: stop the process, outcome ``completed``
  3. ``ceiling``: stop the process, outcome ``timed_out`` (if still running)

Both stdout and stderr are captured for the whole run. On POSIX the child
is started in its own session and teardown signals the whole process group,
so servers launched through a wrapper such as ``npx`` are stopped too.

The timers are ``asyncio.TimerHandle`` objects owned by the probe; whichever
terminal path fires first cancels every sibling, so a run ends exactly once.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import signal
from collections.abc import Mapping
from typing import TYPE_CHECKING

from stdioprobe.core.exceptions import SpawnError
from stdioprobe.models.probe import CapabilityListRequest, ProbeOutcome, ProbeReport

if TYPE_CHECKING:
    from stdioprobe.config.settings import ProbeSettings

logger = logging.getLogger(__name__)

_PROCESS_GROUPS = os.name == "posix"
_GROUP_POLL_INTERVAL = 0.05


class ProcessProbe:
    """Spawns one external process and watches it for a bounded period.

    A probe instance is single-use: ``run()`` may be awaited once.

    Attributes:
        settings: Timing, command and credential configuration.
        command: Executable and arguments actually launched.
    """

    def __init__(
        self,
        settings: ProbeSettings,
        command: list[str] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.settings = settings
        self.command = list(command) if command else list(settings.command)
        self._base_env = env
        self._process: asyncio.subprocess.Process | None = None
        self._stdout = bytearray()
        self._stderr = bytearray()
        self._timers: list[asyncio.TimerHandle] = []
        self._readers: list[asyncio.Task[None]] = []
        self._writer: asyncio.Task[None] | None = None
        self._terminated = False
        self._done: asyncio.Future[ProbeOutcome] | None = None
        self._started_at = 0.0
        self._finished_at = 0.0
        self._request_sent_at: float | None = None

    def build_env(self) -> dict[str, str]:
        """The caller's environment extended with the credential variable."""
        env = dict(os.environ if self._base_env is None else self._base_env)
        if self.settings.credential is not None:
            env[self.settings.credential_env] = self.settings.credential.get_secret_value()
        return env

    @property
    def finished(self) -> bool:
        return self._done is not None and self._done.done()

    async def run(self) -> ProbeReport:
        """Run the full probe sequence and return what was observed.

        Raises:
            SpawnError: If the process could not be started. No timers are
                scheduled in that case.
        """
        if self._process is not None:
            raise RuntimeError("ProcessProbe.run() may only be called once")

        loop = asyncio.get_running_loop()
        self._process = await self._spawn()
        self._started_at = loop.time()
        self._done = loop.create_future()

        assert self._process.stdout is not None
        assert self._process.stderr is not None
        self._readers = [
            loop.create_task(self._pump(self._process.stdout, self._stdout, "STDOUT")),
            loop.create_task(self._pump(self._process.stderr, self._stderr, "STDERR")),
        ]
        self._timers = [
            loop.call_later(self.settings.send_delay, self._send_request),
            loop.call_later(self.settings.ceiling, self._finish, ProbeOutcome.TIMED_OUT),
        ]

        try:
            outcome = await self._done
        finally:
            self._cancel_timers()
            await self._cancel_writer()
            await self.terminate()
            await self._drain_readers()

        if outcome is ProbeOutcome.TIMED_OUT:
            logger.error("Timeout - process took longer than %gs", self.settings.ceiling)
        else:
            logger.info("Process appears to be running")

        return ProbeReport(
            outcome=outcome,
            command=self.command,
            stdout=bytes(self._stdout),
            stderr=bytes(self._stderr),
            request_sent=self._request_sent_at is not None,
            request_sent_at=self._request_sent_at,
            elapsed_seconds=self._finished_at - self._started_at,
            ceiling=self.settings.ceiling,
            returncode=self._process.returncode,
        )

    async def terminate(self) -> None:
        """Stop the process, and on POSIX every process in its group.

        Sends SIGTERM, then SIGKILL after ``kill_grace`` seconds. The group is
        signalled even when the direct child has already exited, since a
        wrapper may exit and leave the server behind. Calling this more than
        once, or before ``run()``, is a no-op.
        """
        process = self._process
        if process is None or self._terminated:
            return
        self._terminated = True

        if not self._signal(process, force=False):
            await process.wait()
            return
        if await self._wait_stopped(process):
            return

        logger.warning("Process %d ignored SIGTERM, sending SIGKILL", process.pid)
        self._signal(process, force=True)
        await process.wait()

    def _signal(self, process: asyncio.subprocess.Process, force: bool) -> bool:
        """Send SIGTERM (or SIGKILL with ``force``). False if nothing was left to signal."""
        try:
            if _PROCESS_GROUPS:
                os.killpg(process.pid, signal.SIGKILL if force else signal.SIGTERM)
            elif process.returncode is not None:
                return False
            elif force:
                process.kill()
            else:
                process.terminate()
        except ProcessLookupError:
            return False
        return True

    async def _wait_stopped(self, process: asyncio.subprocess.Process) -> bool:
        """Wait up to ``kill_grace`` for the child, and its group, to exit."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.settings.kill_grace
        try:
            await asyncio.wait_for(process.wait(), timeout=self.settings.kill_grace)
        except TimeoutError:
            return False
        while _PROCESS_GROUPS and _group_alive(process.pid):
            if loop.time() >= deadline:
                return False
            await asyncio.sleep(_GROUP_POLL_INTERVAL)
        return True

    async def _spawn(self) -> asyncio.subprocess.Process:
        env = self.build_env()
        executable = shutil.which(self.command[0], path=env.get("PATH")) or self.command[0]
        logger.info("Starting %s", " ".join(self.command))
        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *self.command[1:],
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                start_new_session=_PROCESS_GROUPS,
            )
        except OSError as e:
            raise SpawnError(self.command, str(e)) from e
        logger.debug("Spawned pid %d", process.pid)
        return process

    async def _pump(self, stream: asyncio.StreamReader, buffer: bytearray, label: str) -> None:
        while True:
            chunk = await stream.read(self.settings.read_chunk_size)
            if not chunk:
                return
            buffer.extend(chunk)
            logger.info("[%s]: %s", label, chunk.decode("utf-8", errors="replace"))

    def _send_request(self) -> None:
        if self.finished or self._process is None:
            return
        loop = asyncio.get_running_loop()
        logger.info("Sending capability list request")
        self._writer = loop.create_task(self._write_request())
        self._timers.append(
            loop.call_later(self.settings.response_window, self._finish, ProbeOutcome.COMPLETED)
        )

    async def _write_request(self) -> None:
        """Write the request line and wait until the pipe has accepted it."""
        assert self._process is not None
        stdin = self._process.stdin
        if stdin is None or stdin.is_closing():
            logger.warning("Process stdin is closed, request not written")
            return
        try:
            stdin.write(CapabilityListRequest().to_line())
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.warning("Could not write request: %s", e)
            return
        self._request_sent_at = asyncio.get_running_loop().time() - self._started_at

    async def _cancel_writer(self) -> None:
        if self._writer is None or self._writer.done():
            return
        self._writer.cancel()
        await asyncio.gather(self._writer, return_exceptions=True)

    def _finish(self, outcome: ProbeOutcome) -> None:
        """Enter a terminal path. Only the first call has any effect."""
        if self._done is None or self._done.done():
            return
        self._cancel_timers()
        self._finished_at = asyncio.get_running_loop().time()
        self._done.set_result(outcome)

    def _cancel_timers(self) -> None:
        for handle in self._timers:
            handle.cancel()
        self._timers.clear()

    async def _drain_readers(self) -> None:
        if not self._readers:
            return
        done, pending = await asyncio.wait(self._readers, timeout=self.settings.drain_timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.debug("Cancelled %d stream reader(s) still open after teardown", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.warning("Stream reader failed: %s", task.exception())


def _group_alive(pgid: int) -> bool:
    try:
        os.killpg(pgid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # a member we may not signal still counts as running
        pass
    return True
