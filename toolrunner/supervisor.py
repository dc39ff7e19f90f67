"""Launch a wrapped tool, stream its output through a parser and account for the run."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from toolrunner.constants import CANCEL_POLL_INTERVAL
from toolrunner.models import ProcessDescriptor, ProgressEvent, ResolvedTool, RunState
from toolrunner.parsers import BaseParser, get_parser
from toolrunner.registry import ToolRegistry, get_registry
from toolrunner.sinks import ReportSink

logger = logging.getLogger("toolrunner.supervisor")


class SupervisorError(RuntimeError):
    """Raised when a supervised run cannot complete."""

    def __init__(self, message: str, *, command: list[str] | None = None) -> None:
        super().__init__(message)
        self.command = command or []


class ProcessStartError(SupervisorError):
    """The external process could not be spawned."""


class StreamReadError(SupervisorError):
    """Reading the process output failed."""


def format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{int(seconds * 1000)} milliseconds"
    if seconds < 60:
        return f"{seconds:.1f} seconds"
    if seconds < 3600:
        return f"{seconds / 60:.1f} minutes"
    return f"{seconds / 3600:.1f} hours"


class ProcessSupervisor:
    """Own the lifecycle of one external tool invocation at a time.

    ``execute`` runs on an asyncio loop. ``cancel`` and ``terminate`` may be
    called from any thread; the kill itself always happens on the loop that
    owns the process. Cancellation is cooperative: the parser checks the flag
    between lines or tokens and a watchdog kills the process when the flag is
    raised while the parser waits for output.
    """

    def __init__(self, registry: ToolRegistry | None = None) -> None:
        self._registry = registry
        self._process: asyncio.subprocess.Process | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._sink: ReportSink | None = None
        self._terminated = False
        self.state = RunState.PENDING
        self.error: SupervisorError | None = None
        self.returncode: int | None = None
        self.duration_seconds: float | None = None

    @property
    def registry(self) -> ToolRegistry:
        if self._registry is None:
            self._registry = get_registry()
        return self._registry

    def run(self, descriptor: ProcessDescriptor, tool: str, sink: ReportSink) -> RunState:
        """Blocking wrapper around :meth:`execute` for worker threads."""
        return asyncio.run(self.execute(descriptor, tool, sink))

    async def execute(self, descriptor: ProcessDescriptor, tool: str, sink: ReportSink) -> RunState:
        self._sink = sink
        self._terminated = False
        self.error = None
        self.returncode = None
        self.duration_seconds = None
        self.state = RunState.PENDING

        if sink.is_cancelled():
            self.state = RunState.CANCELLED
            return self.state

        resolved = self.registry.resolve(tool)
        parser = get_parser(resolved.kind, **resolved.parser_options)

        try:
            async with self._launch(descriptor) as process:
                start_time = time.monotonic()
                self.state = RunState.RUNNING
                await self._read_output(process, parser, sink)

                if self._is_cancelled():
                    logger.debug("Run of %s cancelled; killing process %s", resolved.name, process.pid)
                    self._kill(process)
                    self.state = RunState.CANCELLED
                    return self.state

                self.returncode = await process.wait()
                self.duration_seconds = time.monotonic() - start_time
                logger.debug("%s exited with status %s", resolved.name, self.returncode)
        except SupervisorError as exc:
            logger.error("Run of %s failed: %s", resolved.name, exc, exc_info=True)
            self.error = exc
            self.state = RunState.FAILED
            sink.append(ProgressEvent(text=str(exc), is_error=True, is_important=True, ends_line=True))
            return self.state
        except asyncio.CancelledError:
            self.state = RunState.CANCELLED
            raise
        except Exception:
            self.state = RunState.FAILED
            raise

        self._report_summary(resolved, descriptor, sink)
        self.state = RunState.COMPLETED
        return self.state

    def cancel(self) -> None:
        """Raise the sink's cancellation flag and kill the process if alive."""

        if self._sink is not None:
            self._sink.cancel()
        self.terminate()

    def terminate(self) -> None:
        """Kill the process if it is still running. Safe to call repeatedly."""

        self._terminated = True
        process, loop = self._process, self._loop
        if process is None or loop is None or process.returncode is not None:
            return

        try:
            running_loop = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None

        if running_loop is loop:
            self._kill(process)
        elif not loop.is_closed():
            loop.call_soon_threadsafe(self._kill, process)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _is_cancelled(self) -> bool:
        return self._terminated or (self._sink is not None and self._sink.is_cancelled())

    @asynccontextmanager
    async def _launch(self, descriptor: ProcessDescriptor) -> AsyncIterator[asyncio.subprocess.Process]:
        command = descriptor.command
        cwd = str(descriptor.working_dir) if descriptor.working_dir else None
        env = os.environ.copy()
        env.update(descriptor.env)

        logger.debug("Executing tool command: %s", " ".join(command))
        if cwd:
            logger.debug("Working directory: %s", cwd)

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT if descriptor.merge_stderr else None,
                cwd=cwd,
                env=env,
            )
        except OSError as exc:
            raise ProcessStartError(f"Failed to start '{descriptor.executable}': {exc}", command=command) from exc

        self._process = process
        self._loop = asyncio.get_running_loop()
        try:
            yield process
        finally:
            if process.returncode is None:
                self._kill(process)
                await process.wait()
            self._process = None
            self._loop = None

    async def _read_output(
        self, process: asyncio.subprocess.Process, parser: BaseParser, sink: ReportSink
    ) -> None:
        watchdog = asyncio.create_task(self._watch_cancellation(process))
        try:
            await parser.parse(process.stdout, sink, self._is_cancelled)
        except OSError as exc:
            raise StreamReadError(f"Failed to read output of process {process.pid}: {exc}") from exc
        finally:
            watchdog.cancel()
            try:
                await watchdog
            except asyncio.CancelledError:
                pass

    async def _watch_cancellation(self, process: asyncio.subprocess.Process) -> None:
        while process.returncode is None:
            if self._is_cancelled():
                self._kill(process)
                return
            await asyncio.sleep(CANCEL_POLL_INTERVAL)

    @staticmethod
    def _kill(process) -> None:
        if process.returncode is not None:
            return
        try:
            process.kill()
        except ProcessLookupError:
            # Exited between the check and the kill.
            pass

    def _report_summary(self, resolved: ResolvedTool, descriptor: ProcessDescriptor, sink: ReportSink) -> None:
        duration = format_duration(self.duration_seconds or 0.0)
        sink.append(ProgressEvent.end_line())
        sink.append(
            ProgressEvent(
                text=f"{resolved.name} finished for {descriptor.file_label} ({duration}).",
                is_important=True,
                ends_line=True,
            )
        )
