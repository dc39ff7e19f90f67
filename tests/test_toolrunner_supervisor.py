import asyncio
from pathlib import Path

import pytest

from toolrunner.models import CounterUpdate, ProcessDescriptor, ProgressEvent, RunState
from toolrunner.registry import ToolRegistry
from toolrunner.sinks import ReportBuffer
from toolrunner.supervisor import (
    ProcessStartError,
    ProcessSupervisor,
    StreamReadError,
    format_duration,
)


class DummyProcess:
    def __init__(self, stdout: bytes = b"", *, returncode: int = 0, hang: bool = False):
        self.stdout = asyncio.StreamReader()
        if stdout:
            self.stdout.feed_data(stdout)
        if not hang:
            self.stdout.feed_eof()
        self._exit_code = returncode
        self.returncode = None
        self.pid = 4242
        self.kill_calls = 0
        self.wait_calls = 0

    def kill(self):
        self.kill_calls += 1
        self.returncode = -9
        self.stdout.feed_eof()

    async def wait(self):
        self.wait_calls += 1
        if self.returncode is None:
            self.returncode = self._exit_code
        return self.returncode


class BrokenStream:
    async def read(self, _n=-1):
        raise ConnectionResetError("pipe closed")

    def feed_eof(self):
        pass


class CancelOnFirstEventSink(ReportBuffer):
    def append(self, event):
        super().append(event)
        self.cancel()


@pytest.fixture()
def supervisor():
    return ProcessSupervisor(registry=ToolRegistry(search_paths=[]))


@pytest.fixture()
def spawn(monkeypatch):
    calls = []

    def install(process):
        async def fake_create_subprocess_exec(*args, **kwargs):
            calls.append((args, kwargs))
            if isinstance(process, Exception):
                raise process
            return process

        monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_create_subprocess_exec)
        return calls

    return install


def _descriptor(**overrides):
    values = {"executable": "tool", "arguments": ["--in", "a.raw"], "file_label": "a.raw"}
    values.update(overrides)
    return ProcessDescriptor(**values)


@pytest.mark.asyncio
async def test_converter_run_completes_with_summary(supervisor, spawn):
    process = DummyProcess(b"processing file: a.raw\nwriting output file: a.mzML\n1/2\n2/2\n")
    calls = spawn(process)
    sink = ReportBuffer()

    state = await supervisor.execute(_descriptor(), "msconvert", sink)

    assert state is RunState.COMPLETED
    assert supervisor.state is RunState.COMPLETED
    assert supervisor.returncode == 0
    assert process.kill_calls == 0

    args, kwargs = calls[0]
    assert args == ("tool", "--in", "a.raw")
    assert kwargs["stderr"] == asyncio.subprocess.STDOUT

    assert [event.text for event in sink.events[:2]] == [
        "processing file: a.raw",
        "writing output file: a.mzML",
    ]
    assert all(event.is_important for event in sink.events[:2])
    assert sink.counter_updates == [CounterUpdate.determinate(100), CounterUpdate.increment()]
    summary = sink.events[-1]
    assert summary.is_important
    assert summary.text.startswith("msconvert finished for a.raw (")
    assert summary.text.endswith(").")


@pytest.mark.asyncio
async def test_already_cancelled_sink_spawns_nothing(supervisor, spawn):
    calls = spawn(AssertionError("process must not be started"))
    sink = ReportBuffer()
    sink.cancel()

    state = await supervisor.execute(_descriptor(), "comet", sink)

    assert state is RunState.CANCELLED
    assert calls == []
    assert sink.events == []


@pytest.mark.asyncio
async def test_start_failure_is_reported_as_failed(supervisor, spawn):
    spawn(FileNotFoundError(2, "No such file or directory"))
    sink = ReportBuffer()

    state = await supervisor.execute(_descriptor(executable="/missing/tool"), "comet", sink)

    assert state is RunState.FAILED
    assert isinstance(supervisor.error, ProcessStartError)
    assert supervisor.error.command[0] == "/missing/tool"
    assert len(sink.errors()) == 1
    assert "finished" not in sink.text


@pytest.mark.asyncio
async def test_tool_reported_error_cancels_and_kills(supervisor, spawn):
    process = DummyProcess(b"<CompomicsError>bad input</CompomicsError>\nmore output\n", hang=True)
    spawn(process)
    sink = ReportBuffer()

    state = await supervisor.execute(_descriptor(), "MS-GF+", sink)

    assert state is RunState.CANCELLED
    assert process.kill_calls == 1
    assert sink.errors() == ["bad input"]
    assert "finished" not in sink.text


@pytest.mark.asyncio
async def test_sink_cancellation_kills_silent_process(supervisor, spawn, monkeypatch):
    monkeypatch.setattr("toolrunner.supervisor.CANCEL_POLL_INTERVAL", 0.01)
    process = DummyProcess(b"line one\n", hang=True)
    spawn(process)
    sink = CancelOnFirstEventSink()

    state = await asyncio.wait_for(supervisor.execute(_descriptor(), "Tide", sink), timeout=5)

    assert state is RunState.CANCELLED
    assert process.kill_calls == 1
    assert sink.events == [ProgressEvent("line one", ends_line=True)]


@pytest.mark.asyncio
async def test_cancel_is_idempotent(supervisor, spawn):
    process = DummyProcess(b"Starting task: Task1SearchTask\n", hang=True)
    spawn(process)
    sink = ReportBuffer()

    task = asyncio.create_task(supervisor.execute(_descriptor(), "MetaMorpheus", sink))
    for _ in range(100):
        if supervisor.state is RunState.RUNNING:
            break
        await asyncio.sleep(0.01)

    supervisor.cancel()
    supervisor.cancel()
    state = await asyncio.wait_for(task, timeout=5)

    assert state is RunState.CANCELLED
    assert sink.is_cancelled()
    assert process.kill_calls == 1
    assert "finished" not in sink.text


@pytest.mark.asyncio
async def test_cancel_from_another_thread(supervisor, spawn):
    process = DummyProcess(hang=True)
    spawn(process)
    sink = ReportBuffer()

    task = asyncio.create_task(supervisor.execute(_descriptor(), "comet", sink))
    for _ in range(100):
        if supervisor.state is RunState.RUNNING:
            break
        await asyncio.sleep(0.01)

    await asyncio.to_thread(supervisor.cancel)
    state = await asyncio.wait_for(task, timeout=5)

    assert state is RunState.CANCELLED
    assert process.kill_calls == 1


@pytest.mark.asyncio
async def test_terminate_alone_prevents_success_summary(supervisor, spawn):
    process = DummyProcess(b"searching\n", hang=True)
    spawn(process)
    sink = ReportBuffer()

    task = asyncio.create_task(supervisor.execute(_descriptor(), "generic", sink))
    for _ in range(100):
        if sink.events:
            break
        await asyncio.sleep(0.01)

    supervisor.terminate()
    state = await asyncio.wait_for(task, timeout=5)

    assert state is RunState.CANCELLED
    assert not sink.is_cancelled()
    assert "finished" not in sink.text


def test_cancel_before_any_run_is_harmless(supervisor):
    supervisor.cancel()
    supervisor.terminate()
    assert supervisor.state is RunState.PENDING


@pytest.mark.asyncio
async def test_stream_error_fails_and_kills(supervisor, spawn):
    process = DummyProcess(hang=True)
    process.stdout = BrokenStream()
    spawn(process)
    sink = ReportBuffer()

    state = await supervisor.execute(_descriptor(), "msconvert", sink)

    assert state is RunState.FAILED
    assert isinstance(supervisor.error, StreamReadError)
    assert process.kill_calls == 1
    assert "finished" not in sink.text


@pytest.mark.asyncio
async def test_descriptor_controls_environment_and_stderr(supervisor, spawn, tmp_path):
    calls = spawn(DummyProcess(b"ok\n", returncode=3))
    descriptor = _descriptor(working_dir=Path(tmp_path), merge_stderr=False, env={"TOOL_HOME": "/opt/tool"})
    sink = ReportBuffer()

    state = await supervisor.execute(descriptor, "unknown-tool", sink)

    _, kwargs = calls[0]
    assert kwargs["stderr"] is None
    assert kwargs["cwd"] == str(tmp_path)
    assert kwargs["env"]["TOOL_HOME"] == "/opt/tool"
    assert state is RunState.COMPLETED
    assert supervisor.returncode == 3
    assert sink.events[0] == ProgressEvent("ok", ends_line=True)
    assert sink.events[-1].text.startswith("unknown-tool finished for a.raw")


@pytest.mark.parametrize(
    "seconds, expected",
    [
        (0.25, "250 milliseconds"),
        (12.34, "12.3 seconds"),
        (90, "1.5 minutes"),
        (5400, "1.5 hours"),
    ],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected
