"""Public helpers for toolrunner components."""

from __future__ import annotations

from .models import CounterMode, CounterUpdate, ProcessDescriptor, ProgressEvent, RunState, ToolKind
from .parsers import classify, get_parser
from .registry import ToolRegistry, get_registry
from .sinks import ReportBuffer, ReportSink
from .supervisor import ProcessStartError, ProcessSupervisor, StreamReadError, SupervisorError

__all__ = [
    "CounterMode",
    "CounterUpdate",
    "ProcessDescriptor",
    "ProcessStartError",
    "ProcessSupervisor",
    "ProgressEvent",
    "ReportBuffer",
    "ReportSink",
    "RunState",
    "StreamReadError",
    "SupervisorError",
    "ToolKind",
    "ToolRegistry",
    "classify",
    "get_parser",
    "get_registry",
]
