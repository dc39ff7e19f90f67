"""Runtime structures and pydantic configuration models for toolrunner."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator


class ToolKind(str, Enum):
    """Output parsing strategies available to wrapped tools."""

    GENERIC = "generic"
    COMET = "comet"
    CONVERTER_PROGRESS = "converter_progress"
    RAW_FILE_PARSER = "raw_file_parser"
    MULTI_TASK = "multi_task"


class RunState(str, Enum):
    """Lifecycle of one supervised process invocation."""

    PENDING = "pending"
    RUNNING = "running"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.CANCELLED, RunState.COMPLETED, RunState.FAILED)


class CounterMode(str, Enum):
    DETERMINATE = "determinate"
    INDETERMINATE = "indeterminate"


@dataclass(frozen=True)
class ProcessDescriptor:
    """Everything needed to launch one external tool."""

    executable: str
    arguments: Sequence[str] = ()
    working_dir: Path | None = None
    merge_stderr: bool = True
    env: dict[str, str] = field(default_factory=dict)
    file_label: str = ""

    def __post_init__(self) -> None:
        # Freeze the argument order handed in by the caller.
        object.__setattr__(self, "arguments", tuple(str(arg) for arg in self.arguments))

    @property
    def command(self) -> list[str]:
        return [self.executable, *self.arguments]


@dataclass(frozen=True)
class ProgressEvent:
    """One unit of report text derived from tool output."""

    text: str
    is_error: bool = False
    is_important: bool = False
    ends_line: bool = False

    @classmethod
    def end_line(cls) -> ProgressEvent:
        return cls(text="", ends_line=True)

    def render(self) -> str:
        return self.text + ("\n" if self.ends_line else "")


@dataclass(frozen=True)
class CounterUpdate:
    """Change to the secondary progress counter.

    ``mode`` of ``None`` leaves the current mode untouched. When ``reset`` is
    set the value returns to zero before ``max_value`` and ``delta`` apply.
    """

    mode: CounterMode | None = None
    reset: bool = False
    max_value: int | None = None
    delta: int | None = None

    @classmethod
    def determinate(cls, max_value: int) -> CounterUpdate:
        return cls(mode=CounterMode.DETERMINATE, reset=True, max_value=max_value)

    @classmethod
    def indeterminate(cls) -> CounterUpdate:
        return cls(mode=CounterMode.INDETERMINATE)

    @classmethod
    def maximum(cls, max_value: int) -> CounterUpdate:
        return cls(max_value=max_value)

    @classmethod
    def increment(cls, delta: int = 1) -> CounterUpdate:
        return cls(delta=delta)


class MultiTaskMarkers(BaseModel):
    """Marker phrases that delimit tasks in multi-task tool output.

    These track the wording of one upstream tool release; pin them in a tool
    definition file so that a wording change only needs a configuration update.
    """

    version: str | None = Field(default=None, description="Tool release the phrases were taken from.")
    primary_task_start: str = Field(
        default="Starting task: Task1GptmdTask",
        description="Phrase that raises the counter maximum for a two-task run.",
    )
    primary_task_finish: str = Field(
        default="Finished task: Task1GptmdTask",
        description="Phrase that resumes output after the first task.",
    )
    final_task_starts: list[str] = Field(
        default_factory=lambda: ["Starting task: Task1SearchTask", "Starting task: Task2SearchTask"],
        description="Phrases announcing the task whose completion means output writing has begun.",
    )
    boosted_max_value: int = Field(default=200, gt=0)
    writing_output_message: str = Field(default="Writing MetaMorpheus output.")

    @field_validator("final_task_starts", mode="before")
    @classmethod
    def _ensure_list(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, list):
            return [str(item) for item in value]
        if isinstance(value, str):
            return [value]
        raise TypeError("final_task_starts must be a list of strings or a single string")

    def phrases(self) -> list[str]:
        return [self.primary_task_start, self.primary_task_finish, *self.final_task_starts]


class ToolConfig(BaseModel):
    """Raw tool definition loaded from JSON."""

    name: str
    aliases: list[str] = Field(default_factory=list)
    parser: str | None = None
    parser_options: dict[str, Any] = Field(default_factory=dict)
    markers: MultiTaskMarkers | None = None

    @field_validator("aliases", mode="before")
    @classmethod
    def _ensure_aliases(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, list):
            return [str(item) for item in value]
        if isinstance(value, str):
            return [value]
        raise TypeError("aliases must be a list of strings or a single string")


class ResolvedTool(BaseModel):
    """Tool definition after defaults have been applied."""

    name: str
    kind: ToolKind
    parser_options: dict[str, Any] = Field(default_factory=dict)
