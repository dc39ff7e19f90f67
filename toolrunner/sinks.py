"""Report sinks receiving progress events from a supervised run."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from toolrunner.models import CounterMode, CounterUpdate, ProgressEvent

logger = logging.getLogger("toolrunner.report")


@runtime_checkable
class ReportSink(Protocol):
    """Consumer of progress events; also owns the run's cancellation flag."""

    def append(self, event: ProgressEvent) -> None: ...

    def update_counter(self, update: CounterUpdate) -> None: ...

    def is_cancelled(self) -> bool: ...

    def cancel(self) -> None: ...


@dataclass
class CounterState:
    mode: CounterMode = CounterMode.INDETERMINATE
    value: int = 0
    max_value: int = 0

    def apply(self, update: CounterUpdate) -> None:
        if update.mode is not None:
            self.mode = update.mode
        if update.reset:
            self.value = 0
        if update.max_value is not None:
            self.max_value = update.max_value
        if update.delta is not None:
            self.value += update.delta


class ReportBuffer:
    """Thread-safe in-memory sink.

    Events and counter updates are kept in arrival order. ``cancel`` may be
    called from any thread; it takes the same lock as ``append`` so a
    cancellation never interleaves with an event being recorded.
    """

    def __init__(self, *, mirror_to_log: bool = False) -> None:
        self._lock = threading.Lock()
        self._cancelled = threading.Event()
        self._mirror = mirror_to_log
        self.events: list[ProgressEvent] = []
        self.counter_updates: list[CounterUpdate] = []
        self.counter = CounterState()

    def append(self, event: ProgressEvent) -> None:
        with self._lock:
            self.events.append(event)
        if self._mirror and event.text.strip():
            if event.is_error:
                logger.error(event.text.strip())
            elif event.is_important:
                logger.info(event.text.strip())
            else:
                logger.debug(event.text.strip())

    def update_counter(self, update: CounterUpdate) -> None:
        with self._lock:
            self.counter_updates.append(update)
            self.counter.apply(update)

    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        with self._lock:
            self._cancelled.set()

    @property
    def text(self) -> str:
        """The report as it would be displayed."""

        with self._lock:
            return "".join(event.render() for event in self.events)

    def errors(self) -> list[str]:
        with self._lock:
            return [event.text for event in self.events if event.is_error]
