"""Parser interfaces for live tool output."""

from __future__ import annotations

import logging
from collections.abc import Callable

from toolrunner.models import CounterUpdate, ProgressEvent
from toolrunner.sinks import ReportSink
from toolrunner.streams import ByteStream

CancellationCheck = Callable[[], bool]


class ParserError(RuntimeError):
    """Raised when no parser can be built for a requested strategy."""


class BaseParser:
    """Base interface for output parsers.

    A parser instance holds the state of a single run. ``parse`` consumes the
    stream until EOF or until ``is_cancelled`` reports true; the check happens
    after each line or token is read and before it is reported.
    """

    name: str = "base"

    def __init__(self) -> None:
        self._logger = logging.getLogger(f"toolrunner.parser.{self.name}")

    async def parse(self, stream: ByteStream, sink: ReportSink, is_cancelled: CancellationCheck) -> None:
        raise NotImplementedError("Parsers must implement parse()")

    # ------------------------------------------------------------------
    # Reporting helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _report(
        sink: ReportSink,
        text: str,
        *,
        important: bool = False,
        error: bool = False,
        ends_line: bool = False,
    ) -> None:
        sink.append(ProgressEvent(text=text, is_error=error, is_important=important, ends_line=ends_line))

    @staticmethod
    def _end_line(sink: ReportSink) -> None:
        sink.append(ProgressEvent.end_line())

    @staticmethod
    def _counter(sink: ReportSink, update: CounterUpdate) -> None:
        sink.update_counter(update)
