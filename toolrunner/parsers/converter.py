"""Parser for converters printing ``current/max`` progress after a setup phase."""

from __future__ import annotations

import math

from toolrunner.constants import (
    CONVERTER_PROGRESS_STRIDE,
    PERCENT_MAX_VALUE,
    PROCESSING_FILE_PREFIX,
    WRITING_OUTPUT_PREFIX,
)
from toolrunner.models import CounterUpdate
from toolrunner.sinks import ReportSink
from toolrunner.streams import ByteStream, LineReader

from .base import BaseParser, CancellationCheck


class ConverterProgressParser(BaseParser):
    """Report the setup lines, then turn ``n/total`` lines into counter ticks.

    Each tick stands for one percent. A tick is emitted when the floored
    percentage of the current value differs from that of the value one
    ``progress_stride`` earlier, which keeps the counter in step with tools
    that print every unit as well as with tools that print coarse steps.
    """

    name = "converter_progress"

    def __init__(
        self,
        progress_stride: int = CONVERTER_PROGRESS_STRIDE,
        processing_prefix: str = PROCESSING_FILE_PREFIX,
        writing_prefix: str = WRITING_OUTPUT_PREFIX,
    ) -> None:
        super().__init__()
        self.progress_stride = progress_stride
        self.processing_prefix = processing_prefix
        self.writing_prefix = writing_prefix
        self.progress_started = False

    async def parse(self, stream: ByteStream, sink: ReportSink, is_cancelled: CancellationCheck) -> None:
        async for line in LineReader(stream):
            if is_cancelled():
                break
            self.handle_line(line, sink)

    def handle_line(self, line: str, sink: ReportSink) -> None:
        if line.startswith(self.processing_prefix) or line.startswith(self.writing_prefix):
            self._report(sink, line, important=True, ends_line=True)
            if line.startswith(self.writing_prefix):
                self.progress_started = True
                self._counter(sink, CounterUpdate.determinate(PERCENT_MAX_VALUE))
            return

        if not self.progress_started or "/" not in line:
            return

        progress = parse_fraction(line)
        if progress is None:
            return

        current, total = progress
        previous_percentage = math.floor((current - self.progress_stride) / total * 100)
        current_percentage = math.floor(current / total * 100)
        if current != 1 and previous_percentage != current_percentage:
            self._counter(sink, CounterUpdate.increment())


def parse_fraction(line: str) -> tuple[int, int] | None:
    """Parse ``"<int>/<int>"``; anything else (including a zero total) gives ``None``."""

    parts = line.split("/")
    try:
        current = int(parts[0].strip())
        total = int(parts[1].strip())
    except (IndexError, ValueError):
        return None
    if total <= 0:
        return None
    return current, total
