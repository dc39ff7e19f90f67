"""Parser for multi-task search engines that print bare percentage numerals."""

from __future__ import annotations

import re

from toolrunner.constants import MAX_CONSECUTIVE_EMPTY_LINES, PERCENT_MAX_VALUE
from toolrunner.models import CounterUpdate, MultiTaskMarkers
from toolrunner.sinks import ReportSink
from toolrunner.streams import ByteStream, TokenReader

from .base import BaseParser, CancellationCheck

PERCENT_TOKEN = re.compile(r"[1-9]?\d|100")


class MultiTaskParser(BaseParser):
    """Infer progress from numerals printed between task marker phrases.

    The tool prints no label in front of its percentages, so a numeral is only
    counted while output is not being ignored. Reaching 99 or 100 ends a
    task's progress run and mutes everything until the next task finishes.
    Marker phrases can span several tokens, so recent tokens are kept in a
    small text window that is cleared on every match and trimmed to the
    longest marker otherwise.
    """

    name = "multi_task"

    def __init__(self, markers: MultiTaskMarkers | dict | None = None) -> None:
        super().__init__()
        if markers is None:
            markers = MultiTaskMarkers()
        elif isinstance(markers, dict):
            markers = MultiTaskMarkers.model_validate(markers)
        self.markers = markers
        self._window_size = max(len(phrase) for phrase in markers.phrases()) + 1

        self.recent_text = ""
        self.ignore_output = False
        self.counting_progress = False
        self.final_task_started = False
        self.empty_tokens = 0

    async def parse(self, stream: ByteStream, sink: ReportSink, is_cancelled: CancellationCheck) -> None:
        self._counter(sink, CounterUpdate.determinate(PERCENT_MAX_VALUE))
        async for token in TokenReader(stream):
            if is_cancelled():
                break
            self.handle_token(token, sink)

    def handle_token(self, token: str, sink: ReportSink) -> None:
        if not self.counting_progress:
            token = self._match_markers(token, sink)

        if self.ignore_output:
            return

        if not token:
            self.empty_tokens += 1
            if self.empty_tokens <= MAX_CONSECUTIVE_EMPTY_LINES:
                self._end_line(sink)
            return

        self.empty_tokens = 0
        if PERCENT_TOKEN.fullmatch(token):
            self._count(int(token), sink)
        else:
            self._report(sink, token + " ")

    def _match_markers(self, token: str, sink: ReportSink) -> str:
        markers = self.markers
        self.recent_text += token + " "

        if markers.primary_task_start in self.recent_text:
            self.recent_text = ""
            self._counter(sink, CounterUpdate.maximum(markers.boosted_max_value))
        elif markers.primary_task_finish in self.recent_text:
            self.recent_text = ""
            self.ignore_output = False
            token = markers.primary_task_finish
        elif any(phrase in self.recent_text for phrase in markers.final_task_starts):
            self.recent_text = ""
            self.final_task_started = True
        else:
            self.recent_text = self.recent_text[-self._window_size :]
        return token

    def _count(self, value: int, sink: ReportSink) -> None:
        self._counter(sink, CounterUpdate.increment())
        self.counting_progress = True

        if value in (99, 100):
            self.counting_progress = False
            self.ignore_output = True
            if self.final_task_started:
                self._counter(sink, CounterUpdate.indeterminate())
                self._report(sink, self.markers.writing_output_message, important=True)
