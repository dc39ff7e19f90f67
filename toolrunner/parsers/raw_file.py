"""Parser for raw file converters printing percentage tokens."""

from __future__ import annotations

from toolrunner.constants import PERCENT_MAX_VALUE, RAW_FILE_IMPORTANT_SUFFIX, RAW_FILE_PROGRESS_STEP
from toolrunner.models import CounterUpdate
from toolrunner.sinks import ReportSink
from toolrunner.streams import ByteStream, TokenReader

from .base import BaseParser, CancellationCheck


class RawFileParser(BaseParser):
    name = "raw_file_parser"

    def __init__(
        self,
        progress_step: int = RAW_FILE_PROGRESS_STEP,
        important_suffix: str = RAW_FILE_IMPORTANT_SUFFIX,
    ) -> None:
        super().__init__()
        self.progress_step = progress_step
        self.important_suffix = important_suffix

    async def parse(self, stream: ByteStream, sink: ReportSink, is_cancelled: CancellationCheck) -> None:
        self._counter(sink, CounterUpdate.determinate(PERCENT_MAX_VALUE))
        async for token in TokenReader(stream):
            if is_cancelled():
                break
            self.handle_token(token, sink)

    def handle_token(self, token: str, sink: ReportSink) -> None:
        if not token:
            self._end_line(sink)
        elif token.endswith("%"):
            self._counter(sink, CounterUpdate.increment(self.progress_step))
        else:
            self._report(sink, token + " ", important=token.endswith(self.important_suffix))
