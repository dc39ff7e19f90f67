"""Parser for Comet console output, which redraws percentages in place."""

from __future__ import annotations

from toolrunner.constants import COMET_DELIMITER
from toolrunner.sinks import ReportSink
from toolrunner.streams import ByteStream, TokenReader

from .base import BaseParser, CancellationCheck


class CometParser(BaseParser):
    name = "comet"

    def __init__(self) -> None:
        super().__init__()
        self.last_token = ""

    async def parse(self, stream: ByteStream, sink: ReportSink, is_cancelled: CancellationCheck) -> None:
        async for token in TokenReader(stream, COMET_DELIMITER):
            if is_cancelled():
                break
            self.handle_token(token, sink)

    def handle_token(self, token: str, sink: ReportSink) -> None:
        # Redraws repeat (part of) the previous token; only new text is reported.
        if token not in self.last_token:
            important = "%" not in token or "100%" in token
            self._report(sink, token + " ", important=important)
        self.last_token = token
