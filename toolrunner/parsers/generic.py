"""Pass-through parser that detects errors reported inside marker tags."""

from __future__ import annotations

from toolrunner.constants import DEFAULT_ERROR_TAG
from toolrunner.sinks import ReportSink
from toolrunner.streams import ByteStream, LineReader

from .base import BaseParser, CancellationCheck


class GenericParser(BaseParser):
    """Echo every line; a tagged error line cancels the run."""

    name = "generic"

    def __init__(self, error_tag: str = DEFAULT_ERROR_TAG) -> None:
        super().__init__()
        self.start_tag = f"<{error_tag}>"
        self.end_tag = f"</{error_tag}>"

    async def parse(self, stream: ByteStream, sink: ReportSink, is_cancelled: CancellationCheck) -> None:
        async for line in LineReader(stream):
            if is_cancelled():
                break

            message = self.extract_error(line)
            if message is None:
                self._report(sink, line, ends_line=True)
                continue

            self._logger.debug("Tool reported an error: %s", message)
            self._end_line(sink)
            self._report(sink, message, error=True, important=True, ends_line=True)
            sink.cancel()

    def extract_error(self, line: str) -> str | None:
        """Return the text wrapped in the error tags, or ``None`` for ordinary lines."""

        start = line.find(self.start_tag)
        if start == -1:
            return None
        inner_start = start + len(self.start_tag)
        end = line.find(self.end_tag, inner_start)
        if end == -1:
            return line[inner_start:]
        return line[inner_start:end]
