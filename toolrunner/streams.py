"""Incremental line and token readers over a live process output stream."""

from __future__ import annotations

import codecs
import re
from collections import deque
from typing import Protocol

from toolrunner.constants import DEFAULT_CHUNK_SIZE, LINE_DELIMITER, WHITESPACE_DELIMITER


class ByteStream(Protocol):
    async def read(self, n: int = -1) -> bytes: ...


class SegmentReader:
    """Split a byte stream into text segments on a delimiter pattern.

    Segments are produced as soon as the delimiter that closes them has been
    read, so callers see output while the process is still running. Every
    delimiter ends exactly one segment, which means two adjacent delimiters
    produce an empty segment. A delimiter listed in ``hold_back`` that ends
    the buffered text waits for the next read, since it may be the first half
    of a longer delimiter (``\\r`` before ``\\n``).
    """

    def __init__(
        self,
        stream: ByteStream,
        delimiter: re.Pattern[str],
        *,
        skip_leading_delimiter: bool = False,
        hold_back: tuple[str, ...] = (),
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        encoding: str = "utf-8",
    ) -> None:
        self._stream = stream
        self._delimiter = delimiter
        self._skip_leading = skip_leading_delimiter
        self._hold_back = hold_back
        self._chunk_size = chunk_size
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self._pending: deque[str] = deque()
        self._eof = False

    def __aiter__(self) -> SegmentReader:
        return self

    async def __anext__(self) -> str:
        segment = await self.read_segment()
        if segment is None:
            raise StopAsyncIteration
        return segment

    async def read_segment(self) -> str | None:
        """Return the next segment, or ``None`` once the stream is exhausted."""

        while not self._pending:
            if self._eof:
                return None
            await self._fill()
        return self._pending.popleft()

    async def _fill(self) -> None:
        chunk = await self._stream.read(self._chunk_size)
        self._eof = not chunk
        self._buffer += self._decoder.decode(chunk, final=self._eof)
        self._split()

    def _split(self) -> None:
        buffer = self._buffer
        position = 0

        if self._skip_leading and buffer:
            leading = self._delimiter.match(buffer)
            if leading is None:
                self._skip_leading = False
            elif not self._is_held(leading, buffer):
                position = leading.end()
                self._skip_leading = False
            else:
                return

        for match in self._delimiter.finditer(buffer, position):
            if self._is_held(match, buffer):
                break
            self._pending.append(buffer[position : match.start()])
            position = match.end()

        self._buffer = buffer[position:]
        if self._eof and self._buffer:
            self._pending.append(self._buffer)
            self._buffer = ""

    def _is_held(self, match: re.Match[str], buffer: str) -> bool:
        return not self._eof and match.end() == len(buffer) and match.group() in self._hold_back


class LineReader(SegmentReader):
    """Yield lines terminated by ``\\n``, ``\\r`` or ``\\r\\n``, without the terminator."""

    def __init__(self, stream: ByteStream, **kwargs) -> None:
        kwargs.setdefault("hold_back", ("\r",))
        super().__init__(stream, LINE_DELIMITER, **kwargs)


class TokenReader(SegmentReader):
    """Scanner-style tokens: one leading delimiter is skipped, adjacent delimiters yield ``""``."""

    def __init__(self, stream: ByteStream, delimiter: re.Pattern[str] = WHITESPACE_DELIMITER, **kwargs) -> None:
        kwargs.setdefault("skip_leading_delimiter", True)
        super().__init__(stream, delimiter, **kwargs)
