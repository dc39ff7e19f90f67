"""Parser registry for toolrunner."""

from __future__ import annotations

from typing import Any

from toolrunner.constants import BUILTIN_TOOL_KINDS
from toolrunner.models import ToolKind

from .base import BaseParser, CancellationCheck, ParserError
from .comet import CometParser
from .converter import ConverterProgressParser
from .generic import GenericParser
from .multi_task import MultiTaskParser
from .raw_file import RawFileParser

_PARSER_CLASSES: dict[ToolKind, type[BaseParser]] = {
    ToolKind.GENERIC: GenericParser,
    ToolKind.COMET: CometParser,
    ToolKind.CONVERTER_PROGRESS: ConverterProgressParser,
    ToolKind.RAW_FILE_PARSER: RawFileParser,
    ToolKind.MULTI_TASK: MultiTaskParser,
}


def classify(tool: str | ToolKind | None) -> ToolKind:
    """Map a tool name (or kind value) to its parsing strategy.

    Unknown names fall back to the generic parser.
    """

    if isinstance(tool, ToolKind):
        return tool
    normalized = (tool or "").strip().lower()
    if normalized in BUILTIN_TOOL_KINDS:
        return BUILTIN_TOOL_KINDS[normalized]
    try:
        return ToolKind(normalized)
    except ValueError:
        return ToolKind.GENERIC


def get_parser(kind: ToolKind | str, **options: Any) -> BaseParser:
    """Build a fresh parser for ``kind``; ``options`` go to its constructor."""

    try:
        parser_kind = ToolKind(kind)
    except ValueError as exc:
        raise ParserError(f"No parser registered for '{kind}'") from exc
    parser_cls = _PARSER_CLASSES[parser_kind]
    try:
        return parser_cls(**options)
    except TypeError as exc:
        raise ParserError(f"Invalid options for parser '{parser_kind.value}': {exc}") from exc


__all__ = [
    "BaseParser",
    "CancellationCheck",
    "CometParser",
    "ConverterProgressParser",
    "GenericParser",
    "MultiTaskParser",
    "ParserError",
    "RawFileParser",
    "classify",
    "get_parser",
]
