"""Internal defaults and constants for toolrunner."""

from __future__ import annotations

import re
from pathlib import Path

from toolrunner.models import ToolKind

DEFAULT_CHUNK_SIZE = 4096
CANCEL_POLL_INTERVAL = 0.2  # seconds between cancellation checks while reading

PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_DIR = PROJECT_ROOT / "conf" / "tools"
USER_CONFIG_DIR = Path.home() / ".toolrunner" / "tools"

LINE_DELIMITER = re.compile(r"\r\n|\r|\n")
WHITESPACE_DELIMITER = re.compile(r"\s|\n")
# Comet redraws its progress in place with backspaces.
COMET_DELIMITER = re.compile(r"\n|\x08 ")

DEFAULT_ERROR_TAG = "CompomicsError"
PROCESSING_FILE_PREFIX = "processing file:"
WRITING_OUTPUT_PREFIX = "writing output file:"
CONVERTER_PROGRESS_STRIDE = 100
RAW_FILE_PROGRESS_STEP = 10
RAW_FILE_IMPORTANT_SUFFIX = "scans"
PERCENT_MAX_VALUE = 100
MAX_CONSECUTIVE_EMPTY_LINES = 2

BUILTIN_TOOL_KINDS: dict[str, ToolKind] = {
    "comet": ToolKind.COMET,
    "msconvert": ToolKind.CONVERTER_PROGRESS,
    "thermorawfileparser": ToolKind.RAW_FILE_PARSER,
    "metamorpheus": ToolKind.MULTI_TASK,
}
