"""Configuration registry for wrapped tool definitions."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path

from pydantic import ValidationError

from toolrunner.constants import CONFIG_DIR, USER_CONFIG_DIR
from toolrunner.models import ResolvedTool, ToolConfig, ToolKind
from toolrunner.parsers import classify
from utils.env import get_env

logger = logging.getLogger("toolrunner.registry")

CONFIG_ENV_VAR = "TOOLRUNNER_TOOLS_CONFIG_PATH"


class RegistryLoadError(RuntimeError):
    """Raised when configuration files are invalid or missing critical data."""


class ToolRegistry:
    """Loads tool definitions and resolves tool names to parsing strategies.

    Tools without a definition still resolve: their kind comes from
    :func:`toolrunner.parsers.classify`, so unknown tools get the generic parser.
    """

    def __init__(self, search_paths: Iterable[Path] | None = None) -> None:
        self._search_paths = list(search_paths) if search_paths is not None else None
        self._tools: dict[str, ResolvedTool] = {}
        self._aliases: dict[str, str] = {}
        self._load()

    def _load(self) -> None:
        self._tools.clear()
        self._aliases.clear()
        for config_path in self._iter_config_files():
            try:
                data = json.loads(config_path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                raise RegistryLoadError(f"Invalid JSON in {config_path}: {exc}") from exc

            if not data:
                logger.debug("Skipping empty configuration file: %s", config_path)
                continue

            try:
                config = ToolConfig.model_validate(data)
            except ValidationError as exc:
                raise RegistryLoadError(f"Invalid tool definition in {config_path}: {exc}") from exc

            resolved = self._resolve_config(config, source_path=config_path)
            key = resolved.name.lower()
            if key in self._tools:
                logger.info("Overriding tool definition for '%s' from %s", resolved.name, config_path)
            else:
                logger.debug("Loaded tool definition for '%s' from %s", resolved.name, config_path)
            self._tools[key] = resolved
            for alias in config.aliases:
                self._aliases[alias.strip().lower()] = key

    def reload(self) -> None:
        """Reload definitions from disk."""
        self._load()

    def list_tools(self) -> list[str]:
        return sorted(tool.name for tool in self._tools.values())

    def resolve(self, tool: str) -> ResolvedTool:
        key = tool.strip().lower()
        key = self._aliases.get(key, key)
        if key in self._tools:
            return self._tools[key]
        return ResolvedTool(name=tool, kind=classify(tool))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _iter_config_files(self) -> Iterable[Path]:
        if self._search_paths is not None:
            search_paths = self._search_paths
        else:
            search_paths = [CONFIG_DIR]

            env_path_raw = get_env(CONFIG_ENV_VAR)
            if env_path_raw:
                search_paths.append(Path(env_path_raw).expanduser())

            search_paths.append(USER_CONFIG_DIR)

        seen: set[Path] = set()

        for base in search_paths:
            if base in seen:
                continue
            seen.add(base)

            if base.is_file() and base.suffix.lower() == ".json":
                yield base
                continue

            if base.is_dir():
                for path in sorted(base.glob("*.json")):
                    if path.is_file():
                        yield path
            else:
                logger.debug("Configuration path does not exist: %s", base)

    def _resolve_config(self, raw: ToolConfig, *, source_path: Path) -> ResolvedTool:
        name = raw.name.strip()
        if not name:
            raise RegistryLoadError(f"Tool definition at {source_path} is missing a 'name' field")

        if raw.parser:
            try:
                kind = ToolKind(raw.parser.strip().lower())
            except ValueError as exc:
                raise RegistryLoadError(f"Tool '{name}' uses unknown parser '{raw.parser}'") from exc
        else:
            kind = classify(name)

        options = dict(raw.parser_options)
        if raw.markers is not None:
            if kind is not ToolKind.MULTI_TASK:
                raise RegistryLoadError(f"Tool '{name}' defines markers but uses the '{kind.value}' parser")
            options["markers"] = raw.markers

        return ResolvedTool(name=name, kind=kind, parser_options=options)


_REGISTRY: ToolRegistry | None = None


def get_registry() -> ToolRegistry:
    global _REGISTRY
    if _REGISTRY is None:
        _REGISTRY = ToolRegistry()
    return _REGISTRY


def reset_registry() -> None:
    global _REGISTRY
    _REGISTRY = None
