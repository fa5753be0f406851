# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Configuration sources and layered loading for solbuild projects."""

from __future__ import annotations

import logging
import os
import re
import tomllib
from collections.abc import Mapping, MutableMapping
from pathlib import Path
from typing import Any, Final

from pydantic import ValidationError

from ..errors import ConfigError, RemappingError
from ..resolver.remappings import REMAPPINGS_FILENAME, parse_remapping, read_remappings_file
from .models import Config

LOGGER = logging.getLogger(__name__)

CONFIG_FILENAME: Final[str] = "solbuild.toml"
PYPROJECT_FILENAME: Final[str] = "pyproject.toml"
PYPROJECT_TOOL_KEY: Final[str] = "tool"
PYPROJECT_SECTION_KEY: Final[str] = "solbuild"
_ENV_VAR_PATTERN: Final[re.Pattern[str]] = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _expand_env_value(value: Any, env: Mapping[str, str]) -> Any:
    if isinstance(value, str):
        return _expand_env_string(value, env)
    if isinstance(value, Mapping):
        return {key: _expand_env_value(item, env) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env_value(item, env) for item in value]
    return value


def _expand_env_string(value: str, env: Mapping[str, str]) -> str:
    def _replace(match: re.Match[str]) -> str:
        key = match.group(1) or match.group(2)
        return env.get(key, match.group(0))

    return _ENV_VAR_PATTERN.sub(_replace, value)


class TomlConfigSource:
    """Load configuration data from a TOML document."""

    def __init__(self, path: Path, *, env: Mapping[str, str] | None = None) -> None:
        self.path = path
        self._env = env if env is not None else os.environ

    def load(self) -> dict[str, Any]:
        """Return the document as a mapping; a missing file yields ``{}``.

        Raises:
            ConfigError: If the file is not valid TOML.
        """

        if not self.path.is_file():
            return {}
        try:
            with self.path.open("rb") as handle:
                data = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML in {self.path}: {exc}") from exc
        if not isinstance(data, MutableMapping):
            raise ConfigError(f"Configuration at {self.path} must be a table")
        return _expand_env_value(dict(data), self._env)

    def describe(self) -> str:
        return f"TOML configuration at {self.path}"


class PyProjectConfigSource(TomlConfigSource):
    """Read configuration from ``[tool.solbuild]`` within ``pyproject.toml``."""

    def load(self) -> dict[str, Any]:
        data = super().load()
        tool_section = data.get(PYPROJECT_TOOL_KEY)
        if not isinstance(tool_section, Mapping):
            return {}
        section = tool_section.get(PYPROJECT_SECTION_KEY)
        if not isinstance(section, Mapping):
            return {}
        return dict(section)

    def describe(self) -> str:
        return f"pyproject.toml ({self.path})"


def _merge_remappings_file(data: dict[str, Any], root: Path) -> dict[str, Any]:
    """Append ``remappings.txt`` entries whose prefix is not configured already."""

    path = root / REMAPPINGS_FILENAME
    if not path.is_file():
        return data
    compiler = dict(data.get("compiler") or {})
    configured = list(compiler.get("remappings") or [])
    try:
        known = {parse_remapping(entry).prefix for entry in configured}
        entries = read_remappings_file(path)
        extra = [entry for entry in entries if parse_remapping(entry).prefix not in known]
    except RemappingError as exc:
        raise ConfigError(f"{path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"unable to read {path}: {exc}") from exc
    skipped = len(entries) - len(extra)
    if skipped:
        LOGGER.debug("%d remapping(s) in %s overridden by configuration", skipped, path)
    compiler["remappings"] = [*configured, *extra]
    return {**data, "compiler": compiler}


def load_config(
    root: Path,
    *,
    config_file: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Config:
    """Load the configuration of the project at ``root``.

    Sources are applied in increasing precedence: built-in defaults,
    ``[tool.solbuild]`` in ``pyproject.toml``, ``solbuild.toml`` (or
    ``config_file``), then ``overrides``. Remappings listed in
    ``remappings.txt`` are appended unless their prefix is configured.

    Args:
        root: Project root; relative paths in the configuration anchor here.
        config_file: Explicit configuration file replacing ``solbuild.toml``.
        overrides: Programmatic overrides merged last.

    Returns:
        Config: Validated configuration.

    Raises:
        ConfigError: If any source is unreadable or fails validation.
    """

    project_root = root.expanduser().resolve()
    if config_file is not None and not config_file.is_file():
        raise ConfigError(f"configuration file {config_file} does not exist")
    sources = [
        PyProjectConfigSource(project_root / PYPROJECT_FILENAME),
        TomlConfigSource(config_file or project_root / CONFIG_FILENAME),
    ]
    data: dict[str, Any] = {}
    for source in sources:
        fragment = source.load()
        if fragment:
            LOGGER.debug("applying %s", source.describe())
            data = _deep_merge(data, fragment)
    if overrides:
        data = _deep_merge(data, overrides)
    data = _merge_remappings_file(data, project_root)
    paths = dict(data.get("paths") or {})
    paths["root"] = project_root
    data["paths"] = paths
    try:
        return Config.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"invalid solbuild configuration: {exc}") from exc


__all__ = [
    "CONFIG_FILENAME",
    "PyProjectConfigSource",
    "TomlConfigSource",
    "load_config",
]
