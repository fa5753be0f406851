# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration models for the solbuild compilation pipeline."""

from __future__ import annotations

import math
import os
from enum import Enum
from pathlib import Path
from typing import Any, Final

from packaging.version import InvalidVersion, Version
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import RemappingError
from ..resolver.remappings import RemappingSet, parse_remapping

DEFAULT_OUTPUT_SELECTION: Final[dict[str, dict[str, list[str]]]] = {
    "*": {
        "*": ["abi", "evm.bytecode", "evm.deployedBytecode", "metadata"],
        "": ["ast"],
    },
}
# 1878: "SPDX license identifier not provided in source file."
DEFAULT_IGNORED_ERROR_CODES: Final[tuple[int, ...]] = (1878,)


class UnconstrainedPolicy(str, Enum):
    """Enumerate strategies for sources that declare no version pragma."""

    CONFIGURED = "configured"
    LATEST_INSTALLED = "latest-installed"
    LATEST_KNOWN = "latest-known"


def default_parallel_jobs() -> int:
    """Return a CPU count scaled down for concurrent compiler processes.

    Returns:
        int: Roughly 75% of available CPU cores, never less than one.
    """

    cores = os.cpu_count() or 1
    return max(1, math.floor(cores * 0.75))


class PathsConfig(BaseModel):
    """Locations of sources, libraries, cache and artifacts."""

    model_config = ConfigDict(validate_assignment=True)

    root: Path = Field(default_factory=Path)
    sources: list[Path] = Field(default_factory=lambda: [Path("contracts")])
    libraries: list[Path] = Field(default_factory=lambda: [Path("lib"), Path("node_modules")])
    excludes: list[Path] = Field(default_factory=list)
    cache_dir: Path = Path(".solbuild-cache")
    artifacts: Path | None = None

    def resolve(self, path: Path) -> Path:
        """Return ``path`` anchored at the project root when relative.

        Args:
            path: Configured path, relative or absolute.

        Returns:
            Path: Absolute path.
        """

        candidate = path if path.is_absolute() else self.root / path
        return candidate.resolve()

    @property
    def source_dirs(self) -> list[Path]:
        """Return absolute source directories."""

        return [self.resolve(path) for path in self.sources]

    @property
    def library_dirs(self) -> list[Path]:
        """Return absolute library directories in priority order."""

        return [self.resolve(path) for path in self.libraries]

    @property
    def cache_path(self) -> Path:
        """Return the absolute cache directory."""

        return self.resolve(self.cache_dir)


class CompilerConfig(BaseModel):
    """Compiler selection and settings forwarded to ``solc``."""

    model_config = ConfigDict(validate_assignment=True)

    default_version: str | None = None
    unconstrained_policy: UnconstrainedPolicy = UnconstrainedPolicy.CONFIGURED
    offline: bool = False
    optimizer: bool = False
    optimizer_runs: int = Field(default=200, ge=0)
    evm_version: str | None = None
    output_selection: dict[str, dict[str, list[str]]] = Field(
        default_factory=lambda: {key: dict(value) for key, value in DEFAULT_OUTPUT_SELECTION.items()},
    )
    libraries: dict[str, dict[str, str]] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    remappings: list[str] = Field(default_factory=list)
    auto_detect_remappings: bool = True
    ignored_error_codes: list[int] = Field(default_factory=lambda: list(DEFAULT_IGNORED_ERROR_CODES))

    @field_validator("default_version")
    @classmethod
    def _validate_version(cls, value: str | None) -> str | None:
        """Reject default versions that are not plain release numbers.

        Args:
            value: Raw configured version.

        Returns:
            str | None: The normalised version string.

        Raises:
            ValueError: If ``value`` is not a valid version.
        """

        if value is None:
            return None
        try:
            return str(Version(value.strip().removeprefix("v")))
        except InvalidVersion as exc:
            raise ValueError(f"invalid compiler version '{value}'") from exc

    @field_validator("remappings")
    @classmethod
    def _validate_remappings(cls, value: list[str]) -> list[str]:
        """Parse remappings eagerly so syntax and prefix clashes fail at load time.

        Args:
            value: Raw ``prefix=target`` entries.

        Returns:
            list[str]: The validated entries.

        Raises:
            ValueError: If an entry is malformed or prefixes conflict.
        """

        try:
            RemappingSet(parse_remapping(entry) for entry in value)
        except RemappingError as exc:
            raise ValueError(str(exc)) from exc
        return value

    @property
    def default(self) -> Version | None:
        """Return the configured default version as a :class:`Version`."""

        return Version(self.default_version) if self.default_version else None


class ExecutionConfig(BaseModel):
    """Scheduling and caching knobs for a build run."""

    model_config = ConfigDict(validate_assignment=True)

    jobs: int = Field(default_factory=default_parallel_jobs, ge=1)
    timeout_s: float | None = Field(default=None, gt=0)
    cache_enabled: bool = True
    auto_prune: bool = True


class OutputConfig(BaseModel):
    """Presentation preferences for console logging."""

    model_config = ConfigDict(validate_assignment=True)

    color: bool = True
    emoji: bool = True
    quiet: bool = False


class Config(BaseModel):
    """Top-level configuration for a project build."""

    model_config = ConfigDict(validate_assignment=True)

    paths: PathsConfig = Field(default_factory=PathsConfig)
    compiler: CompilerConfig = Field(default_factory=CompilerConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    def compiler_settings(self) -> dict[str, Any]:
        """Render the ``settings`` object of the compiler input document.

        Import remappings are not included here; the orchestrator derives
        them per invocation from the resolved import graph.

        Returns:
            dict[str, Any]: JSON-compatible settings mapping.
        """

        compiler = self.compiler
        settings: dict[str, Any] = {
            "optimizer": {"enabled": compiler.optimizer, "runs": compiler.optimizer_runs},
            "outputSelection": compiler.output_selection,
        }
        if compiler.evm_version:
            settings["evmVersion"] = compiler.evm_version
        if compiler.libraries:
            settings["libraries"] = compiler.libraries
        if compiler.metadata:
            settings["metadata"] = compiler.metadata
        return settings

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible snapshot of the configuration."""

        return self.model_dump(mode="json")


__all__ = [
    "CompilerConfig",
    "Config",
    "DEFAULT_OUTPUT_SELECTION",
    "ExecutionConfig",
    "OutputConfig",
    "PathsConfig",
    "UnconstrainedPolicy",
    "default_parallel_jobs",
]
