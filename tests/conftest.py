# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures and fakes for compiler and toolchain."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from threading import Lock
from typing import Any

import pytest
from packaging.version import Version

from solbuild.compiler.contracts import CompilerInput, CompilerOutput, parse_compiler_output
from solbuild.config.models import Config, ExecutionConfig, OutputConfig, PathsConfig
from solbuild.core.cancellation import CancellationToken
from solbuild.errors import ToolchainUnavailableError
from solbuild.project import Project

OutputFactory = Callable[[CompilerInput], Mapping[str, Any]]


class FakeToolchain:
    """In-memory toolchain exposing a fixed set of versions."""

    def __init__(self, installed: Iterable[str] = (), installable: Iterable[str] = ()) -> None:
        self.installed = sorted(Version(item) for item in installed)
        self.installable = sorted(Version(item) for item in installable)
        self.ensured: list[Version] = []

    def installed_versions(self) -> list[Version]:
        return list(self.installed)

    def available_versions(self) -> list[Version]:
        return sorted({*self.installed, *self.installable})

    def ensure_installed(self, version: Version) -> Path:
        if version not in self.installed and version not in self.installable:
            raise ToolchainUnavailableError(f"solc {version} is not available")
        self.ensured.append(version)
        return Path(f"/opt/solc/solc-{version}")


def default_output(compiler_input: CompilerInput) -> dict[str, Any]:
    """Return one contract per source unit, named after the file stem."""

    contracts = {
        unit: {
            Path(unit).stem: {
                "abi": [{"type": "function", "name": "run"}],
                "metadata": "{}",
                "evm": {"bytecode": {"object": "6080"}, "deployedBytecode": {"object": "6081"}},
            },
        }
        for unit in compiler_input.sources
    }
    return {"contracts": contracts, "sources": {}, "errors": []}


class FakeCompiler:
    """Record invocations and answer with a configurable output document.

    The document goes through the same parser as real compiler output, so
    factories can return malformed payloads or raise process errors.
    """

    def __init__(self, factory: OutputFactory = default_output) -> None:
        self.factory = factory
        self.calls: list[tuple[Path, CompilerInput]] = []
        self._lock = Lock()

    def __call__(
        self,
        binary: Path,
        compiler_input: CompilerInput,
        *,
        timeout: float | None = None,
        cancel: CancellationToken | None = None,
    ) -> CompilerOutput:
        with self._lock:
            self.calls.append((binary, compiler_input))
        return parse_compiler_output(json.dumps(self.factory(compiler_input)))

    @property
    def compiled_units(self) -> list[set[str]]:
        return [set(compiler_input.sources) for _, compiler_input in self.calls]


def write_sources(root: Path, files: Mapping[str, str]) -> dict[str, Path]:
    """Write ``files`` relative to ``root`` and return their resolved paths."""

    written: dict[str, Path] = {}
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        written[relative] = path.resolve()
    return written


def make_config(root: Path, **compiler: Any) -> Config:
    """Return a quiet, serial configuration rooted at ``root``."""

    config = Config(
        paths=PathsConfig(root=root),
        execution=ExecutionConfig(jobs=1),
        output=OutputConfig(quiet=True, color=False, emoji=False),
    )
    for key, value in compiler.items():
        setattr(config.compiler, key, value)
    return config


@pytest.fixture
def toolchain() -> FakeToolchain:
    return FakeToolchain(installed=["0.7.6", "0.8.19", "0.8.24"], installable=["0.8.26"])


@pytest.fixture
def compiler() -> FakeCompiler:
    return FakeCompiler()


@pytest.fixture
def project_factory(
    tmp_path: Path,
    toolchain: FakeToolchain,
    compiler: FakeCompiler,
) -> Callable[..., Project]:
    """Return a factory writing sources under ``contracts/`` and building a project."""

    def _factory(files: Mapping[str, str], **compiler_settings: Any) -> Project:
        write_sources(tmp_path / "contracts", files)
        config = make_config(tmp_path, **compiler_settings)
        return Project(config, toolchain=toolchain, runner=compiler)

    return _factory
