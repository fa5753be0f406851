# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Project-level entry point bundling configuration and build services."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from pathlib import Path

from .artifacts import write_artifacts
from .cache.store import ArtifactCache
from .compiler.solc import CompilerRunner
from .config.loader import load_config
from .config.models import Config
from .core.cancellation import CancellationToken
from .discovery import SourceDiscovery
from .errors import ConfigError
from .orchestration.executor import BuildHooks
from .orchestration.orchestrator import BuildOrchestrator, BuildResult
from .resolver.graph import ImportGraph
from .sources import SourceReader, canonical_path
from .versions.toolchain import DirectoryToolchain, ToolchainManager

LOGGER = logging.getLogger(__name__)


class Project:
    """A Solidity project rooted at a directory.

    Each build uses a fresh :class:`SourceReader`, so edits made between
    builds are always observed while each file is still read only once per
    build.
    """

    def __init__(
        self,
        config: Config,
        *,
        toolchain: ToolchainManager | None = None,
        runner: CompilerRunner | None = None,
        discovery: SourceDiscovery | None = None,
    ) -> None:
        """Create a project from an already loaded configuration.

        Args:
            config: Validated configuration; ``paths.root`` is the project root.
            toolchain: Compiler version manager; a :class:`DirectoryToolchain`
                is used when omitted.
            runner: Compiler invoker passed to the orchestrator.
            discovery: Source discovery strategy.
        """

        self.config = config
        self.toolchain = toolchain or DirectoryToolchain()
        self.runner = runner
        self.discovery = discovery or SourceDiscovery()
        self.cache = ArtifactCache(config.paths.cache_path)

    @classmethod
    def load(
        cls,
        root: Path,
        *,
        toolchain: ToolchainManager | None = None,
        runner: CompilerRunner | None = None,
    ) -> Project:
        """Load configuration from ``root`` and return the project.

        Args:
            root: Project root directory.
            toolchain: Compiler version manager forwarded to :class:`Project`.
            runner: Compiler invoker forwarded to :class:`Project`.

        Returns:
            Project: Configured project.

        Raises:
            ConfigError: If the configuration is invalid.
        """

        if not root.is_dir():
            raise ConfigError(f"project root {root} is not a directory")
        return cls(load_config(root), toolchain=toolchain, runner=runner)

    @property
    def root(self) -> Path:
        """Return the canonical project root."""

        return canonical_path(self.config.paths.root)

    def sources(self) -> list[Path]:
        """Return every source file discovered under the source directories."""

        return self.discovery.discover(self.config.paths)

    def _orchestrator(self, cancel: CancellationToken | None, hooks: BuildHooks | None) -> BuildOrchestrator:
        return BuildOrchestrator(
            self.config,
            toolchain=self.toolchain,
            runner=self.runner,
            cache=self.cache,
            reader=SourceReader(),
            cancel=cancel,
            hooks=hooks,
        )

    def graph(self, paths: Iterable[Path] | None = None) -> ImportGraph:
        """Return the import graph of ``paths`` or of every discovered source."""

        roots = list(paths) if paths is not None else self.sources()
        return self._orchestrator(None, None).resolve(roots)

    def compile(
        self,
        *,
        cancel: CancellationToken | None = None,
        hooks: BuildHooks | None = None,
    ) -> BuildResult:
        """Build every discovered source file.

        Args:
            cancel: Token aborting batches that have not started.
            hooks: Callbacks fired as batches complete.

        Returns:
            BuildResult: Merged outcome of the build.
        """

        sources = self.sources()
        if not sources:
            LOGGER.info("no Solidity sources found under %s", ", ".join(map(str, self.config.paths.source_dirs)))
        result = self._orchestrator(cancel, hooks).build(sources, full=True)
        self._export(result)
        return result

    def compile_files(
        self,
        paths: Iterable[Path],
        *,
        cancel: CancellationToken | None = None,
        hooks: BuildHooks | None = None,
    ) -> BuildResult:
        """Build ``paths`` and their imports only.

        Args:
            paths: Entry files, absolute or relative to the project root.
            cancel: Token aborting batches that have not started.
            hooks: Callbacks fired as batches complete.

        Returns:
            BuildResult: Merged outcome of the build.
        """

        roots = [self.config.paths.resolve(path) for path in paths]
        result = self._orchestrator(cancel, hooks).build(roots, full=False)
        self._export(result)
        return result

    def _export(self, result: BuildResult) -> None:
        if self.config.paths.artifacts is None or not result.artifacts:
            return
        write_artifacts(
            result.artifacts,
            output_dir=self.config.paths.resolve(self.config.paths.artifacts),
            root=self.root,
        )

    def clean(self) -> None:
        """Remove the artifact cache and exported artifacts."""

        self.cache.clear()
        if self.config.paths.artifacts is not None:
            output_dir = self.config.paths.resolve(self.config.paths.artifacts)
            if output_dir.is_dir():
                shutil.rmtree(output_dir)


__all__ = ["Project"]
