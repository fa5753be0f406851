# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""High level orchestration of a Solidity build."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from ..cache.store import ArtifactCache, SourceArtifact
from ..compiler.contracts import Diagnostic
from ..compiler.solc import CompilerRunner, SolcRunner
from ..config.models import Config
from ..core.cancellation import CancellationToken
from ..errors import CompilationError, SolbuildError
from ..reporting import BuildReporter
from ..resolver.graph import ImportGraph, ImportResolver
from ..resolver.remappings import RemappingSet, detect_remappings
from ..sources import SourceReader
from ..versions.assigner import Assignment, VersionAssigner
from ..versions.toolchain import ToolchainManager
from .executor import BatchExecutor, BatchResult, BatchStatus, BuildHooks

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BuildFailure:
    """Files that produced no artifacts together with the reason."""

    files: frozenset[Path]
    error: SolbuildError


@dataclass(slots=True)
class BuildResult:
    """Merged outcome of every batch in a build."""

    graph: ImportGraph
    assignment: Assignment
    batches: list[BatchResult] = field(default_factory=list)
    artifacts: dict[Path, SourceArtifact] = field(default_factory=dict)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    failures: list[BuildFailure] = field(default_factory=list)
    cached_files: set[Path] = field(default_factory=set)
    compiled_files: set[Path] = field(default_factory=set)
    removed_sources: list[str] = field(default_factory=list)
    pruned_entries: int = 0

    @property
    def invocations(self) -> int:
        """Return how many times the compiler was spawned."""

        return sum(result.invocations for result in self.batches)

    @property
    def cancelled(self) -> bool:
        """Return whether any batch was cancelled."""

        return any(result.status is BatchStatus.CANCELLED for result in self.batches)

    @property
    def has_compiler_errors(self) -> bool:
        """Return whether the compiler reported error-severity diagnostics."""

        return any(item.is_error for item in self.diagnostics)

    @property
    def errors(self) -> list[Diagnostic]:
        """Return the error-severity diagnostics."""

        return [item for item in self.diagnostics if item.is_error]

    @property
    def warnings(self) -> list[Diagnostic]:
        """Return the diagnostics that do not fail the build."""

        return [item for item in self.diagnostics if not item.is_error]

    @property
    def succeeded(self) -> bool:
        """Return whether every file compiled without errors."""

        return not self.failures and not self.has_compiler_errors and not self.cancelled

    def raise_for_errors(self) -> None:
        """Raise when the build did not succeed.

        Raises:
            CompilationError: If the compiler reported error diagnostics.
            SolbuildError: The first component or batch failure otherwise.
        """

        if self.has_compiler_errors:
            raise CompilationError(self.errors)
        if self.failures:
            raise self.failures[0].error


class BuildOrchestrator:
    """Run resolution, version assignment, caching and compilation."""

    def __init__(
        self,
        config: Config,
        *,
        toolchain: ToolchainManager,
        runner: CompilerRunner | None = None,
        cache: ArtifactCache | None = None,
        reader: SourceReader | None = None,
        cancel: CancellationToken | None = None,
        hooks: BuildHooks | None = None,
        reporter: BuildReporter | None = None,
    ) -> None:
        """Bind the orchestrator to a configuration and its collaborators.

        Args:
            config: Project configuration.
            toolchain: Compiler version manager.
            runner: Compiler invoker; defaults to :class:`SolcRunner`.
            cache: Artifact cache; created from ``config`` when omitted and
                caching is enabled.
            reader: Shared source reader.
            cancel: Token aborting the build when set.
            hooks: Callbacks fired as batches complete.
            reporter: Console renderer; built from ``config.output`` when omitted.
        """

        self.config = config
        self.toolchain = toolchain
        self.runner = runner or SolcRunner(cwd=config.paths.resolve(Path()))
        if cache is None and config.execution.cache_enabled:
            cache = ArtifactCache(config.paths.cache_path)
        self.cache = cache if config.execution.cache_enabled else None
        self.reader = reader or SourceReader()
        self.cancel = cancel or CancellationToken()
        self.hooks = hooks
        self.reporter = reporter or BuildReporter(config.output, root=config.paths.resolve(Path()))

    def remappings(self) -> RemappingSet:
        """Return configured remappings extended with auto-detected ones."""

        configured = RemappingSet.parse(self.config.compiler.remappings)
        if not self.config.compiler.auto_detect_remappings:
            return configured
        return configured.extended(detect_remappings(self.config.paths.library_dirs))

    def resolve(self, roots: Iterable[Path]) -> ImportGraph:
        """Return the import graph reachable from ``roots``."""

        resolver = ImportResolver(
            root=self.config.paths.resolve(Path()),
            remappings=self.remappings(),
            library_dirs=self.config.paths.library_dirs,
            reader=self.reader,
        )
        return resolver.resolve(roots)

    def build(self, roots: Iterable[Path], *, full: bool = True) -> BuildResult:
        """Compile ``roots`` and everything they import.

        Args:
            roots: Entry source files.
            full: Whether ``roots`` cover the whole project; enables detection
                of removed sources and pruning of unreachable cache entries.

        Returns:
            BuildResult: Merged artifacts, diagnostics and failures.
        """

        graph = self.resolve(roots)
        compiler = self.config.compiler
        assigner = VersionAssigner(
            self.toolchain,
            default_version=compiler.default,
            policy=compiler.unconstrained_policy,
            offline=compiler.offline,
        )
        assignment = assigner.assign(graph)
        result = BuildResult(graph=graph, assignment=assignment)
        for failed in assignment.failures:
            for error in failed.errors:
                result.failures.append(BuildFailure(files=failed.files, error=error))

        self._announce(graph, assignment)
        executor = BatchExecutor(
            toolchain=self.toolchain,
            runner=self.runner,
            settings=self.config.compiler_settings(),
            cache=self.cache,
            ignored_error_codes=compiler.ignored_error_codes,
            timeout=self.config.execution.timeout_s,
            cancel=self.cancel,
        )
        result.batches = executor.run(
            assignment.batches,
            graph,
            jobs=self.config.execution.jobs,
            hooks=self.hooks,
        )
        for batch_result in result.batches:
            self._merge(result, batch_result)
        if self.cache is not None:
            self._update_cache(result, full=full)
        self._report(result)
        return result

    @staticmethod
    def _merge(result: BuildResult, batch_result: BatchResult) -> None:
        result.artifacts.update(batch_result.artifacts)
        result.diagnostics.extend(batch_result.diagnostics)
        result.cached_files.update(batch_result.cached_files)
        result.compiled_files.update(batch_result.compiled_files)
        if batch_result.error is not None:
            result.failures.append(BuildFailure(files=batch_result.batch.files, error=batch_result.error))

    def _update_cache(self, result: BuildResult, *, full: bool) -> None:
        """Record source fingerprints, prune when allowed, and flush the index."""

        cache = self.cache
        if cache is None:
            return
        fingerprints = {
            path: fingerprint
            for batch_result in result.batches
            for path, fingerprint in batch_result.fingerprints.items()
            if path in batch_result.artifacts and fingerprint in cache
        }
        cache.record_sources(fingerprints)
        if full and not result.cancelled:
            result.removed_sources = cache.stale_sources([*result.graph.files, *result.graph.unreadable])
            cache.forget_sources(result.removed_sources)
            if self.config.execution.auto_prune:
                result.pruned_entries = cache.prune(cache.live_fingerprints())
        cache.flush()

    def _announce(self, graph: ImportGraph, assignment: Assignment) -> None:
        self.reporter.start(graph, assignment)

    def _report(self, result: BuildResult) -> None:
        for removed in result.removed_sources:
            LOGGER.info("source removed since last build: %s", removed)
        self.reporter.finish(result)


__all__ = ["BuildFailure", "BuildOrchestrator", "BuildResult"]
