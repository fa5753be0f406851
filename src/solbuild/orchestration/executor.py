# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Execution of compilation batches against the cache and the compiler."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Any, Final

from ..cache.fingerprint import fingerprint_files
from ..cache.store import ArtifactCache, ContractArtifact, SourceArtifact
from ..compiler.contracts import CompilerInput, CompilerOutput, Diagnostic
from ..compiler.solc import CompilerRunner
from ..core.cancellation import CancellationToken
from ..errors import BuildCancelledError, ProcessFailureError, SolbuildError, ToolchainUnavailableError
from ..resolver.graph import ImportGraph
from ..versions.assigner import CompilationBatch
from ..versions.toolchain import ToolchainManager

LOGGER = logging.getLogger(__name__)

_RELATIVE_PREFIXES: Final[tuple[str, ...]] = ("./", "../")
_REMAPPINGS_FIELD: Final[str] = "remappings"


class BatchStatus(str, Enum):
    """Enumerate outcomes of a single batch."""

    COMPILED = "compiled"
    CACHED = "cached"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class BatchResult:
    """Outcome of one compilation batch."""

    batch: CompilationBatch
    status: BatchStatus
    artifacts: dict[Path, SourceArtifact] = field(default_factory=dict)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    error: SolbuildError | None = None
    fingerprints: dict[Path, str] = field(default_factory=dict)
    cached_files: frozenset[Path] = frozenset()
    compiled_files: frozenset[Path] = frozenset()
    invocations: int = 0

    @property
    def has_errors(self) -> bool:
        """Return whether the compiler reported error-severity diagnostics."""

        return any(item.is_error for item in self.diagnostics)


BatchCallback = Callable[[BatchResult], None]


@dataclass(slots=True)
class BuildHooks:
    """Optional callbacks invoked while batches complete."""

    after_batch: BatchCallback | None = None


def context_remappings(graph: ImportGraph, files: Iterable[Path]) -> list[str]:
    """Return per-importer remappings pinning non-relative imports.

    Sources are handed to the compiler under their absolute paths, so every
    import that was not written relative to its file is mapped to the exact
    file the resolver chose for it.

    Args:
        graph: Resolved import graph.
        files: Files included in the compiler input.

    Returns:
        list[str]: ``context:prefix=target`` entries in deterministic order.
    """

    entries: list[str] = []
    for importer in sorted(files):
        for raw, target in sorted(graph.resolved_imports.get(importer, {}).items()):
            if raw.startswith(_RELATIVE_PREFIXES) or Path(raw).is_absolute():
                continue
            entries.append(f"{importer.as_posix()}:{raw}={target.as_posix()}")
    return entries


def filter_diagnostics(diagnostics: Iterable[Diagnostic], ignored_codes: Iterable[int]) -> list[Diagnostic]:
    """Drop non-error diagnostics whose code is listed in ``ignored_codes``.

    Args:
        diagnostics: Diagnostics reported by the compiler.
        ignored_codes: Numeric error codes to suppress.

    Returns:
        list[Diagnostic]: Remaining diagnostics in their original order.
    """

    ignored = {str(code) for code in ignored_codes}
    return [item for item in diagnostics if item.is_error or item.error_code not in ignored]


def _artifact_for(
    path: Path,
    fingerprint: str,
    batch: CompilationBatch,
    output: CompilerOutput,
    diagnostics: Sequence[Diagnostic],
) -> SourceArtifact:
    unit = path.as_posix()
    contracts = {
        name: ContractArtifact.from_output(name, contract) for name, contract in output.contracts.get(unit, {}).items()
    }
    return SourceArtifact(
        source=unit,
        fingerprint=fingerprint,
        compiler_version=str(batch.version),
        contracts=contracts,
        diagnostics=[item for item in diagnostics if item.file == unit],
    )


class BatchExecutor:
    """Run compilation batches, consulting the cache before the compiler."""

    def __init__(
        self,
        *,
        toolchain: ToolchainManager,
        runner: CompilerRunner,
        settings: Mapping[str, Any],
        cache: ArtifactCache | None = None,
        ignored_error_codes: Iterable[int] = (),
        timeout: float | None = None,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Capture collaborators shared by every batch of a build.

        Args:
            toolchain: Provides compiler binaries per version.
            runner: Invokes a compiler binary on an input document.
            settings: Compiler settings applied to every invocation.
            cache: Artifact cache; ``None`` disables caching.
            ignored_error_codes: Warning codes dropped from the results.
            timeout: Seconds allowed per compiler invocation.
            cancel: Token that stops remaining work when set.
        """

        self.toolchain = toolchain
        self.runner = runner
        self.settings = dict(settings)
        self.cache = cache
        self.ignored_error_codes = tuple(ignored_error_codes)
        self.timeout = timeout
        self.cancel = cancel or CancellationToken()

    def run(
        self,
        batches: Sequence[CompilationBatch],
        graph: ImportGraph,
        *,
        jobs: int = 1,
        hooks: BuildHooks | None = None,
    ) -> list[BatchResult]:
        """Execute ``batches`` and return their results in batch order.

        Args:
            batches: Batches produced by version assignment.
            graph: Resolved import graph the batches were derived from.
            jobs: Maximum number of concurrent compiler invocations.
            hooks: Optional callbacks fired as each batch completes.

        Returns:
            list[BatchResult]: One result per batch.
        """

        callbacks = hooks or BuildHooks()
        batch_runner = partial(self.run_batch, graph=graph)
        results: dict[int, BatchResult] = {}
        if jobs <= 1 or len(batches) <= 1:
            for index, batch in enumerate(batches):
                results[index] = batch_runner(batch)
                self._notify(callbacks, results[index])
        else:
            with ThreadPoolExecutor(max_workers=jobs) as executor:
                future_map = {executor.submit(batch_runner, batch): index for index, batch in enumerate(batches)}
                for future in as_completed(future_map):
                    index = future_map[future]
                    results[index] = future.result()
                    self._notify(callbacks, results[index])
        return [results[index] for index in range(len(batches))]

    @staticmethod
    def _notify(hooks: BuildHooks, result: BatchResult) -> None:
        if hooks.after_batch is not None:
            hooks.after_batch(result)

    def run_batch(self, batch: CompilationBatch, *, graph: ImportGraph) -> BatchResult:
        """Compile the dirty part of ``batch`` or replay it from the cache.

        Args:
            batch: Version-homogeneous set of files.
            graph: Resolved import graph containing every file of the batch.

        Returns:
            BatchResult: Artifacts and diagnostics for every file of the batch.
        """

        if self.cancel.cancelled:
            return BatchResult(batch=batch, status=BatchStatus.CANCELLED, error=BuildCancelledError(self._reason()))

        fingerprints = fingerprint_files(graph, batch.files, version=batch.version, settings=self.settings)
        cached: dict[Path, SourceArtifact] = {}
        if self.cache is not None:
            for path, fingerprint in fingerprints.items():
                artifact = self.cache.lookup(fingerprint)
                if artifact is not None:
                    cached[path] = artifact
        dirty = frozenset(path for path in batch.files if path not in cached)
        replayed = [item for artifact in cached.values() for item in artifact.diagnostics]
        result = BatchResult(
            batch=batch,
            status=BatchStatus.CACHED,
            artifacts=dict(cached),
            diagnostics=list(replayed),
            fingerprints=fingerprints,
            cached_files=frozenset(cached),
        )
        if not dirty:
            LOGGER.debug("batch for solc %s fully cached (%d file(s))", batch.version, len(batch))
            return result

        try:
            output = self._compile(batch, graph, dirty)
        except BuildCancelledError as exc:
            result.status = BatchStatus.CANCELLED
            result.error = exc
            return result
        except (ToolchainUnavailableError, ProcessFailureError) as exc:
            LOGGER.debug("batch for solc %s failed: %s", batch.version, exc)
            result.status = BatchStatus.FAILED
            result.error = exc
            result.invocations = int(isinstance(exc, ProcessFailureError))
            return result

        diagnostics = filter_diagnostics(output.errors, self.ignored_error_codes)
        result.invocations = 1
        replayed_units = {path.as_posix() for path in cached}
        result.diagnostics.extend(item for item in diagnostics if item.file not in replayed_units)
        if output.has_errors:
            # Keep what did compile, but never cache output of a failed invocation.
            result.status = BatchStatus.FAILED
            compiled = frozenset(path for path in dirty if path.as_posix() in output.contracts)
            for path in sorted(compiled):
                result.artifacts[path] = _artifact_for(path, fingerprints[path], batch, output, diagnostics)
            result.compiled_files = compiled
            return result
        result.status = BatchStatus.COMPILED
        result.compiled_files = dirty
        for path in sorted(dirty):
            artifact = _artifact_for(path, fingerprints[path], batch, output, diagnostics)
            result.artifacts[path] = artifact
            if self.cache is not None:
                self.cache.store(fingerprints[path], artifact)
        return result

    def _compile(self, batch: CompilationBatch, graph: ImportGraph, dirty: frozenset[Path]) -> CompilerOutput:
        """Invoke the compiler on ``dirty`` plus everything it imports."""

        binary = self.toolchain.ensure_installed(batch.version)
        if self.cancel.cancelled:
            raise BuildCancelledError(self._reason())
        members = graph.closure(dirty)
        settings = dict(self.settings)
        remappings = context_remappings(graph, members)
        if remappings:
            settings[_REMAPPINGS_FIELD] = remappings
        compiler_input = CompilerInput.build({path: graph.files[path].content for path in members}, settings)
        LOGGER.debug(
            "compiling %d dirty file(s) with %d dependency file(s) using solc %s",
            len(dirty),
            len(members) - len(dirty),
            batch.version,
        )
        return self.runner(binary, compiler_input, timeout=self.timeout, cancel=self.cancel)

    def _reason(self) -> str:
        return self.cancel.reason or "build cancelled"


__all__ = [
    "BatchCallback",
    "BatchExecutor",
    "BatchResult",
    "BatchStatus",
    "BuildHooks",
    "context_remappings",
    "filter_diagnostics",
]
