# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Import graph construction honouring remappings and library search paths."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from ..errors import MissingImportError, SolbuildError, SourceReadError
from ..sources import SourceFile, SourceReader, canonical_path
from .remappings import RemappingSet

LOGGER = logging.getLogger(__name__)

_RELATIVE_PREFIXES: Final[tuple[str, ...]] = ("./", "../")


@dataclass(slots=True)
class ImportGraph:
    """Source files plus the directed import edges between them.

    Cycles and self-edges are allowed; every traversal keeps a visited set.
    """

    roots: tuple[Path, ...] = ()
    files: dict[Path, SourceFile] = field(default_factory=dict)
    edges: dict[Path, set[Path]] = field(default_factory=dict)
    resolved_imports: dict[Path, dict[str, Path]] = field(default_factory=dict)
    missing: list[MissingImportError] = field(default_factory=list)
    unreadable: dict[Path, SourceReadError] = field(default_factory=dict)

    def add_file(self, source: SourceFile) -> None:
        """Register ``source`` as a node of the graph."""

        self.files[source.path] = source
        self.edges.setdefault(source.path, set())
        self.resolved_imports.setdefault(source.path, {})

    def add_edge(self, importer: Path, imported: Path, raw: str) -> None:
        """Record that ``importer`` imports ``imported`` through ``raw``."""

        self.edges.setdefault(importer, set()).add(imported)
        self.resolved_imports.setdefault(importer, {})[raw] = imported

    def imports_of(self, path: Path) -> frozenset[Path]:
        """Return the direct imports of ``path``."""

        return frozenset(self.edges.get(path, ()))

    def transitive_imports(self, path: Path) -> frozenset[Path]:
        """Return every file reachable from ``path``, excluding ``path`` itself.

        Args:
            path: Starting node.

        Returns:
            frozenset[Path]: Transitive import closure.
        """

        visited: set[Path] = set()
        pending = deque(self.edges.get(path, ()))
        while pending:
            current = pending.popleft()
            if current in visited:
                continue
            visited.add(current)
            pending.extend(self.edges.get(current, ()))
        visited.discard(path)
        return frozenset(visited)

    def closure(self, paths: Iterable[Path]) -> frozenset[Path]:
        """Return ``paths`` together with their transitive imports."""

        collected: set[Path] = set()
        for path in paths:
            if path in collected:
                continue
            collected.add(path)
            collected.update(self.transitive_imports(path))
        return frozenset(collected)

    def importers(self, path: Path) -> frozenset[Path]:
        """Return files that import ``path`` directly."""

        return frozenset(source for source, targets in self.edges.items() if path in targets)

    def dependents(self, path: Path) -> frozenset[Path]:
        """Return files that import ``path`` directly or transitively."""

        return frozenset(source for source in self.edges if source != path and path in self.transitive_imports(source))

    def connected_components(self) -> list[frozenset[Path]]:
        """Return the components of the graph with edges treated as undirected.

        Returns:
            list[frozenset[Path]]: Components ordered by their smallest path.
        """

        neighbours: dict[Path, set[Path]] = {path: set() for path in (*self.files, *self.unreadable)}
        for source, targets in self.edges.items():
            neighbours.setdefault(source, set())
            for target in targets:
                neighbours[source].add(target)
                neighbours.setdefault(target, set()).add(source)

        components: list[frozenset[Path]] = []
        seen: set[Path] = set()
        for start in sorted(neighbours):
            if start in seen:
                continue
            component: set[Path] = set()
            pending = [start]
            while pending:
                current = pending.pop()
                if current in component:
                    continue
                component.add(current)
                pending.extend(neighbours[current] - component)
            seen.update(component)
            components.append(frozenset(component))
        return components

    def missing_in(self, paths: Iterable[Path]) -> list[MissingImportError]:
        """Return unresolved imports whose importing file lies in ``paths``."""

        members = set(paths)
        return [error for error in self.missing if error.importer in members]

    def errors_in(self, paths: Iterable[Path]) -> list[SolbuildError]:
        """Return unresolved imports and unreadable files that fall inside ``paths``."""

        members = set(paths)
        errors: list[SolbuildError] = list(self.missing_in(members))
        errors.extend(error for path, error in sorted(self.unreadable.items()) if path in members)
        return errors

    def __contains__(self, path: object) -> bool:
        return path in self.files

    def __len__(self) -> int:
        return len(self.files)


class ImportResolver:
    """Resolve raw import strings and build the import graph."""

    def __init__(
        self,
        *,
        root: Path,
        remappings: RemappingSet | None = None,
        library_dirs: Sequence[Path] = (),
        reader: SourceReader | None = None,
    ) -> None:
        """Create a resolver bound to a project layout.

        Args:
            root: Project root; relative remapping targets and bare imports
                are anchored here.
            remappings: Validated remappings applied before filesystem lookups.
            library_dirs: Library directories searched in priority order.
            reader: Shared source reader; a private one is created when omitted.
        """

        self.root = canonical_path(root)
        self.remappings = remappings or RemappingSet()
        self.library_dirs = tuple(canonical_path(path) for path in library_dirs)
        self.reader = reader or SourceReader()

    def resolve_import(self, importer: Path, raw: str) -> Path:
        """Return the canonical file that ``raw`` refers to from ``importer``.

        A matching remapping is authoritative. Otherwise ``./`` and ``../``
        imports resolve against the importing file's directory only; other
        imports try that directory, then the project root, then each library
        directory in order.

        Args:
            importer: Canonical path of the importing file.
            raw: Import string as written in the source.

        Returns:
            Path: Canonical path of the imported file.

        Raises:
            MissingImportError: If no candidate exists.
        """

        for candidate in self._candidates(importer, raw):
            if candidate.is_file():
                return canonical_path(candidate)
        raise MissingImportError(importer, raw)

    def _candidates(self, importer: Path, raw: str) -> list[Path]:
        remapping = self.remappings.match(raw)
        if remapping is not None:
            target = Path(remapping.apply(raw))
            return [target if target.is_absolute() else self.root / target]
        if raw.startswith(_RELATIVE_PREFIXES):
            return [importer.parent / raw]
        if Path(raw).is_absolute():
            return [Path(raw)]
        candidates = [importer.parent / raw, self.root / raw]
        candidates.extend(library / raw for library in self.library_dirs)
        return candidates

    def resolve(self, roots: Iterable[Path], *, strict: bool = False) -> ImportGraph:
        """Build the graph of every file reachable from ``roots``.

        Args:
            roots: Entry files of the build.
            strict: Raise on the first unresolved import or unreadable file
                instead of recording it on the graph.

        Returns:
            ImportGraph: Graph covering the transitive import closure.

        Raises:
            MissingImportError: If ``strict`` and an import cannot be resolved.
            SourceReadError: If ``strict`` and a file cannot be read or decoded.
        """

        root_paths = tuple(sorted({canonical_path(path) for path in roots}))
        graph = ImportGraph(roots=root_paths)
        visited: set[Path] = set()
        pending: deque[Path] = deque(root_paths)
        while pending:
            current = pending.popleft()
            if current in visited:
                continue
            visited.add(current)
            try:
                source = self.reader.read(current)
            except (OSError, UnicodeDecodeError) as exc:
                error = SourceReadError(current, str(exc))
                if strict:
                    raise error from exc
                LOGGER.debug("%s", error)
                graph.unreadable[current] = error
                continue
            graph.add_file(source)
            for raw in source.imports:
                try:
                    imported = self.resolve_import(current, raw)
                except MissingImportError as exc:
                    if strict:
                        raise
                    LOGGER.debug("unresolved import %r in %s", raw, current)
                    graph.missing.append(exc)
                    continue
                graph.add_edge(current, imported, raw)
                if imported not in visited:
                    pending.append(imported)
        return graph


__all__ = ["ImportGraph", "ImportResolver"]
