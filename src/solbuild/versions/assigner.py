# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Partition an import graph into version-homogeneous compilation batches."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from itertools import combinations
from pathlib import Path

from packaging.version import Version

from ..config.models import UnconstrainedPolicy
from ..errors import InvalidConstraintError, SolbuildError, ToolchainUnavailableError, VersionConflictError
from ..resolver.graph import ImportGraph
from .constraints import VersionConstraint, intersect_all
from .toolchain import ToolchainManager

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CompilationBatch:
    """Files compiled together by one invocation of one compiler version.

    Batches are built from whole connected components, so every file's
    transitive import closure lies inside its batch.
    """

    version: Version
    files: frozenset[Path]
    components: tuple[frozenset[Path], ...]

    def __len__(self) -> int:
        return len(self.files)


@dataclass(frozen=True, slots=True)
class FailedComponent:
    """Component that could not be assigned a compiler version."""

    files: frozenset[Path]
    errors: tuple[SolbuildError, ...]


@dataclass(slots=True)
class Assignment:
    """Result of version assignment for a whole graph."""

    batches: list[CompilationBatch] = field(default_factory=list)
    failures: list[FailedComponent] = field(default_factory=list)
    versions: dict[Path, Version] = field(default_factory=dict)


class VersionAssigner:
    """Choose one compiler version per connected component of the graph."""

    def __init__(
        self,
        toolchain: ToolchainManager,
        *,
        default_version: Version | None = None,
        policy: UnconstrainedPolicy = UnconstrainedPolicy.CONFIGURED,
        offline: bool = False,
    ) -> None:
        """Configure selection rules.

        Args:
            toolchain: Source of installed and installable versions.
            default_version: Version used for unconstrained components under
                :attr:`UnconstrainedPolicy.CONFIGURED`.
            policy: Rule applied to components in which no file has a pragma.
            offline: Restrict choices to installed versions.
        """

        self.toolchain = toolchain
        self.default_version = default_version
        self.policy = policy
        self.offline = offline

    def assign(self, graph: ImportGraph) -> Assignment:
        """Partition ``graph`` into the minimum number of batches.

        Components mapped to the same version share a batch. Components with
        unresolved imports, unreadable files, conflicting pragmas or no usable
        compiler are reported as failures and left out of every batch.

        Args:
            graph: Resolved import graph.

        Returns:
            Assignment: Batches ordered by version plus per-component failures.
        """

        installed = sorted(self.toolchain.installed_versions())
        available = installed if self.offline else sorted(self.toolchain.available_versions())
        assignment = Assignment()
        grouped: dict[Version, list[frozenset[Path]]] = {}
        for component in graph.connected_components():
            errors = graph.errors_in(component)
            if errors:
                assignment.failures.append(FailedComponent(files=component, errors=tuple(errors)))
                continue
            try:
                version = self._select(component, graph, installed, available)
            except (VersionConflictError, ToolchainUnavailableError, InvalidConstraintError) as exc:
                LOGGER.debug("component of %d file(s) rejected: %s", len(component), exc)
                assignment.failures.append(FailedComponent(files=component, errors=(exc,)))
                continue
            grouped.setdefault(version, []).append(component)
            for path in component:
                assignment.versions[path] = version

        for version in sorted(grouped):
            components = tuple(grouped[version])
            files = frozenset().union(*components)
            assignment.batches.append(CompilationBatch(version=version, files=files, components=components))
        return assignment

    def _select(
        self,
        component: frozenset[Path],
        graph: ImportGraph,
        installed: Sequence[Version],
        available: Sequence[Version],
    ) -> Version:
        constrained: list[tuple[Path, str, VersionConstraint]] = []
        for path in sorted(component):
            pragma = graph.files[path].pragma
            if pragma:
                constrained.append((path, pragma, VersionConstraint.parse(pragma)))
        if not constrained:
            return self._unconstrained_version(installed, available)

        combined = intersect_all(item[2] for item in constrained)
        if combined.is_empty:
            raise _conflict(constrained)
        version = combined.highest(installed) or combined.highest(available)
        if version is None:
            raise ToolchainUnavailableError(f"no installed or installable compiler satisfies '{combined}'")
        return version

    def _unconstrained_version(self, installed: Sequence[Version], available: Sequence[Version]) -> Version:
        if self.policy is UnconstrainedPolicy.CONFIGURED:
            if self.default_version is None:
                raise ToolchainUnavailableError(
                    "sources without a version pragma need compiler.default_version "
                    "or a different compiler.unconstrained_policy",
                )
            return self.default_version
        candidates = installed if self.policy is UnconstrainedPolicy.LATEST_INSTALLED else available
        if not candidates:
            raise ToolchainUnavailableError(f"no compiler available for policy '{self.policy.value}'")
        return max(candidates)


def _conflict(constrained: Sequence[tuple[Path, str, VersionConstraint]]) -> VersionConflictError:
    """Build a conflict error naming the files whose pragmas cannot overlap.

    Pairwise-disjoint files are named when there are any; otherwise the
    conflict is collective and every constrained file is named.
    """

    named: dict[Path, str] = {}
    for (left, left_raw, left_req), (right, right_raw, right_req) in combinations(constrained, 2):
        if not left_req.overlaps(right_req):
            named.setdefault(left, left_raw)
            named.setdefault(right, right_raw)
    if not named:
        named = {path: raw for path, raw, _ in constrained}
    return VersionConflictError(list(named), list(named.values()))


__all__ = ["Assignment", "CompilationBatch", "FailedComponent", "VersionAssigner"]
