# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Filesystem discovery of Solidity sources."""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .config.models import PathsConfig

SOURCE_SUFFIX: Final[str] = ".sol"
ALWAYS_EXCLUDE_DIRS: Final[frozenset[str]] = frozenset({".git", "node_modules", "__pycache__"})


@dataclass(frozen=True, slots=True)
class WalkContext:
    """Parameters required to walk one source directory."""

    base: Path
    excludes: frozenset[Path]
    follow_symlinks: bool


class SourceDiscovery:
    """Collect ``.sol`` files beneath the configured source directories."""

    def __init__(self, *, follow_symlinks: bool = False) -> None:
        """Create a discovery strategy optionally following symlinks.

        Args:
            follow_symlinks: Walk directories pointed to by symlinks instead of
                skipping them.
        """

        self.follow_symlinks = follow_symlinks

    def discover(self, paths: PathsConfig) -> list[Path]:
        """Return every source file selected by ``paths``.

        Args:
            paths: Path configuration naming source and excluded directories.

        Returns:
            list[Path]: Sorted canonical paths without duplicates.
        """

        excludes = frozenset(paths.resolve(path) for path in paths.excludes) | {paths.cache_path}
        found: set[Path] = set()
        for base in paths.source_dirs:
            if base.is_file():
                if base.suffix == SOURCE_SUFFIX:
                    found.add(base)
                continue
            if not base.is_dir():
                continue
            found.update(self._walk(WalkContext(base=base, excludes=excludes, follow_symlinks=self.follow_symlinks)))
        return sorted(found)

    def __call__(self, paths: PathsConfig) -> list[Path]:
        """Delegate to :meth:`discover`."""

        return self.discover(paths)

    def _walk(self, context: WalkContext) -> Iterator[Path]:
        for dirpath, dirnames, filenames in os.walk(context.base, followlinks=context.follow_symlinks):
            current = Path(dirpath)
            dirnames[:] = sorted(
                name for name in dirnames if not _should_skip_directory(current / name, context.excludes)
            )
            for filename in filenames:
                if not filename.endswith(SOURCE_SUFFIX):
                    continue
                candidate = current / filename
                if _is_excluded(candidate, context.excludes):
                    continue
                yield candidate.resolve()


def _should_skip_directory(path: Path, excludes: Iterable[Path]) -> bool:
    if path.name in ALWAYS_EXCLUDE_DIRS:
        return True
    return _is_excluded(path, excludes)


def _is_excluded(candidate: Path, excludes: Iterable[Path]) -> bool:
    return any(candidate.is_relative_to(excluded) for excluded in excludes)


def discover_sources(paths: PathsConfig) -> list[Path]:
    """Return the project's source files using default discovery settings."""

    return SourceDiscovery().discover(paths)


__all__ = ["ALWAYS_EXCLUDE_DIRS", "SOURCE_SUFFIX", "SourceDiscovery", "discover_sources"]
