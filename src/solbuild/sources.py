# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Source file loading with a per-run content cache."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path

from .cache.locks import ReadWriteLock
from .resolver.scanner import scan_source


def canonical_path(path: Path) -> Path:
    """Return the canonical absolute form of ``path`` used as a node key."""

    return path.expanduser().resolve()


def content_hash(content: str) -> str:
    """Return the sha256 hex digest of ``content`` encoded as UTF-8."""

    return hashlib.sha256(content.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class SourceFile:
    """Immutable snapshot of a source file read during a build."""

    path: Path
    content: str
    content_hash: str
    imports: tuple[str, ...]
    pragma: str | None
    mtime_ns: int

    @classmethod
    def from_content(cls, path: Path, content: str, *, mtime_ns: int = 0) -> SourceFile:
        """Build a snapshot by scanning ``content`` for directives.

        Args:
            path: Canonical absolute path of the file.
            content: Full source text.
            mtime_ns: Modification timestamp recorded for the read.

        Returns:
            SourceFile: Snapshot with imports and pragma extracted.
        """

        scan = scan_source(content)
        return cls(
            path=path,
            content=content,
            content_hash=content_hash(content),
            imports=scan.imports,
            pragma=scan.version_pragma,
            mtime_ns=mtime_ns,
        )


class SourceReader:
    """Read source files once per run and hand out shared snapshots.

    Reads take the cache in shared mode; a miss upgrades to exclusive mode to
    insert the snapshot, so each path is read from disk at most once until
    :meth:`invalidate` is called.
    """

    def __init__(self) -> None:
        """Initialise an empty cache."""

        self._files: dict[Path, SourceFile] = {}
        self._lock = ReadWriteLock()
        self.reads = 0

    def read(self, path: Path) -> SourceFile:
        """Return the snapshot for ``path``, loading it on first access.

        Args:
            path: File to read; normalised to its canonical form.

        Returns:
            SourceFile: Cached or freshly loaded snapshot.

        Raises:
            OSError: If the file cannot be read.
            UnicodeDecodeError: If the file is not valid UTF-8.
        """

        key = canonical_path(path)
        with self._lock.read():
            cached = self._files.get(key)
        if cached is not None:
            return cached
        with self._lock.write():
            cached = self._files.get(key)
            if cached is not None:
                return cached
            content = key.read_text(encoding="utf-8")
            snapshot = SourceFile.from_content(key, content, mtime_ns=key.stat().st_mtime_ns)
            self._files[key] = snapshot
            self.reads += 1
            return snapshot

    def invalidate(self, path: Path | None = None) -> None:
        """Drop cached snapshots so the next read supersedes them.

        Args:
            path: Single file to forget, or ``None`` to clear everything.
        """

        with self._lock.write():
            if path is None:
                self._files.clear()
            else:
                self._files.pop(canonical_path(path), None)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, Path):
            return False
        with self._lock.read():
            return canonical_path(path) in self._files


__all__ = ["SourceFile", "SourceReader", "canonical_path", "content_hash"]
