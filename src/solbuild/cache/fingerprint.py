# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Deterministic fingerprints identifying a unique compilation result."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

from packaging.version import Version

from ..sources import SourceFile

if TYPE_CHECKING:
    from ..resolver.graph import ImportGraph

FINGERPRINT_FORMAT: Final[bytes] = b"solbuild-fingerprint-2"
FIELD_DELIMITER: Final[bytes] = b"::"
ENTRY_DELIMITER: Final[bytes] = b"\0"


def settings_digest(settings: Mapping[str, Any]) -> str:
    """Return a digest of compiler settings serialised canonically.

    Args:
        settings: JSON-compatible compiler settings.

    Returns:
        str: sha256 hex digest independent of key order.
    """

    serialized = json.dumps(settings, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def compute_fingerprint(
    source: SourceFile,
    imports: Iterable[SourceFile],
    *,
    version: Version,
    settings_hash: str,
    resolutions: Mapping[Path, Mapping[str, Path]] | None = None,
) -> str:
    """Return the fingerprint of ``source`` compiled with ``version``.

    The transitive imports are hashed as a sorted set of ``path:hash``
    entries, so discovery order never changes the result while a renamed or
    edited dependency always does. The raw-to-resolved mapping of every import
    inside the closure is hashed as well.

    Args:
        source: File whose artifact the fingerprint identifies.
        imports: Snapshots of every file in the transitive import closure.
        version: Compiler version assigned to the file.
        settings_hash: Digest from :func:`settings_digest`.
        resolutions: Raw import string to resolved path, per importing file.

    Returns:
        str: sha256 hex digest.
    """

    hasher = hashlib.sha256()
    hasher.update(FINGERPRINT_FORMAT)
    hasher.update(FIELD_DELIMITER)
    hasher.update(f"{source.path.as_posix()}:{source.content_hash}".encode())
    hasher.update(FIELD_DELIMITER)
    entries = sorted({f"{item.path.as_posix()}:{item.content_hash}" for item in imports if item.path != source.path})
    hasher.update(ENTRY_DELIMITER.join(entry.encode("utf-8") for entry in entries))
    hasher.update(FIELD_DELIMITER)
    hasher.update(str(version).encode("utf-8"))
    hasher.update(FIELD_DELIMITER)
    hasher.update(settings_hash.encode("utf-8"))
    hasher.update(FIELD_DELIMITER)
    hasher.update(ENTRY_DELIMITER.join(entry.encode("utf-8") for entry in _resolution_entries(resolutions or {})))
    return hasher.hexdigest()


def _resolution_entries(resolutions: Mapping[Path, Mapping[str, Path]]) -> list[str]:
    return sorted(
        f"{importer.as_posix()}:{raw}={target.as_posix()}"
        for importer, mapping in resolutions.items()
        for raw, target in mapping.items()
    )


def fingerprint_files(
    graph: ImportGraph,
    paths: Iterable[Path],
    *,
    version: Version,
    settings: Mapping[str, Any],
) -> dict[Path, str]:
    """Return fingerprints for ``paths`` using closures taken from ``graph``.

    Args:
        graph: Resolved import graph holding every snapshot.
        paths: Files to fingerprint.
        version: Compiler version shared by the files.
        settings: Compiler settings applied to the compilation.

    Returns:
        dict[Path, str]: Fingerprint per requested path.
    """

    settings_hash = settings_digest(settings)
    fingerprints: dict[Path, str] = {}
    for path in sorted(paths):
        closure = graph.transitive_imports(path)
        fingerprints[path] = compute_fingerprint(
            graph.files[path],
            (graph.files[item] for item in closure),
            version=version,
            settings_hash=settings_hash,
            resolutions={item: graph.resolved_imports.get(item, {}) for item in (path, *closure)},
        )
    return fingerprints


__all__ = ["compute_fingerprint", "fingerprint_files", "settings_digest"]
