# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Durable, fingerprint-addressed store of compiled artifacts."""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import tempfile
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..compiler.contracts import ContractOutput, Diagnostic
from ..errors import CacheCorruptionError
from .locks import ReadWriteLock

LOGGER = logging.getLogger(__name__)

CACHE_FORMAT: Final[str] = "solbuild-cache-1"
INDEX_FILENAME: Final[str] = "index.json"
ARTIFACTS_DIRNAME: Final[str] = "artifacts"
_FORMAT_FIELD: Final[str] = "format"
_ENTRIES_FIELD: Final[str] = "entries"
_SOURCES_FIELD: Final[str] = "sources"
_FINGERPRINT_PATTERN: Final[re.Pattern[str]] = re.compile(r"[A-Za-z0-9_-]+")


class ContractArtifact(BaseModel):
    """Compiled output of a single contract."""

    model_config = ConfigDict(frozen=True)

    name: str
    abi: list[Any] = Field(default_factory=list)
    bytecode: str | None = None
    deployed_bytecode: str | None = None
    metadata: str | dict[str, Any] | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_output(cls, name: str, output: ContractOutput) -> ContractArtifact:
        """Convert compiler output for contract ``name``."""

        return cls(
            name=name,
            abi=output.abi,
            bytecode=output.bytecode,
            deployed_bytecode=output.deployed_bytecode,
            metadata=output.metadata,
            extra={"evm": output.evm, **(output.model_extra or {})},
        )


class SourceArtifact(BaseModel):
    """Every contract compiled from one source file, plus its diagnostics."""

    model_config = ConfigDict(frozen=True)

    source: str
    fingerprint: str
    compiler_version: str
    contracts: dict[str, ContractArtifact] = Field(default_factory=dict)
    diagnostics: list[Diagnostic] = Field(default_factory=list)


class IndexEntry(BaseModel):
    """Location of the artifact stored for one fingerprint."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    artifact: str
    source: str
    compiler_version: str


@dataclass(slots=True)
class CacheStats:
    """Counters accumulated by an :class:`ArtifactCache` instance."""

    hits: int = 0
    misses: int = 0
    stores: int = 0
    corrupt: int = 0

    def record(self, *, hits: int = 0, misses: int = 0, stores: int = 0, corrupt: int = 0) -> None:
        """Add the given deltas to the counters."""

        self.hits += hits
        self.misses += misses
        self.stores += stores
        self.corrupt += corrupt


def _atomic_write(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` so readers never observe a partial file."""

    path.parent.mkdir(parents=True, exist_ok=True)
    handle, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(handle, "w", encoding="utf-8") as stream:
            stream.write(text)
        os.replace(temp_name, path)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise


class ArtifactCache:
    """Map fingerprints to persisted artifacts across process restarts.

    The index is the only shared mutable state; lookups take it in shared
    mode and stores in exclusive mode. Artifact files are content-addressed by
    fingerprint, so concurrent stores of the same key are idempotent.
    """

    def __init__(self, directory: Path) -> None:
        """Initialise the cache rooted at ``directory``.

        Args:
            directory: Directory holding ``index.json`` and the artifact files.
        """

        self.directory = directory
        self.stats = CacheStats()
        self._stats_lock = Lock()
        self._lock = ReadWriteLock()
        self._entries: dict[str, IndexEntry] | None = None
        self._sources: dict[str, str] = {}
        self._corrupt: set[str] = set()

    @property
    def index_path(self) -> Path:
        """Return the location of the index file."""

        return self.directory / INDEX_FILENAME

    def _count(self, **deltas: int) -> None:
        with self._stats_lock:
            self.stats.record(**deltas)

    @staticmethod
    def _artifact_relpath(fingerprint: str) -> str:
        return f"{ARTIFACTS_DIRNAME}/{fingerprint}.json"

    def _artifact_path(self, fingerprint: str) -> Path:
        # Derived from the key only; locations stored in the index are not trusted.
        return self.directory / self._artifact_relpath(fingerprint)

    def _ensure_loaded(self) -> dict[str, IndexEntry]:
        with self._lock.read():
            if self._entries is not None:
                return self._entries
        with self._lock.write():
            if self._entries is None:
                self._entries, self._sources = self._read_index()
            return self._entries

    def _read_index(self) -> tuple[dict[str, IndexEntry], dict[str, str]]:
        """Return index entries and source bookkeeping from disk.

        An unreadable index or an unknown format starts from an empty index;
        individual entries that do not validate, or whose key or artifact
        location does not match the cache layout, are dropped as misses.
        """

        if not self.index_path.is_file():
            return {}, {}
        try:
            raw = json.loads(self.index_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            LOGGER.warning("ignoring unreadable cache index %s: %s", self.index_path, exc)
            return {}, {}
        if not isinstance(raw, dict) or raw.get(_FORMAT_FIELD) != CACHE_FORMAT:
            LOGGER.info("cache index %s has an unrecognised format; starting fresh", self.index_path)
            return {}, {}

        entries: dict[str, IndexEntry] = {}
        raw_entries = raw.get(_ENTRIES_FIELD)
        if isinstance(raw_entries, dict):
            for fingerprint, payload in raw_entries.items():
                key = str(fingerprint)
                try:
                    entry = IndexEntry.model_validate(payload)
                except ValidationError:
                    LOGGER.debug("dropping unrecognised cache entry %s", key)
                    continue
                if not _FINGERPRINT_PATTERN.fullmatch(key) or entry.artifact != self._artifact_relpath(key):
                    LOGGER.warning("dropping cache entry %r with unexpected artifact location %r", key, entry.artifact)
                    continue
                entries[key] = entry
        sources: dict[str, str] = {}
        raw_sources = raw.get(_SOURCES_FIELD)
        if isinstance(raw_sources, dict):
            sources = {str(key): value for key, value in raw_sources.items() if isinstance(value, str)}
        return entries, sources

    def lookup(self, fingerprint: str) -> SourceArtifact | None:
        """Return the artifact stored for ``fingerprint`` or ``None`` on a miss.

        Corrupted entries degrade to a miss and are flagged for removal on the
        next :meth:`flush`.

        Args:
            fingerprint: Fingerprint computed for the current inputs.

        Returns:
            SourceArtifact | None: Stored artifact, or ``None``.
        """

        entries = self._ensure_loaded()
        with self._lock.read():
            entry = entries.get(fingerprint)
            flagged = fingerprint in self._corrupt
        if entry is None or flagged:
            self._count(misses=1)
            return None
        try:
            artifact = self._read_artifact(fingerprint)
        except CacheCorruptionError as exc:
            LOGGER.warning("%s; recompiling", exc)
            with self._lock.write():
                self._corrupt.add(fingerprint)
            self._count(corrupt=1, misses=1)
            return None
        self._count(hits=1)
        return artifact

    def _read_artifact(self, fingerprint: str) -> SourceArtifact:
        path = self._artifact_path(fingerprint)
        try:
            artifact = SourceArtifact.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise CacheCorruptionError(f"cache entry {fingerprint} points at unreadable data {path}") from exc
        if artifact.fingerprint != fingerprint:
            raise CacheCorruptionError(f"cache entry {fingerprint} holds an artifact for {artifact.fingerprint}")
        return artifact

    def store(self, fingerprint: str, artifact: SourceArtifact) -> None:
        """Persist ``artifact`` under ``fingerprint``, ignoring disk errors.

        Args:
            fingerprint: Fingerprint the artifact was compiled for.
            artifact: Artifact to persist; its ``fingerprint`` must match.

        Raises:
            ValueError: If ``artifact`` was produced for another fingerprint or
                ``fingerprint`` is not a plain token.
        """

        if artifact.fingerprint != fingerprint:
            raise ValueError(f"artifact fingerprint {artifact.fingerprint} does not match {fingerprint}")
        if not _FINGERPRINT_PATTERN.fullmatch(fingerprint):
            raise ValueError(f"invalid fingerprint {fingerprint!r}")
        entries = self._ensure_loaded()
        path = self._artifact_path(fingerprint)
        try:
            _atomic_write(path, artifact.model_dump_json(by_alias=True))
        except OSError as exc:
            # Cache writes are best-effort; the next build recompiles.
            LOGGER.warning("failed to write cache artifact %s: %s", path, exc)
            return
        entry = IndexEntry(
            artifact=self._artifact_relpath(fingerprint),
            source=artifact.source,
            compiler_version=artifact.compiler_version,
        )
        with self._lock.write():
            entries[fingerprint] = entry
            self._corrupt.discard(fingerprint)
        self._count(stores=1)

    def record_sources(self, fingerprints: Mapping[Path, str]) -> None:
        """Remember which fingerprint each source path produced most recently."""

        self._ensure_loaded()
        with self._lock.write():
            for path, fingerprint in fingerprints.items():
                self._sources[path.as_posix()] = fingerprint

    def stale_sources(self, current: Iterable[Path]) -> list[str]:
        """Return recorded source paths that are absent from ``current``.

        Args:
            current: Every source path known to the current build.

        Returns:
            list[str]: Sorted paths that disappeared since they were recorded.
        """

        self._ensure_loaded()
        present = {path.as_posix() for path in current}
        with self._lock.read():
            return sorted(path for path in self._sources if path not in present)

    def forget_sources(self, paths: Iterable[str]) -> None:
        """Drop source bookkeeping for ``paths``."""

        self._ensure_loaded()
        with self._lock.write():
            for path in paths:
                self._sources.pop(path, None)

    def live_fingerprints(self) -> set[str]:
        """Return the fingerprints currently referenced by recorded sources."""

        self._ensure_loaded()
        with self._lock.read():
            return set(self._sources.values())

    def prune(self, live: Iterable[str]) -> int:
        """Remove index entries and artifact files not in ``live``.

        Args:
            live: Fingerprints still reachable from current sources.

        Returns:
            int: Number of entries removed.
        """

        entries = self._ensure_loaded()
        keep = set(live)
        with self._lock.write():
            doomed = [fingerprint for fingerprint in entries if fingerprint not in keep]
            for fingerprint in doomed:
                entries.pop(fingerprint)
                self._artifact_path(fingerprint).unlink(missing_ok=True)
                self._corrupt.discard(fingerprint)
            self._sources = {path: value for path, value in self._sources.items() if value in keep}
        return len(doomed)

    def flush(self) -> None:
        """Write the index to disk, dropping entries flagged as corrupt."""

        entries = self._ensure_loaded()
        with self._lock.write():
            for fingerprint in self._corrupt:
                if entries.pop(fingerprint, None) is not None:
                    self._artifact_path(fingerprint).unlink(missing_ok=True)
            self._corrupt.clear()
            payload = {
                _FORMAT_FIELD: CACHE_FORMAT,
                _ENTRIES_FIELD: {key: value.model_dump() for key, value in sorted(entries.items())},
                _SOURCES_FIELD: dict(sorted(self._sources.items())),
            }
            try:
                _atomic_write(self.index_path, json.dumps(payload, indent=2))
            except OSError as exc:
                LOGGER.warning("failed to write cache index %s: %s", self.index_path, exc)

    def clear(self) -> None:
        """Delete every cached artifact and the index."""

        with self._lock.write():
            if self.directory.exists():
                shutil.rmtree(self.directory)
            self._entries = {}
            self._sources = {}
            self._corrupt.clear()

    def __contains__(self, fingerprint: object) -> bool:
        entries = self._ensure_loaded()
        with self._lock.read():
            return fingerprint in entries

    def __len__(self) -> int:
        entries = self._ensure_loaded()
        with self._lock.read():
            return len(entries)


__all__ = [
    "ARTIFACTS_DIRNAME",
    "ArtifactCache",
    "CACHE_FORMAT",
    "CacheStats",
    "ContractArtifact",
    "INDEX_FILENAME",
    "IndexEntry",
    "SourceArtifact",
]
