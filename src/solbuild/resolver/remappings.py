# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Import path remappings using ``prefix=target`` syntax."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from ..errors import RemappingError

REMAPPING_SEPARATOR: Final[str] = "="
REMAPPINGS_FILENAME: Final[str] = "remappings.txt"
_LIBRARY_SOURCE_DIR: Final[str] = "src"


@dataclass(frozen=True, slots=True)
class Remapping:
    """Rewrite rule applied to the leading segment of an import string."""

    prefix: str
    target: str

    def matches(self, import_path: str) -> bool:
        """Return whether ``import_path`` starts with this remapping's prefix."""

        return import_path.startswith(self.prefix)

    def apply(self, import_path: str) -> str:
        """Return ``import_path`` with the prefix replaced by the target.

        Args:
            import_path: Raw import string that matches :attr:`prefix`.

        Returns:
            str: Rewritten import path.
        """

        return self.target + import_path[len(self.prefix) :]

    def __str__(self) -> str:
        return f"{self.prefix}{REMAPPING_SEPARATOR}{self.target}"


def parse_remapping(text: str) -> Remapping:
    """Parse a ``prefix=target`` remapping.

    Args:
        text: Remapping specification.

    Returns:
        Remapping: Parsed remapping.

    Raises:
        RemappingError: If either side of the separator is missing.
    """

    raw = text.strip()
    prefix, separator, target = raw.partition(REMAPPING_SEPARATOR)
    if not separator or not prefix.strip() or not target.strip():
        raise RemappingError(f"invalid remapping '{text}': expected 'prefix=target'")
    return Remapping(prefix=prefix.strip(), target=target.strip())


class RemappingSet:
    """Validated, order-independent collection of remappings.

    Identical duplicates collapse; two remappings sharing a prefix but naming
    different targets are rejected. Lookups use longest-prefix matching.
    """

    def __init__(self, remappings: Iterable[Remapping] = ()) -> None:
        """Validate ``remappings`` and index them by prefix.

        Args:
            remappings: Remappings to include.

        Raises:
            RemappingError: If two remappings share a prefix with different targets.
        """

        by_prefix: dict[str, Remapping] = {}
        for remapping in remappings:
            existing = by_prefix.get(remapping.prefix)
            if existing is not None and existing.target != remapping.target:
                raise RemappingError(
                    f"conflicting remappings for prefix '{remapping.prefix}': "
                    f"'{existing.target}' and '{remapping.target}'",
                )
            by_prefix[remapping.prefix] = remapping
        self._by_prefix = by_prefix
        self._ordered: tuple[Remapping, ...] = tuple(
            sorted(by_prefix.values(), key=lambda item: (-len(item.prefix), item.prefix)),
        )

    @classmethod
    def parse(cls, entries: Iterable[str]) -> RemappingSet:
        """Build a set from raw ``prefix=target`` strings."""

        return cls(parse_remapping(entry) for entry in entries)

    def match(self, import_path: str) -> Remapping | None:
        """Return the remapping with the longest prefix matching ``import_path``.

        Args:
            import_path: Raw import string.

        Returns:
            Remapping | None: Best match, or ``None`` when no prefix applies.
        """

        for remapping in self._ordered:
            if remapping.matches(import_path):
                return remapping
        return None

    def extended(self, extra: Iterable[Remapping]) -> RemappingSet:
        """Return a new set adding ``extra`` entries whose prefixes are not yet taken.

        Args:
            extra: Lower priority remappings such as auto-detected ones.

        Returns:
            RemappingSet: Combined set; existing prefixes keep their targets.
        """

        combined = list(self._ordered)
        combined.extend(item for item in extra if item.prefix not in self._by_prefix)
        return RemappingSet(combined)

    def __iter__(self) -> Iterator[Remapping]:
        return iter(self._ordered)

    def __len__(self) -> int:
        return len(self._ordered)

    def __contains__(self, prefix: object) -> bool:
        return prefix in self._by_prefix


def read_remappings_file(path: Path) -> list[str]:
    """Return remapping lines stored in ``path``, ignoring blanks and comments.

    Args:
        path: Location of a ``remappings.txt`` style file.

    Returns:
        list[str]: Raw remapping entries; empty when the file is absent.
    """

    if not path.is_file():
        return []
    entries: list[str] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("#"):
            entries.append(stripped)
    return entries


def detect_remappings(library_dirs: Sequence[Path]) -> list[Remapping]:
    """Infer ``name/`` remappings for dependencies installed under ``library_dirs``.

    A dependency ``lib/<name>`` maps ``<name>/`` onto its ``src`` directory
    when present, otherwise onto the dependency root. Scoped or hidden
    directories (``@org``, ``.cache``) are left to library-path fallback.

    Args:
        library_dirs: Absolute library directories in priority order.

    Returns:
        list[Remapping]: Detected remappings; earlier directories win.
    """

    detected: dict[str, Remapping] = {}
    for library_dir in library_dirs:
        if not library_dir.is_dir():
            continue
        for child in sorted(library_dir.iterdir()):
            if not child.is_dir() or child.name.startswith((".", "@")):
                continue
            prefix = f"{child.name}/"
            if prefix in detected:
                continue
            source_dir = child / _LIBRARY_SOURCE_DIR
            target = source_dir if source_dir.is_dir() else child
            detected[prefix] = Remapping(prefix=prefix, target=f"{target.as_posix()}/")
    return list(detected.values())


__all__ = [
    "REMAPPINGS_FILENAME",
    "Remapping",
    "RemappingSet",
    "detect_remappings",
    "parse_remapping",
    "read_remappings_file",
]
