# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Solidity version pragma parsing and interval arithmetic.

A constraint is a union of intervals over :class:`packaging.version.Version`.
Comparators separated by whitespace intersect, ``||`` separates alternatives,
and the npm-style shorthands used by Solidity pragmas (``^``, ``~``,
wildcards, hyphen ranges, partial versions) are expanded into plain bounds.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Final

from packaging.version import Version

from ..errors import InvalidConstraintError

_WILDCARDS: Final[frozenset[str]] = frozenset({"x", "X", "*"})
_COMPARATOR_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?P<op>\^|~|>=|<=|>|<|=)?\s*v?(?P<version>(?:\d+|[xX*])(?:\.(?:\d+|[xX*])){0,2})(?:[-+][0-9A-Za-z.\-+]*)?",
)
_HYPHEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"^\s*(?P<low>\S+)\s+-\s+(?P<high>\S+)\s*$")


@dataclass(frozen=True, slots=True)
class _Partial:
    """Version literal that may omit or wildcard trailing components."""

    parts: tuple[int, ...]

    @classmethod
    def parse(cls, text: str) -> _Partial:
        parts: list[int] = []
        for token in text.lstrip("v").split("."):
            if token in _WILDCARDS:
                break
            parts.append(int(token))
        return cls(tuple(parts))

    @property
    def precision(self) -> int:
        return len(self.parts)

    def floor(self) -> Version:
        padded = (*self.parts, 0, 0, 0)[:3]
        return Version(".".join(str(part) for part in padded))

    def bump(self, index: int) -> Version:
        """Return the smallest version above every version sharing ``parts[:index+1]``."""

        head = list((*self.parts, 0, 0, 0)[:3])
        head[index] += 1
        for position in range(index + 1, 3):
            head[position] = 0
        return Version(".".join(str(part) for part in head))


@dataclass(frozen=True, slots=True)
class VersionRange:
    """Interval of versions; ``None`` bounds are unbounded."""

    lower: Version | None = None
    lower_inclusive: bool = True
    upper: Version | None = None
    upper_inclusive: bool = False

    @property
    def is_empty(self) -> bool:
        """Return whether no version can satisfy the interval."""

        if self.lower is None or self.upper is None:
            return False
        if self.lower > self.upper:
            return True
        if self.lower == self.upper:
            return not (self.lower_inclusive and self.upper_inclusive)
        return False

    def contains(self, version: Version) -> bool:
        """Return whether ``version`` lies inside the interval."""

        if self.lower is not None:
            if version < self.lower or (version == self.lower and not self.lower_inclusive):
                return False
        if self.upper is not None:
            if version > self.upper or (version == self.upper and not self.upper_inclusive):
                return False
        return True

    def intersect(self, other: VersionRange) -> VersionRange:
        """Return the overlap of two intervals, possibly empty."""

        lower, lower_inclusive = _tighter_lower(
            (self.lower, self.lower_inclusive),
            (other.lower, other.lower_inclusive),
        )
        upper, upper_inclusive = _tighter_upper(
            (self.upper, self.upper_inclusive),
            (other.upper, other.upper_inclusive),
        )
        return VersionRange(lower, lower_inclusive, upper, upper_inclusive)

    def __str__(self) -> str:
        parts: list[str] = []
        if self.lower is not None:
            parts.append(f"{'>=' if self.lower_inclusive else '>'}{self.lower}")
        if self.upper is not None:
            parts.append(f"{'<=' if self.upper_inclusive else '<'}{self.upper}")
        return " ".join(parts) or "*"


def _tighter_lower(
    first: tuple[Version | None, bool],
    second: tuple[Version | None, bool],
) -> tuple[Version | None, bool]:
    if first[0] is None:
        return second
    if second[0] is None:
        return first
    if first[0] != second[0]:
        return first if first[0] > second[0] else second
    return first[0], first[1] and second[1]


def _tighter_upper(
    first: tuple[Version | None, bool],
    second: tuple[Version | None, bool],
) -> tuple[Version | None, bool]:
    if first[0] is None:
        return second
    if second[0] is None:
        return first
    if first[0] != second[0]:
        return first if first[0] < second[0] else second
    return first[0], first[1] and second[1]


_ANY: Final[VersionRange] = VersionRange()


def _comparator_range(op: str, partial: _Partial) -> VersionRange:
    """Expand one comparator into an interval following npm semantics."""

    if partial.precision == 0:
        if op in {"<", ">"}:
            # ``<*`` and ``>*`` match nothing.
            return VersionRange(Version("0"), False, Version("0"), False)
        return _ANY
    floor = partial.floor()
    last = partial.precision - 1
    if op == "^":
        parts = (*partial.parts, 0, 0, 0)[:3]
        if parts[0] != 0 or partial.precision == 1:
            return VersionRange(floor, True, partial.bump(0), False)
        if parts[1] != 0 or partial.precision == 2:
            return VersionRange(floor, True, partial.bump(1), False)
        return VersionRange(floor, True, partial.bump(2), False)
    if op == "~":
        index = 0 if partial.precision == 1 else 1
        return VersionRange(floor, True, partial.bump(index), False)
    if op == ">=":
        return VersionRange(floor, True, None, False)
    if op == ">":
        if partial.precision == 3:
            return VersionRange(floor, False, None, False)
        return VersionRange(partial.bump(last), True, None, False)
    if op == "<":
        return VersionRange(None, True, floor, False)
    if op == "<=":
        if partial.precision == 3:
            return VersionRange(None, True, floor, True)
        return VersionRange(None, True, partial.bump(last), False)
    if partial.precision == 3:
        return VersionRange(floor, True, floor, True)
    return VersionRange(floor, True, partial.bump(last), False)


def _parse_conjunction(text: str, source: str) -> VersionRange:
    """Parse whitespace separated comparators into their intersection."""

    hyphen = _HYPHEN_PATTERN.match(text)
    if hyphen is not None:
        low = _comparator_range(">=", _Partial.parse(hyphen.group("low")))
        high = _comparator_range("<=", _Partial.parse(hyphen.group("high")))
        return low.intersect(high)

    result = _ANY
    position = 0
    stripped = text.strip()
    if not stripped:
        raise InvalidConstraintError(f"empty version constraint in '{source}'")
    while position < len(stripped):
        if stripped[position].isspace() or stripped[position] == ",":
            position += 1
            continue
        match = _COMPARATOR_PATTERN.match(stripped, position)
        if match is None or match.end() == position:
            raise InvalidConstraintError(f"invalid version constraint '{source}'")
        op = match.group("op") or "="
        result = result.intersect(_comparator_range(op, _Partial.parse(match.group("version"))))
        position = match.end()
    return result


@dataclass(frozen=True, slots=True)
class VersionConstraint:
    """Union of version intervals parsed from a pragma."""

    ranges: tuple[VersionRange, ...]
    source: str = "*"

    @classmethod
    def parse(cls, text: str | None) -> VersionConstraint:
        """Parse pragma text such as ``>=0.8.0 <0.9.0`` or ``^0.7.0 || ^0.8.0``.

        Args:
            text: Raw constraint; ``None`` or blank means unconstrained.

        Returns:
            VersionConstraint: Parsed constraint.

        Raises:
            InvalidConstraintError: If the text is not a valid constraint.
        """

        if text is None or not text.strip():
            return cls.any()
        alternatives = [_parse_conjunction(part, text) for part in text.split("||")]
        return cls(tuple(item for item in alternatives if not item.is_empty), source=" ".join(text.split()))

    @classmethod
    def any(cls) -> VersionConstraint:
        """Return the constraint satisfied by every version."""

        return cls((_ANY,), source="*")

    @property
    def is_empty(self) -> bool:
        """Return whether no version satisfies the constraint."""

        return not self.ranges

    def contains(self, version: Version) -> bool:
        """Return whether ``version`` satisfies the constraint."""

        return any(item.contains(version) for item in self.ranges)

    def intersect(self, other: VersionConstraint) -> VersionConstraint:
        """Return the constraint satisfied by versions meeting both operands."""

        ranges = [mine.intersect(theirs) for mine in self.ranges for theirs in other.ranges]
        return VersionConstraint(
            tuple(item for item in ranges if not item.is_empty),
            source=f"{self.source} & {other.source}",
        )

    def overlaps(self, other: VersionConstraint) -> bool:
        """Return whether some version satisfies both constraints."""

        return not self.intersect(other).is_empty

    def highest(self, candidates: Iterable[Version]) -> Version | None:
        """Return the highest candidate satisfying the constraint, if any."""

        matching = [version for version in candidates if self.contains(version)]
        return max(matching) if matching else None

    def __str__(self) -> str:
        return self.source


def intersect_all(constraints: Iterable[VersionConstraint]) -> VersionConstraint:
    """Return the intersection of ``constraints`` (unconstrained when empty)."""

    result = VersionConstraint.any()
    for constraint in constraints:
        result = result.intersect(constraint)
    return result


__all__ = ["VersionConstraint", "VersionRange", "intersect_all"]
