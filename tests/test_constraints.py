# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for pragma constraint parsing and interval arithmetic."""

from __future__ import annotations

import pytest
from packaging.version import Version

from solbuild.errors import InvalidConstraintError
from solbuild.versions.constraints import VersionConstraint, intersect_all


@pytest.mark.parametrize(
    ("text", "inside", "outside"),
    [
        ("^0.8.0", ["0.8.0", "0.8.26"], ["0.7.6", "0.9.0"]),
        ("^0.0.3", ["0.0.3"], ["0.0.4"]),
        ("~0.8.1", ["0.8.1", "0.8.99"], ["0.8.0", "0.9.0"]),
        (">=0.8.0 <0.9.0", ["0.8.0", "0.8.24"], ["0.9.0"]),
        (">0.8.4", ["0.8.5"], ["0.8.4"]),
        ("<=0.8", ["0.8.30"], ["0.9.0"]),
        ("0.8.x", ["0.8.0", "0.8.9"], ["0.7.9", "0.9.0"]),
        ("=0.8.19", ["0.8.19"], ["0.8.20"]),
        ("0.7.0 - 0.7.6", ["0.7.0", "0.7.6"], ["0.7.7"]),
        ("^0.6.0 || ^0.8.0", ["0.6.12", "0.8.1"], ["0.7.6"]),
        ("*", ["0.4.26", "0.8.0"], []),
    ],
)
def test_constraint_membership(text: str, inside: list[str], outside: list[str]) -> None:
    constraint = VersionConstraint.parse(text)

    for version in inside:
        assert constraint.contains(Version(version)), version
    for version in outside:
        assert not constraint.contains(Version(version)), version


def test_missing_pragma_is_unconstrained() -> None:
    assert VersionConstraint.parse(None).contains(Version("0.4.11"))
    assert VersionConstraint.parse("  ").contains(Version("0.8.26"))


def test_disjoint_constraints_intersect_to_empty() -> None:
    caret_eight = VersionConstraint.parse("^0.8.0")
    caret_seven = VersionConstraint.parse("^0.7.0")

    assert caret_eight.intersect(caret_seven).is_empty
    assert not caret_eight.overlaps(caret_seven)
    assert intersect_all([caret_eight, caret_seven]).is_empty


def test_highest_picks_largest_satisfying_candidate() -> None:
    constraint = intersect_all([VersionConstraint.parse(">=0.8.0"), VersionConstraint.parse("<0.8.20")])
    candidates = [Version(item) for item in ("0.7.6", "0.8.19", "0.8.24")]

    assert constraint.highest(candidates) == Version("0.8.19")
    assert VersionConstraint.parse("^0.6.0").highest(candidates) is None


@pytest.mark.parametrize("text", ["banana", ">=", "0.8.0 ||"])
def test_invalid_constraints_raise(text: str) -> None:
    with pytest.raises(InvalidConstraintError):
        VersionConstraint.parse(text)
