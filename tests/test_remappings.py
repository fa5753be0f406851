# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for remapping parsing, matching and detection."""

from __future__ import annotations

from pathlib import Path

import pytest

from solbuild.errors import RemappingError
from solbuild.resolver.remappings import (
    Remapping,
    RemappingSet,
    detect_remappings,
    parse_remapping,
    read_remappings_file,
)


def test_longest_prefix_wins() -> None:
    remappings = RemappingSet.parse(["lib/=vendor/", "lib/foo/=packages/foo/src/"])

    nested = remappings.match("lib/foo/Token.sol")
    general = remappings.match("lib/bar/Token.sol")

    assert nested is not None and nested.apply("lib/foo/Token.sol") == "packages/foo/src/Token.sol"
    assert general is not None and general.apply("lib/bar/Token.sol") == "vendor/bar/Token.sol"
    assert remappings.match("other/Token.sol") is None


def test_identical_duplicates_collapse() -> None:
    remappings = RemappingSet.parse(["oz/=lib/oz/", "oz/=lib/oz/"])

    assert len(remappings) == 1
    assert "oz/" in remappings


def test_conflicting_prefix_is_rejected() -> None:
    with pytest.raises(RemappingError, match="conflicting remappings"):
        RemappingSet.parse(["oz/=lib/oz/", "oz/=lib/other/"])


@pytest.mark.parametrize("text", ["missing-separator", "=target/", "prefix/="])
def test_parse_remapping_rejects_malformed_entries(text: str) -> None:
    with pytest.raises(RemappingError):
        parse_remapping(text)


def test_extended_keeps_existing_targets() -> None:
    configured = RemappingSet.parse(["oz/=custom/oz/"])

    combined = configured.extended([Remapping("oz/", "lib/oz/"), Remapping("ds-test/", "lib/ds-test/src/")])

    assert str(combined.match("oz/Token.sol")) == "oz/=custom/oz/"
    assert "ds-test/" in combined


def test_read_remappings_file_skips_comments(tmp_path: Path) -> None:
    path = tmp_path / "remappings.txt"
    path.write_text("# vendored\n\noz/=lib/oz/\n  ds-test/=lib/ds-test/src/  \n", encoding="utf-8")

    assert read_remappings_file(path) == ["oz/=lib/oz/", "ds-test/=lib/ds-test/src/"]
    assert read_remappings_file(tmp_path / "absent.txt") == []


def test_detect_remappings_prefers_src_directory(tmp_path: Path) -> None:
    library = tmp_path / "lib"
    (library / "forge-std" / "src").mkdir(parents=True)
    (library / "solmate").mkdir()
    (library / ".cache").mkdir()

    detected = {item.prefix: item.target for item in detect_remappings([library])}

    assert detected == {
        "forge-std/": f"{(library / 'forge-std' / 'src').as_posix()}/",
        "solmate/": f"{(library / 'solmate').as_posix()}/",
    }
