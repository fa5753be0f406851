# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for the fingerprint-addressed artifact cache."""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from solbuild.cache.store import CACHE_FORMAT, ArtifactCache, ContractArtifact, SourceArtifact
from solbuild.compiler.contracts import Diagnostic, Severity


def make_artifact(fingerprint: str, source: str = "/project/contracts/Token.sol") -> SourceArtifact:
    return SourceArtifact(
        source=source,
        fingerprint=fingerprint,
        compiler_version="0.8.24",
        contracts={"Token": ContractArtifact(name="Token", abi=[], bytecode="6080", deployed_bytecode="6081")},
        diagnostics=[Diagnostic(severity=Severity.WARNING, message="unused variable", errorCode="2072")],
    )


def test_store_then_lookup_survives_restart(tmp_path: Path) -> None:
    cache = ArtifactCache(tmp_path / "cache")
    cache.store("abc", make_artifact("abc"))
    cache.flush()

    reopened = ArtifactCache(tmp_path / "cache")
    loaded = reopened.lookup("abc")

    assert loaded is not None
    assert loaded.contracts["Token"].bytecode == "6080"
    assert loaded.diagnostics[0].error_code == "2072"
    assert reopened.stats.hits == 1
    assert (tmp_path / "cache" / "artifacts" / "abc.json").is_file()


def test_lookup_of_unknown_fingerprint_is_a_miss(tmp_path: Path) -> None:
    cache = ArtifactCache(tmp_path / "cache")

    assert cache.lookup("missing") is None
    assert cache.stats.misses == 1


def test_corrupt_artifact_degrades_to_miss_and_is_pruned_on_flush(tmp_path: Path) -> None:
    cache = ArtifactCache(tmp_path / "cache")
    cache.store("abc", make_artifact("abc"))
    artifact_file = tmp_path / "cache" / "artifacts" / "abc.json"
    artifact_file.write_text("{not json", encoding="utf-8")

    assert cache.lookup("abc") is None
    assert cache.stats.corrupt == 1

    cache.flush()

    assert "abc" not in cache
    assert not artifact_file.exists()
    index = json.loads((tmp_path / "cache" / "index.json").read_text(encoding="utf-8"))
    assert index["entries"] == {}


def test_unknown_index_format_starts_empty(tmp_path: Path) -> None:
    directory = tmp_path / "cache"
    directory.mkdir()
    (directory / "index.json").write_text(json.dumps({"format": "solbuild-cache-99", "entries": {}}), encoding="utf-8")

    cache = ArtifactCache(directory)

    assert len(cache) == 0
    assert cache.lookup("abc") is None


def test_unrecognised_index_entries_are_skipped(tmp_path: Path) -> None:
    directory = tmp_path / "cache"
    cache = ArtifactCache(directory)
    cache.store("good", make_artifact("good"))
    cache.flush()
    index_path = directory / "index.json"
    index = json.loads(index_path.read_text(encoding="utf-8"))
    index["entries"]["strange"] = {"layout": "from-the-future"}
    index_path.write_text(json.dumps(index), encoding="utf-8")

    reopened = ArtifactCache(directory)

    assert reopened.lookup("strange") is None
    assert reopened.lookup("good") is not None
    assert index["format"] == CACHE_FORMAT


def test_prune_removes_unreachable_entries(tmp_path: Path) -> None:
    cache = ArtifactCache(tmp_path / "cache")
    cache.store("keep", make_artifact("keep"))
    cache.store("drop", make_artifact("drop"))

    removed = cache.prune({"keep"})

    assert removed == 1
    assert "keep" in cache
    assert "drop" not in cache
    assert not (tmp_path / "cache" / "artifacts" / "drop.json").exists()


def test_source_bookkeeping_detects_removed_files(tmp_path: Path) -> None:
    cache = ArtifactCache(tmp_path / "cache")
    kept = Path("/project/contracts/Kept.sol")
    removed = Path("/project/contracts/Removed.sol")
    cache.record_sources({kept: "one", removed: "two"})
    cache.flush()

    reopened = ArtifactCache(tmp_path / "cache")

    assert reopened.stale_sources([kept]) == [removed.as_posix()]
    reopened.forget_sources([removed.as_posix()])
    assert reopened.live_fingerprints() == {"one"}


def test_storing_the_same_fingerprint_twice_is_idempotent(tmp_path: Path) -> None:
    cache = ArtifactCache(tmp_path / "cache")
    cache.store("abc", make_artifact("abc"))
    cache.store("abc", make_artifact("abc"))

    assert len(cache) == 1
    assert cache.lookup("abc") == make_artifact("abc")


def test_clear_removes_everything(tmp_path: Path) -> None:
    cache = ArtifactCache(tmp_path / "cache")
    cache.store("abc", make_artifact("abc"))
    cache.flush()

    cache.clear()

    assert not (tmp_path / "cache").exists()
    assert cache.lookup("abc") is None


def test_concurrent_stores_and_lookups_keep_index_and_stats_consistent(tmp_path: Path) -> None:
    cache = ArtifactCache(tmp_path / "cache")
    keys = [f"fp{index}" for index in range(8)]

    def _work(index: int) -> SourceArtifact | None:
        key = keys[index % len(keys)]
        cache.store(key, make_artifact(key))
        cache.store("shared", make_artifact("shared"))
        cache.lookup("absent")
        return cache.lookup(key)

    with ThreadPoolExecutor(max_workers=8) as executor:
        loaded = list(executor.map(_work, range(64)))
    cache.flush()

    assert all(item is not None for item in loaded)
    assert cache.stats.stores == 128
    assert cache.stats.hits == 64
    assert cache.stats.misses == 64
    index = json.loads((tmp_path / "cache" / "index.json").read_text(encoding="utf-8"))
    assert set(index["entries"]) == {*keys, "shared"}
    artifacts = tmp_path / "cache" / "artifacts"
    assert sorted(path.name for path in artifacts.iterdir()) == sorted(f"{key}.json" for key in (*keys, "shared"))
    reopened = ArtifactCache(tmp_path / "cache")
    assert reopened.lookup("shared") == make_artifact("shared")


def test_index_entries_pointing_outside_the_cache_are_dropped(tmp_path: Path) -> None:
    directory = tmp_path / "cache"
    outside = tmp_path / "outside.json"
    outside.write_text("{}", encoding="utf-8")
    cache = ArtifactCache(directory)
    cache.store("good", make_artifact("good"))
    cache.flush()
    index_path = directory / "index.json"
    index = json.loads(index_path.read_text(encoding="utf-8"))
    entry = index["entries"]["good"]
    index["entries"]["escape"] = {**entry, "artifact": "../outside.json"}
    index["entries"]["../outside"] = {**entry, "artifact": "artifacts/../outside.json"}
    index_path.write_text(json.dumps(index), encoding="utf-8")

    reopened = ArtifactCache(directory)

    assert "escape" not in reopened
    assert "../outside" not in reopened
    assert reopened.lookup("escape") is None
    assert reopened.prune(set()) == 1
    reopened.flush()
    assert outside.is_file()


def test_store_rejects_fingerprints_that_are_not_plain_tokens(tmp_path: Path) -> None:
    cache = ArtifactCache(tmp_path / "cache")

    with pytest.raises(ValueError, match="invalid fingerprint"):
        cache.store("../escape", make_artifact("../escape"))

    assert len(cache) == 0
    assert not (tmp_path / "escape.json").exists()
