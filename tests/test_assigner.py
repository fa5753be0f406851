# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for partitioning import graphs into compilation batches."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from conftest import FakeToolchain, write_sources
from packaging.version import Version

from solbuild.config.models import UnconstrainedPolicy
from solbuild.errors import MissingImportError, ToolchainUnavailableError, VersionConflictError
from solbuild.resolver.graph import ImportGraph, ImportResolver
from solbuild.versions.assigner import VersionAssigner


def build_graph(root: Path, files: Mapping[str, str]) -> tuple[ImportGraph, dict[str, Path]]:
    paths = write_sources(root, files)
    return ImportResolver(root=root).resolve(paths.values()), paths


def test_unconstrained_importer_follows_its_dependency(tmp_path: Path, toolchain: FakeToolchain) -> None:
    graph, paths = build_graph(
        tmp_path,
        {"A.sol": 'import "./B.sol";\ncontract A {}', "B.sol": "pragma solidity >=0.8.0 <0.9.0;\ncontract B {}"},
    )

    assignment = VersionAssigner(toolchain).assign(graph)

    assert not assignment.failures
    assert len(assignment.batches) == 1
    assert assignment.batches[0].version == Version("0.8.24")
    assert assignment.batches[0].files == frozenset(paths.values())


def test_changing_dependency_pragma_moves_the_batch(tmp_path: Path, toolchain: FakeToolchain) -> None:
    graph, _ = build_graph(
        tmp_path,
        {"A.sol": 'import "./B.sol";', "B.sol": "pragma solidity >=0.7.0 <0.8.0;"},
    )

    assignment = VersionAssigner(toolchain).assign(graph)

    assert not assignment.failures
    assert [batch.version for batch in assignment.batches] == [Version("0.7.6")]


def test_incompatible_pragmas_across_an_import_conflict(tmp_path: Path, toolchain: FakeToolchain) -> None:
    graph, paths = build_graph(
        tmp_path,
        {"C.sol": 'pragma solidity ^0.8.0;\nimport "./D.sol";', "D.sol": "pragma solidity ^0.7.0;"},
    )

    assignment = VersionAssigner(toolchain).assign(graph)

    assert assignment.batches == []
    (failure,) = assignment.failures
    (error,) = failure.errors
    assert isinstance(error, VersionConflictError)
    assert set(error.files) == {paths["C.sol"], paths["D.sol"]}
    assert set(error.constraints) == {"^0.8.0", "^0.7.0"}


def test_conflict_only_fails_its_own_component(tmp_path: Path, toolchain: FakeToolchain) -> None:
    graph, paths = build_graph(
        tmp_path,
        {
            "C.sol": 'pragma solidity ^0.8.0;\nimport "./D.sol";',
            "D.sol": "pragma solidity ^0.7.0;",
            "Fine.sol": "pragma solidity ^0.8.0;",
        },
    )

    assignment = VersionAssigner(toolchain).assign(graph)

    assert [batch.files for batch in assignment.batches] == [frozenset({paths["Fine.sol"]})]
    assert len(assignment.failures) == 1


def test_components_sharing_a_version_share_a_batch(tmp_path: Path, toolchain: FakeToolchain) -> None:
    graph, _ = build_graph(
        tmp_path,
        {
            "One.sol": "pragma solidity ^0.8.0;",
            "Two.sol": "pragma solidity >=0.8.10;",
            "Old.sol": "pragma solidity ^0.7.0;",
        },
    )

    assignment = VersionAssigner(toolchain).assign(graph)

    assert [(batch.version, len(batch.components)) for batch in assignment.batches] == [
        (Version("0.7.6"), 1),
        (Version("0.8.24"), 2),
    ]


def test_installed_versions_are_preferred(tmp_path: Path, toolchain: FakeToolchain) -> None:
    graph, _ = build_graph(tmp_path, {"New.sol": "pragma solidity >=0.8.25;"})

    online = VersionAssigner(toolchain).assign(graph)
    offline = VersionAssigner(toolchain, offline=True).assign(graph)

    assert [batch.version for batch in online.batches] == [Version("0.8.26")]
    assert offline.batches == []
    assert isinstance(offline.failures[0].errors[0], ToolchainUnavailableError)


def test_unconstrained_policies(tmp_path: Path, toolchain: FakeToolchain) -> None:
    graph, _ = build_graph(tmp_path, {"Free.sol": "contract Free {}"})

    unset = VersionAssigner(toolchain).assign(graph)
    configured = VersionAssigner(toolchain, default_version=Version("0.8.19")).assign(graph)
    installed = VersionAssigner(toolchain, policy=UnconstrainedPolicy.LATEST_INSTALLED).assign(graph)
    known = VersionAssigner(toolchain, policy=UnconstrainedPolicy.LATEST_KNOWN).assign(graph)

    assert isinstance(unset.failures[0].errors[0], ToolchainUnavailableError)
    assert configured.batches[0].version == Version("0.8.19")
    assert installed.batches[0].version == Version("0.8.24")
    assert known.batches[0].version == Version("0.8.26")


def test_missing_import_fails_the_component(tmp_path: Path, toolchain: FakeToolchain) -> None:
    graph, paths = build_graph(tmp_path, {"A.sol": 'pragma solidity ^0.8.0;\nimport "./Gone.sol";'})

    assignment = VersionAssigner(toolchain).assign(graph)

    (failure,) = assignment.failures
    assert failure.files == frozenset({paths["A.sol"]})
    assert isinstance(failure.errors[0], MissingImportError)
