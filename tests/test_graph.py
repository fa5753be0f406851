# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for import resolution and graph traversal."""

from __future__ import annotations

from pathlib import Path

import pytest
from conftest import write_sources

from solbuild.errors import MissingImportError, SourceReadError
from solbuild.resolver.graph import ImportResolver
from solbuild.resolver.remappings import RemappingSet
from solbuild.sources import SourceReader


def test_relative_imports_and_cycles(tmp_path: Path) -> None:
    paths = write_sources(
        tmp_path,
        {
            "src/A.sol": 'import "./B.sol";\ncontract A {}',
            "src/B.sol": 'import "./A.sol";\nimport "../shared/C.sol";\ncontract B {}',
            "shared/C.sol": 'import "./C.sol";\ncontract C {}',
        },
    )
    resolver = ImportResolver(root=tmp_path)

    graph = resolver.resolve([paths["src/A.sol"]])

    assert set(graph.files) == set(paths.values())
    assert graph.imports_of(paths["src/A.sol"]) == {paths["src/B.sol"]}
    assert graph.imports_of(paths["shared/C.sol"]) == {paths["shared/C.sol"]}
    assert graph.transitive_imports(paths["src/A.sol"]) == {paths["src/B.sol"], paths["shared/C.sol"]}
    assert graph.importers(paths["src/A.sol"]) == {paths["src/B.sol"]}
    assert graph.dependents(paths["shared/C.sol"]) == {paths["src/A.sol"], paths["src/B.sol"]}


def test_resolution_is_idempotent(tmp_path: Path) -> None:
    paths = write_sources(
        tmp_path,
        {"A.sol": 'import "./B.sol";', "B.sol": 'import "./A.sol";'},
    )
    resolver = ImportResolver(root=tmp_path)

    first = resolver.resolve([paths["A.sol"]])
    second = resolver.resolve([paths["B.sol"], paths["A.sol"]])

    assert first.edges == second.edges
    assert set(first.files) == set(second.files)


def test_each_file_is_read_once(tmp_path: Path) -> None:
    paths = write_sources(
        tmp_path,
        {
            "A.sol": 'import "./Shared.sol";',
            "B.sol": 'import "./Shared.sol";',
            "Shared.sol": "contract Shared {}",
        },
    )
    reader = SourceReader()
    resolver = ImportResolver(root=tmp_path, reader=reader)

    resolver.resolve([paths["A.sol"], paths["B.sol"]])
    resolver.resolve([paths["A.sol"]])

    assert reader.reads == 3


def test_remapped_and_library_imports(tmp_path: Path) -> None:
    paths = write_sources(
        tmp_path,
        {
            "contracts/Token.sol": 'import "oz/ERC20.sol";\nimport "solmate/Auth.sol";',
            "vendor/openzeppelin/ERC20.sol": "contract ERC20 {}",
            "lib/solmate/Auth.sol": "contract Auth {}",
        },
    )
    resolver = ImportResolver(
        root=tmp_path,
        remappings=RemappingSet.parse(["oz/=vendor/openzeppelin/"]),
        library_dirs=[tmp_path / "lib"],
    )

    graph = resolver.resolve([paths["contracts/Token.sol"]])

    assert graph.resolved_imports[paths["contracts/Token.sol"]] == {
        "oz/ERC20.sol": paths["vendor/openzeppelin/ERC20.sol"],
        "solmate/Auth.sol": paths["lib/solmate/Auth.sol"],
    }


def test_relative_imports_do_not_fall_back_to_libraries(tmp_path: Path) -> None:
    paths = write_sources(
        tmp_path,
        {"contracts/A.sol": 'import "./Only.sol";', "lib/Only.sol": "contract Only {}"},
    )
    resolver = ImportResolver(root=tmp_path, library_dirs=[tmp_path / "lib"])

    with pytest.raises(MissingImportError) as excinfo:
        resolver.resolve_import(paths["contracts/A.sol"], "./Only.sol")

    assert excinfo.value.importer == paths["contracts/A.sol"]
    assert excinfo.value.import_path == "./Only.sol"


def test_missing_imports_are_recorded_unless_strict(tmp_path: Path) -> None:
    paths = write_sources(tmp_path, {"A.sol": 'import "./Gone.sol";', "B.sol": "contract B {}"})
    resolver = ImportResolver(root=tmp_path)

    graph = resolver.resolve([paths["A.sol"], paths["B.sol"]])

    assert [error.import_path for error in graph.missing] == ["./Gone.sol"]
    assert graph.missing_in([paths["B.sol"]]) == []
    with pytest.raises(MissingImportError):
        resolver.resolve([paths["A.sol"]], strict=True)


def test_undecodable_imports_are_recorded_unless_strict(tmp_path: Path) -> None:
    paths = write_sources(tmp_path, {"A.sol": 'import "./Bad.sol";', "B.sol": "contract B {}"})
    bad = (tmp_path / "Bad.sol").resolve()
    bad.write_bytes(b"contract Caf\xe9 {}")
    resolver = ImportResolver(root=tmp_path)

    graph = resolver.resolve([paths["A.sol"], paths["B.sol"]])

    assert bad not in graph.files
    assert graph.unreadable[bad].path == bad
    assert frozenset({paths["A.sol"], bad}) in graph.connected_components()
    assert [error.path for error in graph.errors_in([paths["A.sol"], bad])] == [bad]
    assert graph.errors_in([paths["B.sol"]]) == []
    with pytest.raises(SourceReadError, match="cannot read source"):
        resolver.resolve([paths["A.sol"]], strict=True)


def test_connected_components_ignore_edge_direction(tmp_path: Path) -> None:
    paths = write_sources(
        tmp_path,
        {
            "A.sol": 'import "./Base.sol";',
            "B.sol": 'import "./Base.sol";',
            "Base.sol": "contract Base {}",
            "Solo.sol": "contract Solo {}",
        },
    )
    graph = ImportResolver(root=tmp_path).resolve(paths.values())

    components = graph.connected_components()

    assert sorted(len(component) for component in components) == [1, 3]
    assert frozenset({paths["Solo.sol"]}) in components
