# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for layered configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from packaging.version import Version

from solbuild.config.loader import TomlConfigSource, load_config
from solbuild.config.models import Config, UnconstrainedPolicy
from solbuild.errors import ConfigError
from solbuild.project import Project


def test_defaults_without_configuration(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert config.paths.root == tmp_path.resolve()
    assert config.paths.source_dirs == [tmp_path.resolve() / "contracts"]
    assert config.compiler.unconstrained_policy is UnconstrainedPolicy.CONFIGURED
    assert config.compiler.ignored_error_codes == [1878]
    assert config.execution.jobs >= 1


def test_solbuild_toml_overrides_pyproject(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        '[tool.solbuild.compiler]\ndefault_version = "0.8.19"\noptimizer = true\n',
        encoding="utf-8",
    )
    (tmp_path / "solbuild.toml").write_text(
        '[compiler]\ndefault_version = "v0.8.24"\n\n[execution]\njobs = 2\n',
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    assert config.compiler.default == Version("0.8.24")
    assert config.compiler.optimizer is True
    assert config.execution.jobs == 2


def test_overrides_are_applied_last(tmp_path: Path) -> None:
    (tmp_path / "solbuild.toml").write_text("[compiler]\noptimizer_runs = 10\n", encoding="utf-8")

    config = load_config(tmp_path, overrides={"compiler": {"optimizer_runs": 999}})

    assert config.compiler.optimizer_runs == 999
    assert config.compiler_settings()["optimizer"] == {"enabled": False, "runs": 999}


def test_environment_variables_are_expanded(tmp_path: Path) -> None:
    path = tmp_path / "solbuild.toml"
    path.write_text('[paths]\ncache_dir = "${CACHE_ROOT}/solbuild"\n', encoding="utf-8")

    data = TomlConfigSource(path, env={"CACHE_ROOT": "/var/cache"}).load()

    assert data["paths"]["cache_dir"] == "/var/cache/solbuild"


def test_remappings_file_is_merged_below_configuration(tmp_path: Path) -> None:
    (tmp_path / "solbuild.toml").write_text('[compiler]\nremappings = ["oz/=vendor/oz/"]\n', encoding="utf-8")
    (tmp_path / "remappings.txt").write_text("oz/=lib/oz/\nds-test/=lib/ds-test/src/\n", encoding="utf-8")

    config = load_config(tmp_path)

    assert config.compiler.remappings == ["oz/=vendor/oz/", "ds-test/=lib/ds-test/src/"]


def test_invalid_toml_is_a_config_error(tmp_path: Path) -> None:
    (tmp_path / "solbuild.toml").write_text("[compiler\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="invalid TOML"):
        load_config(tmp_path)


@pytest.mark.parametrize(
    "body",
    [
        '[compiler]\nremappings = ["a/=x/", "a/=y/"]\n',
        '[compiler]\nremappings = ["missing-separator"]\n',
        '[compiler]\ndefault_version = "latest"\n',
        "[execution]\njobs = 0\n",
    ],
)
def test_invalid_values_are_config_errors(tmp_path: Path, body: str) -> None:
    (tmp_path / "solbuild.toml").write_text(body, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_explicit_config_file_must_exist(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="does not exist"):
        load_config(tmp_path, config_file=tmp_path / "other.toml")


def test_compiler_settings_include_optional_sections() -> None:
    config = Config()
    config.compiler.evm_version = "paris"
    config.compiler.libraries = {"lib/Math.sol": {"Math": "0x" + "00" * 20}}

    settings = config.compiler_settings()

    assert settings["evmVersion"] == "paris"
    assert "remappings" not in settings
    assert settings["libraries"]["lib/Math.sol"]["Math"].startswith("0x")


def test_project_load_requires_a_directory(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        Project.load(tmp_path / "missing")
