# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Export of compiled contracts as one JSON document per contract."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path

from .cache.store import SourceArtifact

LOGGER = logging.getLogger(__name__)


def artifact_location(output_dir: Path, root: Path, source: Path, contract: str) -> Path:
    """Return where the JSON document of ``contract`` from ``source`` is written.

    Sources inside the project root keep their relative layout; sources
    outside it (for example libraries reached through an absolute remapping)
    are grouped under ``external/``.

    Args:
        output_dir: Artifact output directory.
        root: Project root.
        source: Canonical path of the source file.
        contract: Contract name.

    Returns:
        Path: Destination file path.
    """

    try:
        relative = source.relative_to(root)
    except ValueError:
        relative = Path("external", *source.parts[1:])
    return output_dir / relative / f"{contract}.json"


def write_artifacts(
    artifacts: Mapping[Path, SourceArtifact],
    *,
    output_dir: Path,
    root: Path,
) -> list[Path]:
    """Write every contract of ``artifacts`` below ``output_dir``.

    Args:
        artifacts: Per-source artifacts from a build.
        output_dir: Destination directory, created when missing.
        root: Project root used to mirror source layout.

    Returns:
        list[Path]: Files written, in deterministic order.
    """

    written: list[Path] = []
    for source in sorted(artifacts):
        artifact = artifacts[source]
        for name, contract in sorted(artifact.contracts.items()):
            destination = artifact_location(output_dir, root, source, name)
            destination.parent.mkdir(parents=True, exist_ok=True)
            document = {
                "contractName": name,
                "sourceName": artifact.source,
                "compilerVersion": artifact.compiler_version,
                "abi": contract.abi,
                "bytecode": contract.bytecode,
                "deployedBytecode": contract.deployed_bytecode,
                "metadata": contract.metadata,
            }
            destination.write_text(json.dumps(document, indent=2, sort_keys=True) + "\n", encoding="utf-8")
            written.append(destination)
    LOGGER.debug("wrote %d contract artifact(s) to %s", len(written), output_dir)
    return written


__all__ = ["artifact_location", "write_artifacts"]
