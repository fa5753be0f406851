# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Compiler toolchain discovery and the version manager contract."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from shutil import which
from threading import Lock
from typing import Final, Protocol, runtime_checkable

from packaging.version import InvalidVersion, Version

from ..core.process import CommandOptions, SubprocessExecutionError, run_command
from ..errors import ToolchainUnavailableError

LOGGER = logging.getLogger(__name__)

SOLC_BINARY: Final[str] = "solc"
TOOLCHAIN_HOME_ENV: Final[str] = "SVM_HOME"

Installer = Callable[[Version], Path]


@runtime_checkable
class ToolchainManager(Protocol):
    """Capability interface of an external compiler version manager."""

    def installed_versions(self) -> Sequence[Version]:
        """Return versions with a runnable binary on this machine."""
        raise NotImplementedError

    def available_versions(self) -> Sequence[Version]:
        """Return every version that is installed or could be installed."""
        raise NotImplementedError

    def ensure_installed(self, version: Version) -> Path:
        """Return the binary for ``version``, installing it when absent.

        Raises:
            ToolchainUnavailableError: If the version cannot be obtained.
        """
        raise NotImplementedError


class VersionResolver:
    """Capture and normalise compiler versions reported by binaries."""

    VERSION_PATTERN = re.compile(r"Version:\s*v?(\d+\.\d+\.\d+)")
    FALLBACK_PATTERN = re.compile(r"(\d+\.\d+\.\d+)")

    def capture(
        self,
        command: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
    ) -> Version | None:
        """Return the version printed by ``command`` when available.

        Args:
            command: Command sequence executed to report version information,
                such as ``["solc", "--version"]``.
            env: Optional environment supplied to the command invocation.

        Returns:
            Version | None: Parsed version, or ``None`` when the command fails or
            prints nothing recognisable.
        """
        try:
            completed = run_command(list(command), options=CommandOptions(env=env, timeout=10.0))
        except (OSError, ValueError, SubprocessExecutionError, ToolchainUnavailableError) as exc:
            LOGGER.debug("version probe %s failed: %s", command, exc)
            return None
        return self.normalize(completed.stdout or completed.stderr)

    def normalize(self, raw: str | None) -> Version | None:
        """Return the semantic version extracted from ``raw``.

        Args:
            raw: Raw version text captured from compiler output.

        Returns:
            Version | None: Parsed version, or ``None`` if parsing fails.
        """
        if not raw:
            return None
        match = self.VERSION_PATTERN.search(raw) or self.FALLBACK_PATTERN.search(raw)
        if match is None:
            return None
        try:
            return Version(match.group(1))
        except InvalidVersion:
            return None


def default_toolchain_root() -> Path:
    """Return the directory holding per-version compiler installs."""

    override = os.environ.get(TOOLCHAIN_HOME_ENV)
    return Path(override).expanduser() if override else Path.home() / ".svm"


class DirectoryToolchain(ToolchainManager):
    """Compilers installed as ``<root>/<version>/solc-<version>``.

    Downloading is delegated to an optional ``installer`` callable supplied by
    an external version manager; without one, missing versions are reported
    as unavailable.
    """

    def __init__(
        self,
        root: Path | None = None,
        *,
        releases: Sequence[Version] = (),
        installer: Installer | None = None,
        include_path_binary: bool = True,
        resolver: VersionResolver | None = None,
    ) -> None:
        """Create a toolchain rooted at ``root``.

        Args:
            root: Install directory; defaults to :func:`default_toolchain_root`.
            releases: Versions known to be installable.
            installer: Callable installing a version and returning its binary.
            include_path_binary: Also offer the ``solc`` found on ``PATH``.
            resolver: Version probe used for the ``PATH`` binary.
        """

        self.root = root if root is not None else default_toolchain_root()
        self._releases = tuple(releases)
        self._installer = installer
        self._include_path_binary = include_path_binary
        self._resolver = resolver or VersionResolver()
        self._lock = Lock()
        self._binaries: dict[Version, Path] | None = None

    def _scan(self) -> dict[Version, Path]:
        binaries: dict[Version, Path] = {}
        if self.root.is_dir():
            for entry in sorted(self.root.iterdir()):
                try:
                    version = Version(entry.name)
                except InvalidVersion:
                    continue
                binary = entry / f"{SOLC_BINARY}-{entry.name}"
                if binary.is_file() and os.access(binary, os.X_OK):
                    binaries[version] = binary
        if self._include_path_binary:
            located = which(SOLC_BINARY)
            if located is not None:
                version = self._resolver.capture([located, "--version"])
                if version is not None:
                    binaries.setdefault(version, Path(located))
        return binaries

    def _installed(self) -> dict[Version, Path]:
        with self._lock:
            if self._binaries is None:
                self._binaries = self._scan()
            return self._binaries

    def installed_versions(self) -> Sequence[Version]:
        return sorted(self._installed())

    def available_versions(self) -> Sequence[Version]:
        known = set(self._installed())
        if self._installer is not None:
            known.update(self._releases)
        return sorted(known)

    def ensure_installed(self, version: Version) -> Path:
        """Return the binary for ``version``, invoking the installer when needed.

        Args:
            version: Compiler version required by a batch.

        Returns:
            Path: Executable path.

        Raises:
            ToolchainUnavailableError: If the version is neither installed nor
                installable.
        """

        binary = self._installed().get(version)
        if binary is not None:
            return binary
        if self._installer is None or version not in self._releases:
            raise ToolchainUnavailableError(f"solc {version} is not installed under {self.root}")
        with self._lock:
            if self._binaries is not None and version in self._binaries:
                return self._binaries[version]
            try:
                installed = self._installer(version)
            except OSError as exc:
                raise ToolchainUnavailableError(f"failed to install solc {version}: {exc}") from exc
            if self._binaries is not None:
                self._binaries[version] = installed
            return installed


__all__ = [
    "DirectoryToolchain",
    "Installer",
    "ToolchainManager",
    "VersionResolver",
    "default_toolchain_root",
]
