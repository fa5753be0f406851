# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Exception hierarchy shared by the build pipeline."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from solbuild.compiler.contracts import Diagnostic


class SolbuildError(RuntimeError):
    """Base class for every failure raised by the build pipeline."""


class ConfigError(SolbuildError):
    """Raised when configuration input is invalid."""


class RemappingError(ConfigError):
    """Raised when a remapping is malformed or conflicts with another."""


class MissingImportError(SolbuildError):
    """Raised when an import directive resolves to no existing file."""

    def __init__(self, importer: Path, import_path: str) -> None:
        """Record the importing file and the unresolved import string.

        Args:
            importer: Canonical path of the file containing the directive.
            import_path: Raw import string as written in the source.
        """

        super().__init__(f"missing import '{import_path}' in {importer}")
        self.importer = importer
        self.import_path = import_path


class SourceReadError(SolbuildError):
    """Raised when a source file exists but cannot be read or decoded."""

    def __init__(self, path: Path, reason: str) -> None:
        """Record the unreadable file and why reading it failed.

        Args:
            path: Canonical path of the file.
            reason: Description of the underlying OS or decoding error.
        """

        super().__init__(f"cannot read source {path}: {reason}")
        self.path = path
        self.reason = reason


class VersionConflictError(SolbuildError):
    """Raised when a connected import component has no common compiler version."""

    def __init__(self, files: Sequence[Path], constraints: Sequence[str]) -> None:
        """Record the files whose constraints cannot be satisfied together.

        Args:
            files: Files taking part in the conflict.
            constraints: Raw pragma text for each entry of ``files``.
        """

        details = ", ".join(f"{path} ({pragma})" for path, pragma in zip(files, constraints, strict=True))
        super().__init__(f"version conflict between {details}")
        self.files = tuple(files)
        self.constraints = tuple(constraints)


class InvalidConstraintError(SolbuildError, ValueError):
    """Raised when a version pragma cannot be parsed."""


class ToolchainUnavailableError(SolbuildError):
    """Raised when a compiler version cannot be obtained or chosen."""


class ProcessFailureError(SolbuildError):
    """Raised when the compiler process exits abnormally."""

    def __init__(self, message: str, *, returncode: int | None = None, stderr: str | None = None) -> None:
        """Capture process metadata alongside the message.

        Args:
            message: Human readable description of the failure.
            returncode: Exit status of the process when one was observed.
            stderr: Captured standard error stream.
        """

        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class MalformedOutputError(ProcessFailureError):
    """Raised when compiler output does not follow the standard JSON contract."""


class ProcessTimeoutError(ProcessFailureError):
    """Raised when a compiler invocation exceeds its configured timeout."""


class BuildCancelledError(SolbuildError):
    """Raised inside a batch when the build was cancelled."""


class CacheCorruptionError(SolbuildError):
    """Raised when a cache index entry points at unreadable artifact data."""


class CompilationError(SolbuildError):
    """Raised on request when the compiler reported error-severity diagnostics."""

    def __init__(self, diagnostics: Sequence[Diagnostic]) -> None:
        """Store the diagnostics that caused the failure.

        Args:
            diagnostics: Error-severity diagnostics reported by the compiler.
        """

        count = len(diagnostics)
        first = diagnostics[0].render() if diagnostics else ""
        super().__init__(f"compilation failed with {count} error(s): {first}")
        self.diagnostics = tuple(diagnostics)


__all__ = [
    "BuildCancelledError",
    "CacheCorruptionError",
    "CompilationError",
    "ConfigError",
    "InvalidConstraintError",
    "MalformedOutputError",
    "MissingImportError",
    "ProcessFailureError",
    "ProcessTimeoutError",
    "RemappingError",
    "SolbuildError",
    "SourceReadError",
    "ToolchainUnavailableError",
    "VersionConflictError",
]
