# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Models for the compiler's standard JSON input and output documents."""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import MalformedOutputError

LANGUAGE: Final[str] = "Solidity"
_CONTRACTS_FIELD: Final[str] = "contracts"


class Severity(str, Enum):
    """Severity levels reported by the compiler."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class SourceLocation(BaseModel):
    """Character range of a diagnostic inside a source unit."""

    model_config = ConfigDict(frozen=True)

    file: str
    start: int = -1
    end: int = -1


class Diagnostic(BaseModel):
    """Error, warning or informational message emitted by the compiler."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    severity: Severity
    message: str
    type: str = ""
    component: str = "general"
    error_code: str | None = Field(default=None, alias="errorCode")
    formatted_message: str | None = Field(default=None, alias="formattedMessage")
    source_location: SourceLocation | None = Field(default=None, alias="sourceLocation")

    @property
    def file(self) -> str | None:
        """Return the source unit the diagnostic points at, if any."""

        return self.source_location.file if self.source_location is not None else None

    @property
    def is_error(self) -> bool:
        """Return whether the diagnostic fails the compilation."""

        return self.severity is Severity.ERROR

    def render(self) -> str:
        """Return a single-line description for logs."""

        location = ""
        if self.source_location is not None:
            location = f"{self.source_location.file}:{self.source_location.start}: "
        label = self.type or self.severity.value
        return f"{location}{label}: {self.message}"


class SourceInput(BaseModel):
    """Content of one source unit in the compiler input."""

    content: str


class CompilerInput(BaseModel):
    """Standard JSON document written to the compiler's standard input."""

    language: str = LANGUAGE
    sources: dict[str, SourceInput] = Field(default_factory=dict)
    settings: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def build(cls, sources: dict[Path, str], settings: dict[str, Any]) -> CompilerInput:
        """Create an input document keyed by absolute source paths.

        Args:
            sources: Mapping of canonical path to file content.
            settings: Compiler ``settings`` object.

        Returns:
            CompilerInput: Document with sources ordered by path.
        """

        return cls(
            sources={path.as_posix(): SourceInput(content=content) for path, content in sorted(sources.items())},
            settings=settings,
        )

    def to_json(self) -> str:
        """Serialise the document for the compiler's stdin."""

        return self.model_dump_json()


class ContractOutput(BaseModel):
    """Per-contract output; unrecognised fields are preserved."""

    model_config = ConfigDict(extra="allow")

    abi: list[Any] = Field(default_factory=list)
    metadata: str | dict[str, Any] | None = None
    evm: dict[str, Any] = Field(default_factory=dict)

    @property
    def bytecode(self) -> str | None:
        """Return creation bytecode as a hex string."""

        return _bytecode_object(self.evm.get("bytecode"))

    @property
    def deployed_bytecode(self) -> str | None:
        """Return runtime bytecode as a hex string."""

        return _bytecode_object(self.evm.get("deployedBytecode"))


def _bytecode_object(section: Any) -> str | None:
    if isinstance(section, dict):
        value = section.get("object")
        return value if isinstance(value, str) else None
    return None


class CompilerOutput(BaseModel):
    """Standard JSON document read from the compiler's standard output."""

    model_config = ConfigDict(extra="ignore")

    errors: list[Diagnostic] = Field(default_factory=list)
    contracts: dict[str, dict[str, ContractOutput]] = Field(default_factory=dict)
    sources: dict[str, Any] = Field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        """Return whether any diagnostic has error severity."""

        return any(item.is_error for item in self.errors)


def parse_compiler_output(text: str) -> CompilerOutput:
    """Parse the compiler's stdout into a :class:`CompilerOutput`.

    A document without a ``contracts`` object is only accepted when it reports
    at least one error-severity diagnostic, which is how the compiler answers
    a failed compilation. Anything else that does not follow the contract is
    malformed rather than an empty successful result.

    Args:
        text: Raw standard output of the compiler process.

    Returns:
        CompilerOutput: Validated output document.

    Raises:
        MalformedOutputError: If ``text`` does not follow the output contract.
    """

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedOutputError(f"compiler output is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise MalformedOutputError("compiler output must be a JSON object")
    try:
        output = CompilerOutput.model_validate(payload)
    except ValidationError as exc:
        raise MalformedOutputError(f"compiler output does not match the expected contract: {exc}") from exc
    if not isinstance(payload.get(_CONTRACTS_FIELD), dict) and not output.has_errors:
        raise MalformedOutputError("compiler output is missing the 'contracts' object")
    return output


__all__ = [
    "CompilerInput",
    "CompilerOutput",
    "ContractOutput",
    "Diagnostic",
    "LANGUAGE",
    "Severity",
    "SourceInput",
    "SourceLocation",
    "parse_compiler_output",
]
