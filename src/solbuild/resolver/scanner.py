# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Lightweight lexical scanning of Solidity import and pragma directives.

This is not a parser. The scanner walks the text once, skipping comments and
string literals, and only looks at ``import`` and ``pragma solidity``
directives that start at statement level. Text inside a comment or a string
never yields a directive.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

_IMPORT_KEYWORD: Final[str] = "import"
_PRAGMA_KEYWORD: Final[str] = "pragma"
_SOLIDITY_KEYWORD: Final[str] = "solidity"
_QUOTES: Final[frozenset[str]] = frozenset({'"', "'"})
_STATEMENT_END: Final[str] = ";"


@dataclass(frozen=True, slots=True)
class ScanResult:
    """Directives extracted from one source file."""

    imports: tuple[str, ...]
    pragmas: tuple[str, ...]

    @property
    def version_pragma(self) -> str | None:
        """Return the combined ``pragma solidity`` constraint, if any.

        Several pragmas in one file all apply, so they are joined with a
        space which the constraint parser reads as an intersection.
        """

        if not self.pragmas:
            return None
        return " ".join(self.pragmas)


def _is_identifier_char(char: str) -> bool:
    return char.isalnum() or char in "_$"


class _Cursor:
    """Character cursor over Solidity source text."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.length = len(text)

    def at_end(self) -> bool:
        return self.pos >= self.length

    def peek(self, offset: int = 0) -> str:
        index = self.pos + offset
        return self.text[index] if index < self.length else ""

    def skip_line_comment(self) -> None:
        newline = self.text.find("\n", self.pos)
        self.pos = self.length if newline == -1 else newline + 1

    def skip_block_comment(self) -> None:
        end = self.text.find("*/", self.pos + 2)
        self.pos = self.length if end == -1 else end + 2

    def read_string(self) -> str:
        """Consume a quoted literal starting at the cursor and return its body."""

        quote = self.text[self.pos]
        self.pos += 1
        chars: list[str] = []
        while not self.at_end():
            char = self.text[self.pos]
            if char == "\\" and self.pos + 1 < self.length:
                chars.append(self.text[self.pos + 1])
                self.pos += 2
                continue
            self.pos += 1
            if char == quote:
                break
            if char == "\n":
                # Unterminated literal: stop at the line end.
                break
            chars.append(char)
        return "".join(chars)

    def read_identifier(self) -> str:
        start = self.pos
        while not self.at_end() and _is_identifier_char(self.text[self.pos]):
            self.pos += 1
        return self.text[start : self.pos]

    def skip_trivia(self) -> bool:
        """Skip a comment at the cursor; return whether anything was consumed."""

        if self.peek() == "/" and self.peek(1) == "/":
            self.skip_line_comment()
            return True
        if self.peek() == "/" and self.peek(1) == "*":
            self.skip_block_comment()
            return True
        return False


def _read_import_path(cursor: _Cursor) -> str | None:
    """Consume an import directive body and return its path literal.

    Every accepted form (``import "p";``, ``import "p" as X;``,
    ``import * as X from "p";``, ``import {a, b as c} from "p";``) contains
    exactly one string literal: the imported path.
    """

    path: str | None = None
    while not cursor.at_end():
        if cursor.skip_trivia():
            continue
        char = cursor.peek()
        if char in _QUOTES:
            literal = cursor.read_string()
            if path is None:
                path = literal
            continue
        cursor.pos += 1
        if char == _STATEMENT_END:
            break
    return path


def _read_pragma(cursor: _Cursor) -> str | None:
    """Consume a pragma directive and return its constraint for ``solidity``."""

    while not cursor.at_end() and cursor.peek().isspace():
        cursor.pos += 1
    name = cursor.read_identifier()
    parts: list[str] = []
    while not cursor.at_end():
        if cursor.skip_trivia():
            parts.append(" ")
            continue
        char = cursor.peek()
        cursor.pos += 1
        if char == _STATEMENT_END:
            break
        parts.append(char)
    if name != _SOLIDITY_KEYWORD:
        return None
    constraint = " ".join("".join(parts).split())
    return constraint or None


def scan_source(text: str) -> ScanResult:
    """Extract import paths and ``pragma solidity`` constraints from ``text``.

    Args:
        text: Solidity source text.

    Returns:
        ScanResult: Import strings in source order plus version pragmas.
    """

    cursor = _Cursor(text)
    imports: list[str] = []
    pragmas: list[str] = []
    previous_significant = ""
    while not cursor.at_end():
        if cursor.skip_trivia():
            continue
        char = cursor.peek()
        if char in _QUOTES:
            cursor.read_string()
            previous_significant = char
            continue
        if _is_identifier_char(char):
            at_statement_start = previous_significant in {"", ";", "}", "{"}
            word = cursor.read_identifier()
            previous_significant = word[-1]
            if not at_statement_start:
                continue
            if word == _IMPORT_KEYWORD:
                path = _read_import_path(cursor)
                if path is not None:
                    imports.append(path)
                previous_significant = _STATEMENT_END
            elif word == _PRAGMA_KEYWORD:
                constraint = _read_pragma(cursor)
                if constraint is not None:
                    pragmas.append(constraint)
                previous_significant = _STATEMENT_END
            continue
        cursor.pos += 1
        if not char.isspace():
            previous_significant = char
    return ScanResult(imports=tuple(imports), pragmas=tuple(pragmas))


__all__ = ["ScanResult", "scan_source"]
