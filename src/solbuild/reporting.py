# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Rich rendering of build plans, batch outcomes, diagnostics and summaries."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Final

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from .compiler.contracts import Diagnostic, Severity
from .config.models import OutputConfig
from .orchestration.executor import BatchResult, BatchStatus

if TYPE_CHECKING:
    from .orchestration.orchestrator import BuildFailure, BuildResult
    from .resolver.graph import ImportGraph
    from .versions.assigner import Assignment

SEVERITY_STYLES: Final[dict[Severity, str]] = {
    Severity.ERROR: "bold red",
    Severity.WARNING: "yellow",
    Severity.INFO: "cyan",
}
STATUS_STYLES: Final[dict[BatchStatus, tuple[str, str]]] = {
    BatchStatus.COMPILED: ("✅", "green"),
    BatchStatus.CACHED: ("♻️", "cyan"),
    BatchStatus.FAILED: ("❌", "red"),
    BatchStatus.CANCELLED: ("⏹️", "yellow"),
}


def detect_tty() -> bool:
    """Return ``True`` when stdout appears to be backed by a terminal."""

    try:
        return sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False


def make_console(output: OutputConfig) -> Console:
    """Return a console honouring the colour and emoji preferences of ``output``."""

    tty = detect_tty()
    color = output.color and tty
    return Console(
        color_system="auto" if color else None,
        force_terminal=tty,
        no_color=not color,
        emoji=output.emoji,
        soft_wrap=True,
    )


@dataclass(frozen=True, slots=True)
class BuildSummary:
    """Counters shown in the closing panel of a build."""

    files: int
    compiled: int
    cached: int
    invocations: int
    warnings: int
    errors: int
    failures: int
    removed: int
    pruned: int

    @classmethod
    def from_result(cls, result: BuildResult) -> BuildSummary:
        """Collect the counters of ``result``."""

        return cls(
            files=len(result.graph),
            compiled=len(result.compiled_files),
            cached=len(result.cached_files),
            invocations=result.invocations,
            warnings=len(result.warnings),
            errors=len(result.errors),
            failures=len(result.failures),
            removed=len(result.removed_sources),
            pruned=result.pruned_entries,
        )

    def rows(self) -> list[tuple[str, int]]:
        """Return label/value pairs in display order, skipping empty housekeeping rows."""

        rows = [
            ("Source files", self.files),
            ("Compiled", self.compiled),
            ("From cache", self.cached),
            ("Compiler runs", self.invocations),
            ("Warnings", self.warnings),
            ("Errors", self.errors),
            ("Failed components", self.failures),
        ]
        if self.removed:
            rows.append(("Removed sources", self.removed))
        if self.pruned:
            rows.append(("Pruned cache entries", self.pruned))
        return rows


def display_path(unit: str | Path, root: Path | None) -> str:
    """Return ``unit`` relative to ``root`` when it lies beneath it."""

    path = Path(unit)
    if root is not None:
        try:
            return path.relative_to(root).as_posix()
        except ValueError:
            pass
    return path.as_posix()


def diagnostic_text(diagnostic: Diagnostic, *, root: Path | None = None, color: bool = False) -> Text:
    """Render ``diagnostic`` as ``path:offset: severity[code]: message``.

    Args:
        diagnostic: Compiler diagnostic to render.
        root: Project root used to shorten source paths.
        color: Apply severity styling.

    Returns:
        Text: Styled single-line rendering.
    """

    text = Text()
    location = diagnostic.source_location
    if location is not None:
        offset = f":{location.start}" if location.start >= 0 else ""
        text.append(f"{display_path(location.file, root)}{offset}: ")
    label = diagnostic.severity.value
    if diagnostic.error_code:
        label = f"{label}[{diagnostic.error_code}]"
    text.append(label, style=SEVERITY_STYLES[diagnostic.severity] if color else None)
    text.append(f": {diagnostic.message}")
    return text


class BuildReporter:
    """Print build progress for one project; silent when output is quiet."""

    def __init__(self, output: OutputConfig, *, root: Path | None = None, console: Console | None = None) -> None:
        """Bind presentation preferences and an optional target console.

        Args:
            output: Colour, emoji and quiet preferences.
            root: Project root used to shorten paths.
            console: Console to print to; one is created from ``output`` when omitted.
        """

        self.output = output
        self.root = root
        self._console = console

    @property
    def console(self) -> Console:
        if self._console is None:
            self._console = make_console(self.output)
        return self._console

    def _glyph(self, symbol: str) -> str:
        return f"{symbol} " if self.output.emoji else ""

    def start(self, graph: ImportGraph, assignment: Assignment) -> None:
        """Announce the batches about to run."""

        if self.output.quiet:
            return
        if self.output.color:
            self.console.print(Rule("solbuild"))
        else:
            self.console.print("--- solbuild ---")
        self.console.print(
            f"{len(graph)} source file(s) in {len(assignment.batches)} batch(es)",
            style="cyan" if self.output.color else None,
        )
        for batch in assignment.batches:
            self.console.print(f"  solc {batch.version}: {len(batch)} file(s), {len(batch.components)} component(s)")

    def batch(self, result: BatchResult) -> None:
        """Print the outcome line of one batch."""

        if self.output.quiet:
            return
        symbol, style = STATUS_STYLES[result.status]
        line = Text(self._glyph(symbol))
        line.append(f"solc {result.batch.version} {result.status.value}", style=style if self.output.color else None)
        line.append(f" ({len(result.compiled_files)} compiled, {len(result.cached_files)} cached)")
        if result.error is not None:
            line.append(f": {result.error}")
        self.console.print(line)

    def diagnostic(self, diagnostic: Diagnostic) -> None:
        if self.output.quiet:
            return
        self.console.print(diagnostic_text(diagnostic, root=self.root, color=self.output.color))

    def failure(self, failure: BuildFailure) -> None:
        """Print a component or batch that produced no artifacts."""

        if self.output.quiet:
            return
        files = ", ".join(display_path(path, self.root) for path in sorted(failure.files))
        line = Text(self._glyph("❌"))
        line.append(str(failure.error), style="red" if self.output.color else None)
        line.append(f" [{files}]")
        self.console.print(line)

    def summary(self, result: BuildResult) -> None:
        """Print the closing statistics panel."""

        if self.output.quiet:
            return
        table = Table(show_header=False, box=box.SIMPLE, pad_edge=False, expand=False)
        table.add_column(style="yellow" if self.output.color else None, no_wrap=True)
        table.add_column(justify="right")
        for label, value in BuildSummary.from_result(result).rows():
            table.add_row(label, str(value))
        if result.succeeded:
            title, border = f"{self._glyph('✅')}Build succeeded", "green"
        elif result.cancelled:
            title, border = f"{self._glyph('⏹️')}Build cancelled", "yellow"
        else:
            title, border = f"{self._glyph('❌')}Build failed", "red"
        self.console.print(Panel(table, title=title, border_style=border if self.output.color else "none", expand=False))

    def finish(self, result: BuildResult) -> None:
        """Print batch outcomes, diagnostics, failures and the summary of ``result``."""

        if self.output.quiet:
            return
        for batch_result in result.batches:
            self.batch(batch_result)
        for diagnostic in [*result.warnings, *result.errors]:
            self.diagnostic(diagnostic)
        for failure in result.failures:
            self.failure(failure)
        self.summary(result)


__all__ = [
    "BuildReporter",
    "BuildSummary",
    "diagnostic_text",
    "display_path",
    "make_console",
]
