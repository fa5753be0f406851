# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Safe wrappers around ``subprocess`` execution."""

from __future__ import annotations

import shutil
import time

# Bandit: subprocess usage is intentional; commands are argument lists and
# ``shell=True`` is never used.
import subprocess  # nosec B404
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from subprocess import CompletedProcess
from typing import Final

from ..errors import BuildCancelledError, ProcessTimeoutError
from .cancellation import CancellationToken

_POLL_INTERVAL_S: Final[float] = 0.1
_TERMINATE_GRACE_S: Final[float] = 2.0


@dataclass(slots=True)
class CommandOptions:
    """Command execution options."""

    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    check: bool = True
    timeout: float | None = None
    input_text: str | None = None
    cancel: CancellationToken | None = None


class SubprocessExecutionError(RuntimeError):
    """Raised when a subprocess exits with a non-zero status while ``check`` is true."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: int,
        stdout: str | None,
        stderr: str | None,
    ) -> None:
        """Initialise the error with captured subprocess metadata.

        Args:
            command: Normalised command sequence that was executed.
            returncode: Exit status reported by the subprocess.
            stdout: Captured standard output stream.
            stderr: Captured standard error stream.
        """
        super().__init__(
            f"Command '{command[0]}' exited with status {returncode}. stderr: {stderr or '<none>'}",
        )
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


def _normalize_args(args: Sequence[str]) -> list[str]:
    """Normalise the subprocess argument sequence.

    Args:
        args: Raw command arguments supplied by the caller.

    Returns:
        list[str]: Validated argument list suitable for subprocess execution.

    Raises:
        ValueError: If no arguments are provided.
        FileNotFoundError: If a bare executable name is not on ``PATH``.
    """

    if not args:
        msg = "subprocess command requires at least one argument"
        raise ValueError(msg)

    head, *rest = args
    head_path = Path(head)
    if head_path.is_absolute():
        return [str(head_path), *rest]

    resolved = shutil.which(head)
    if resolved is None:
        msg = f"Executable '{head}' was not found on PATH"
        raise FileNotFoundError(msg)
    return [resolved, *rest]


def _reap(process: subprocess.Popen[str]) -> None:
    """Terminate ``process`` if it is still running and wait for it to exit."""

    if process.poll() is not None:
        return
    process.terminate()
    try:
        process.wait(timeout=_TERMINATE_GRACE_S)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait()


def run_command(args: Sequence[str], *, options: CommandOptions | None = None) -> CompletedProcess[str]:
    """Execute ``args`` and capture its output.

    The process is a scoped resource: whichever way this function exits
    (success, timeout, cancellation, or an unexpected error) the child is
    terminated if needed and reaped before control returns.

    Args:
        args: Command and argument sequence to execute.
        options: Options configuring execution semantics.

    Returns:
        CompletedProcess: Subprocess execution metadata with text output.

    Raises:
        FileNotFoundError: If the executable cannot be resolved on ``PATH``.
        SubprocessExecutionError: When ``check`` is true and the process exits
            with a non-zero status.
        ProcessTimeoutError: When ``timeout`` elapses before the process exits.
        BuildCancelledError: When ``cancel`` is set before or during execution.
    """

    resolved_options = options or CommandOptions()
    normalized = _normalize_args(args)
    cancel = resolved_options.cancel
    if cancel is not None and cancel.cancelled:
        raise BuildCancelledError(f"cancelled before starting {normalized[0]}")

    deadline = None if resolved_options.timeout is None else time.monotonic() + resolved_options.timeout
    # Bandit: commands originate from resolved compiler binaries; no shell expansion.
    process = subprocess.Popen(  # nosec B603
        normalized,
        cwd=str(resolved_options.cwd) if resolved_options.cwd is not None else None,
        env=dict(resolved_options.env) if resolved_options.env is not None else None,
        stdin=subprocess.PIPE if resolved_options.input_text is not None else subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
    )
    pending_input = resolved_options.input_text
    try:
        while True:
            wait_for = _POLL_INTERVAL_S
            if deadline is not None:
                wait_for = max(0.0, min(wait_for, deadline - time.monotonic()))
            try:
                stdout, stderr = process.communicate(input=pending_input, timeout=wait_for)
                break
            except subprocess.TimeoutExpired:
                pending_input = None
            if cancel is not None and cancel.cancelled:
                raise BuildCancelledError(f"cancelled while running {normalized[0]}")
            if deadline is not None and time.monotonic() >= deadline:
                raise ProcessTimeoutError(
                    f"Command timed out after {resolved_options.timeout:.1f}s: {normalized[0]}",
                )
    finally:
        _reap(process)

    completed: CompletedProcess[str] = CompletedProcess(
        args=normalized,
        returncode=process.returncode,
        stdout=stdout or "",
        stderr=stderr or "",
    )
    if resolved_options.check and completed.returncode != 0:
        raise SubprocessExecutionError(normalized, completed.returncode, completed.stdout, completed.stderr)
    return completed


__all__ = ["CommandOptions", "SubprocessExecutionError", "run_command"]
