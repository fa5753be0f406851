# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Invocation of the ``solc`` binary through its standard JSON interface."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Final, Protocol, runtime_checkable

from ..core.cancellation import CancellationToken
from ..core.process import CommandOptions, SubprocessExecutionError, run_command
from ..errors import ProcessFailureError
from .contracts import CompilerInput, CompilerOutput, parse_compiler_output

LOGGER = logging.getLogger(__name__)

STANDARD_JSON_FLAG: Final[str] = "--standard-json"


@runtime_checkable
class CompilerRunner(Protocol):
    """Callable that runs one compiler binary on one input document."""

    def __call__(
        self,
        binary: Path,
        compiler_input: CompilerInput,
        *,
        timeout: float | None = None,
        cancel: CancellationToken | None = None,
    ) -> CompilerOutput:
        """Compile ``compiler_input`` with ``binary`` and return the parsed output.

        Raises:
            ProcessFailureError: If the process fails or its output is malformed.
            BuildCancelledError: If ``cancel`` fires while the process runs.
        """
        raise NotImplementedError


class SolcRunner:
    """Run ``solc --standard-json`` as a subprocess."""

    def __init__(self, *, cwd: Path | None = None) -> None:
        """Create a runner executing from ``cwd``.

        Args:
            cwd: Working directory for the compiler process.
        """

        self.cwd = cwd

    def __call__(
        self,
        binary: Path,
        compiler_input: CompilerInput,
        *,
        timeout: float | None = None,
        cancel: CancellationToken | None = None,
    ) -> CompilerOutput:
        """Compile ``compiler_input`` with ``binary``.

        Args:
            binary: Absolute path of the compiler executable.
            compiler_input: Standard JSON input document.
            timeout: Seconds before the process is killed.
            cancel: Token that aborts the process when set.

        Returns:
            CompilerOutput: Parsed compiler output.

        Raises:
            ProcessFailureError: If the process cannot start or exits non-zero.
            MalformedOutputError: If stdout does not follow the output contract.
            ProcessTimeoutError: If ``timeout`` elapses.
            BuildCancelledError: If ``cancel`` is set.
        """

        command = [str(binary), STANDARD_JSON_FLAG]
        LOGGER.debug("running %s on %d source(s)", binary, len(compiler_input.sources))
        try:
            completed = run_command(
                command,
                options=CommandOptions(
                    cwd=self.cwd,
                    check=True,
                    timeout=timeout,
                    input_text=compiler_input.to_json(),
                    cancel=cancel,
                ),
            )
        except SubprocessExecutionError as exc:
            raise ProcessFailureError(
                f"{binary.name} exited with status {exc.returncode}",
                returncode=exc.returncode,
                stderr=exc.stderr,
            ) from exc
        except (OSError, ValueError) as exc:
            raise ProcessFailureError(f"failed to run {binary}: {exc}") from exc
        return parse_compiler_output(completed.stdout)


__all__ = ["CompilerRunner", "STANDARD_JSON_FLAG", "SolcRunner"]
