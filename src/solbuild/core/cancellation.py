# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Cooperative cancellation shared between a build and its workers."""

from __future__ import annotations

from threading import Event


class CancellationToken:
    """Flag that a caller sets to abort the remaining work of a build."""

    def __init__(self) -> None:
        self._event = Event()
        self.reason: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation; later calls keep the first reason."""

        if not self._event.is_set():
            self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """Return whether cancellation was requested."""

        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; return the flag."""

        return self._event.wait(timeout)


__all__ = ["CancellationToken"]
