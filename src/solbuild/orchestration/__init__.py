# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Orchestration package initialisation.

Submodules expose the orchestrator implementation and supporting helpers;
import those modules directly instead of relying on package-level re-exports.
"""

__all__: tuple[str, ...] = ()
