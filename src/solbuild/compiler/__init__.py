# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Compiler input/output contracts and process invocation.

Submodules are imported directly.
"""

__all__: tuple[str, ...] = ()
