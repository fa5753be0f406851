# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Lexical scanning, remappings and import graph resolution.

Submodules are imported directly.
"""

__all__: tuple[str, ...] = ()
