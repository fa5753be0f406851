# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Version constraints, toolchain discovery and batch assignment.

Submodules are imported directly.
"""

__all__: tuple[str, ...] = ()
