# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Process and cancellation primitives shared by the pipeline.

Submodules are imported directly.
"""

__all__: tuple[str, ...] = ()
