# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration models and loaders.

Import ``solbuild.config.models`` or ``solbuild.config.loader`` directly.
"""

__all__: tuple[str, ...] = ()
