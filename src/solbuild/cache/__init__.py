# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Fingerprinting and persistent artifact storage.

Import ``solbuild.cache.store`` or ``solbuild.cache.fingerprint`` directly; the
package stays free of imports so low-level modules can use its locks.
"""

__all__: tuple[str, ...] = ()
