"""Runtime version metadata for LiveWatch.

Import-safe; the entrypoint logs as_string() at boot.
"""

from __future__ import annotations

PROJECT_NAME = "LiveWatch Runtime"
VERSION = "v0.3.0-alpha"
BUILD = "2026.10"

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "BUILD",
    "as_string",
]


def as_string() -> str:
    return f"{PROJECT_NAME} {VERSION} (Build {BUILD})"
