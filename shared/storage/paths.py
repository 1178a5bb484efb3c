"""
Shared storage path utilities.

This module defines canonical filesystem locations for the
monitoring database and other disk-backed artifacts.

Design goals:
- Single source of truth for storage paths
- Repo-relative resolution
- No side effects on import
"""

from __future__ import annotations

from pathlib import Path

# ----------------------------------------------------------------------
# BASE DIRECTORIES
# ----------------------------------------------------------------------

# Repo root is assumed to be the current working directory
# when the runtime is launched (consistent with core.app)
BASE_DIR = Path.cwd()

DATA_DIR = BASE_DIR / "data"


# ----------------------------------------------------------------------
# PATH HELPERS
# ----------------------------------------------------------------------

def get_data_path(name: str) -> Path:
    """
    Return a path inside the data directory.

    Example:
        get_data_path("livewatch.db")

    This function DOES NOT write files.
    It only guarantees directory existence.
    """

    path = DATA_DIR / name
    path.parent.mkdir(parents=True, exist_ok=True)
    return path
