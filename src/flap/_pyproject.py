"""Shared pyproject.toml utilities.

This module provides common functionality for finding and loading pyproject.toml,
avoiding duplication between config.py and logging.py.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

# Python 3.11+ has tomllib in stdlib; use tomli for 3.10
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

TOMLDecodeError = tomllib.TOMLDecodeError


def find_pyproject() -> Path | None:
    """Search for pyproject.toml from cwd upward.

    Returns:
        Path to pyproject.toml if found, None otherwise.
    """
    cwd = Path.cwd()
    for parent in [cwd, *cwd.parents]:
        candidate = parent / "pyproject.toml"
        if candidate.exists():
            return candidate
    return None


def load_pyproject(path: Path | str | None = None, *, strict: bool = False) -> dict[str, Any] | None:
    """Load and parse pyproject.toml.

    Args:
        path: Explicit file to read. If None, searches from cwd upward.
        strict: Re-raise TOMLDecodeError instead of treating a broken file
                as missing.

    Returns:
        Parsed TOML data as a dict, or None if the file is missing or unreadable.
    """
    if path is None:
        path = find_pyproject()
    if path is None:
        return None

    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except OSError:
        return None
    except TOMLDecodeError:
        if strict:
            raise
        return None


def flap_table(data: dict[str, Any] | None) -> Any:
    """Get the raw [tool.flap] table from parsed pyproject data.

    Returns an empty dict when the table is absent. The value is returned
    as written, so callers must check it is a table before using it.
    """
    if not data:
        return {}
    return data.get("tool", {}).get("flap", {})
