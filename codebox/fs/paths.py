"""Path guards for caller-supplied file paths."""

from __future__ import annotations

import os
from pathlib import Path


def is_safe(root_dir: str | Path, relative_path: str) -> bool:
    """Check that ``relative_path`` stays inside ``root_dir``.

    Absolute paths are rejected outright. Otherwise the path is joined to
    the root and fully resolved (``..`` collapsed, symlinks followed); it is
    accepted only when it is the root itself or lies beneath it.

    Examples:
        is_safe(root, "a/b.txt")             → True
        is_safe(root, "../outside.txt")      → False
        is_safe(root, "a/../../outside.txt") → False
        is_safe(root, "/etc/passwd")         → False
    """
    try:
        if os.path.isabs(relative_path):
            return False

        root = Path(root_dir).resolve()
        full_path = (root / relative_path).resolve()
        return full_path == root or root in full_path.parents
    except (OSError, RuntimeError, ValueError):
        # Resolution errors (symlink loops, NUL bytes …) count as escapes.
        return False


def validate_directory(dir_path: str | Path) -> None:
    """Raise if ``dir_path`` does not exist or is not a directory."""
    path = Path(dir_path)
    if not path.exists():
        raise FileNotFoundError(f"Directory not found: {dir_path}")
    if not path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {dir_path}")


def ensure_directory_for_file(file_path: str | Path) -> None:
    """Create the parent directories of ``file_path`` if missing."""
    Path(file_path).parent.mkdir(parents=True, exist_ok=True)
