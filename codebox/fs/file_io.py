"""Reading and writing files inside a workspace working directory."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from codebox.errors import PathTraversal
from codebox.fs.paths import ensure_directory_for_file, is_safe
from codebox.utils.logging import get_logger

logger = get_logger(__name__)


class WriteMode(str, Enum):
    OVERWRITE = "overwrite"
    APPEND = "append"


def write_workspace_file(
    working_dir: str | Path,
    file_path: str,
    content: str,
    mode: WriteMode | str = WriteMode.OVERWRITE,
) -> Path:
    """Write ``content`` to ``file_path`` relative to ``working_dir``.

    Args:
        working_dir: Root the path must stay within.
        file_path: Caller-supplied relative path.
        content: Text to write.
        mode: Overwrite the file or append to it.

    Returns:
        Absolute path of the written file.

    Raises:
        PathTraversal: The path escapes ``working_dir``.
    """
    if not is_safe(working_dir, file_path):
        raise PathTraversal(file_path)

    mode = WriteMode(mode)
    dest = Path(working_dir).resolve() / file_path
    ensure_directory_for_file(dest)

    with open(dest, "a" if mode is WriteMode.APPEND else "w", encoding="utf-8") as f:
        f.write(content)

    logger.debug(f"[files] {mode.value} {file_path} → {dest}")
    return dest


def read_workspace_file(working_dir: str | Path, file_path: str) -> str:
    """Read a text file relative to ``working_dir``.

    Raises:
        PathTraversal: The path escapes ``working_dir``.
        FileNotFoundError: The file does not exist.
    """
    if not is_safe(working_dir, file_path):
        raise PathTraversal(file_path)

    target = Path(working_dir).resolve() / file_path
    if not target.is_file():
        raise FileNotFoundError(f"File not found: {file_path}")
    return target.read_text(encoding="utf-8", errors="replace")
