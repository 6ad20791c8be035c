"""Copy-mode materialization of workspace directories.

A copy-mode workspace never hands its host directory to a session.
Instead every open gets a private temporary directory seeded from the host
directory:

  - regular files are copied with their contents and permission bits
  - directories are recreated recursively
  - symlinks are recreated as symlinks pointing at the same target
    (never followed, so a link cannot drag outside files into the copy)
  - sockets, FIFOs and device nodes are skipped

If any step fails the half-populated directory is removed before the error
propagates.
"""

from __future__ import annotations

import os
import shutil
import stat
import tempfile
from pathlib import Path

from codebox.errors import MaterializationFailure
from codebox.utils.logging import get_logger

logger = get_logger(__name__)


def _copy_tree(source: Path, dest: Path) -> None:
    for entry in os.scandir(source):
        src = Path(entry.path)
        dst = dest / entry.name
        if entry.is_symlink():
            os.symlink(os.readlink(src), dst)
        elif entry.is_dir(follow_symlinks=False):
            dst.mkdir()
            _copy_tree(src, dst)
        elif entry.is_file(follow_symlinks=False):
            shutil.copy2(src, dst, follow_symlinks=False)
        else:
            mode = entry.stat(follow_symlinks=False).st_mode
            logger.debug(
                f"[copy] skipping special file {src} (mode={stat.filemode(mode)})"
            )


def create_isolated_copy(
    source_dir: str | Path,
    prefix: str,
    base_dir: str | Path | None = None,
) -> Path:
    """Create a fresh temporary directory holding a copy of ``source_dir``.

    Args:
        source_dir: Directory to copy.
        prefix: Prefix for the temporary directory name.
        base_dir: Where to create it (defaults to the system temp dir).

    Returns:
        Path of the new directory. The caller owns it.

    Raises:
        MaterializationFailure: The source is missing or the copy failed.
            Nothing is left behind on disk in that case.
    """
    source = Path(source_dir)
    if not source.is_dir():
        raise MaterializationFailure(f"Source directory not found: {source}")

    try:
        temp_dir = Path(tempfile.mkdtemp(prefix=prefix, dir=base_dir))
    except OSError as e:
        raise MaterializationFailure(f"Could not create temporary directory: {e}") from e

    try:
        _copy_tree(source, temp_dir)
    except OSError as e:
        remove_isolated_copy(temp_dir)
        raise MaterializationFailure(
            f"Failed to copy {source} into {temp_dir}: {e}"
        ) from e

    logger.debug(f"[copy] materialized {source} → {temp_dir}")
    return temp_dir


def remove_isolated_copy(path: str | Path) -> None:
    """Recursively delete ``path``. A missing path is a no-op."""
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return


class IsolatedCopyMaterializer:
    """Creates and removes per-session copies of workspace directories.

    Injected into ``WorkspaceTokenStore``; tests can swap in a failing one.

    Example::

        materializer = IsolatedCopyMaterializer()
        work = materializer.create("/src/project", "codebox-project-")
        ...
        materializer.remove(work)
    """

    def __init__(self, base_dir: str | Path | None = None) -> None:
        self.base_dir = base_dir

    def create(self, source_dir: str | Path, prefix: str) -> Path:
        return create_isolated_copy(source_dir, prefix, self.base_dir)

    def remove(self, path: str | Path) -> None:
        remove_isolated_copy(path)
