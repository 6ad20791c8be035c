"""Filesystem helpers: path guards, workspace file IO, copy mode."""

from codebox.fs.copies import (
    IsolatedCopyMaterializer,
    create_isolated_copy,
    remove_isolated_copy,
)
from codebox.fs.file_io import WriteMode, read_workspace_file, write_workspace_file
from codebox.fs.paths import ensure_directory_for_file, is_safe, validate_directory

__all__ = [
    "is_safe",
    "validate_directory",
    "ensure_directory_for_file",
    "WriteMode",
    "write_workspace_file",
    "read_workspace_file",
    "IsolatedCopyMaterializer",
    "create_isolated_copy",
    "remove_isolated_copy",
]
