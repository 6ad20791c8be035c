"""Registry commands: add, remove and describe workspaces.

These back the ``codebox workspace`` CLI group. They never talk to the
token store; a running server sees changes on its next lookup because the
registry document is re-read every time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from codebox.config import WorkspaceConfig, WorkspaceRepository
from codebox.docker.execution import DockerExecutor
from codebox.fs.paths import validate_directory
from codebox.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class AddResult:
    """Outcome of ``add_workspace``."""

    workspace: WorkspaceConfig
    replaced: bool
    warnings: list[str] = field(default_factory=list)


async def add_workspace(
    repository: WorkspaceRepository,
    dirname: str = ".",
    *,
    image: str | None = None,
    container: str | None = None,
    name: str | None = None,
    container_path: str | None = None,
    network: str | None = None,
    copy: bool = False,
    idle_timeout: int | None = None,
    run_template: str | None = None,
    exec_template: str | None = None,
    docker: DockerExecutor | None = None,
    cwd: str | Path | None = None,
) -> AddResult:
    """Register a directory as a workspace, or update an existing entry.

    The workspace name defaults to the directory's basename. Re-adding a
    name keeps the options that are not given again, except that the new
    image or container replaces the old execution target.

    Docker problems (container not running, network missing, docker not
    reachable) only produce warnings; the entry is saved regardless.

    Args:
        repository: Registry to update.
        dirname: Directory to register, relative to ``cwd``.
        image: Launch target image.
        container: Attach target container name.
        name: Workspace name override.
        container_path: Mount/working path inside the container.
        network: Docker network for launched containers.
        copy: Give every token its own copy of the directory.
        idle_timeout: Per-token idle timeout in ms (0 disables eviction).
        run_template: Custom launch command template.
        exec_template: Custom attach command template.
        docker: Executor used for the container/network checks.
        cwd: Base for resolving ``dirname``; defaults to the process cwd.

    Returns:
        The saved workspace, whether an entry was replaced, and warnings.

    Raises:
        ValueError: Neither or both of image and container given.
        FileNotFoundError: The directory does not exist.
        NotADirectoryError: The path is not a directory.
    """
    if not image and not container:
        raise ValueError(
            "Either Docker image (--image) or container name (--container) is required"
        )
    if image and container:
        raise ValueError("Specify only one of --image or --container")

    workspace_path = (Path(cwd or os.getcwd()) / dirname).resolve()
    validate_directory(workspace_path)
    workspace_name = name or workspace_path.name

    docker = docker or DockerExecutor(repository)
    warnings: list[str] = []
    if container and not await docker.check_container_running(container):
        warnings.append(
            f"Container '{container}' not found or not running. "
            "Commands will fail until the container is available."
        )
    if network and not await docker.check_network_exists(network):
        warnings.append(
            f"Network '{network}' not found. "
            "Commands may fail until the network is available."
        )

    existing = repository.get(workspace_name)
    values = existing.model_dump() if existing else {}
    values.update(
        name=workspace_name,
        path=str(workspace_path),
        image=image,
        container_name=container,
        copy_mode=copy,
    )
    optional = {
        "container_path": container_path,
        "network": network,
        "idle_timeout": idle_timeout,
        "run_template": run_template,
        "exec_template": exec_template,
    }
    values.update({key: value for key, value in optional.items() if value is not None})

    workspace = WorkspaceConfig.model_validate(values)
    replaced = repository.upsert(workspace)
    for warning in warnings:
        logger.warning(f"[registry] {warning}")
    logger.info(f"[registry] {'updated' if replaced else 'added'} workspace {workspace_name}")
    return AddResult(workspace=workspace, replaced=replaced, warnings=warnings)


def _looks_like_path(target: str) -> bool:
    return "/" in target or "\\" in target or target in (".", "..")


def remove_workspace(
    repository: WorkspaceRepository,
    target: str = ".",
    *,
    name: str | None = None,
    cwd: str | Path | None = None,
) -> WorkspaceConfig | None:
    """Remove a workspace by name or by host path.

    ``name`` wins when given. Otherwise a ``target`` containing a path
    separator (or ``.``/``..``) is resolved against ``cwd`` and matched
    against registered paths; anything else is treated as a name.

    Returns:
        The removed entry, or None when nothing matched.
    """
    if name:
        return repository.remove(name)

    if not _looks_like_path(target):
        return repository.remove(target)

    workspace_path = (Path(cwd or os.getcwd()) / target).resolve()
    for workspace in repository.list_workspaces():
        if Path(workspace.path).resolve() == workspace_path:
            return repository.remove(workspace.name)
    return None


def describe_target(workspace: WorkspaceConfig) -> str:
    """Human-readable execution target, e.g. ``image python:3.12``."""
    if workspace.container_name and workspace.image:
        return "invalid: both image and container"
    if workspace.container_name:
        return f"container {workspace.container_name}"
    if workspace.image:
        return f"image {workspace.image}"
    return "invalid: no image or container"
