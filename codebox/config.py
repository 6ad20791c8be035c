"""Configuration management for codebox.

Two kinds of configuration live here:

  - The workspace registry document ``<home>/.codespin/codebox.json``,
    holding one ``WorkspaceConfig`` per registered workspace plus a
    ``debug`` flag. It is read on every lookup so registry edits made by
    the CLI are visible to a running server.
  - ``ServerSettings``, process level knobs populated from kwargs and
    ``CODEBOX_*`` environment variables.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from codebox.errors import MisconfiguredExecutionTarget
from codebox.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONTAINER_PATH = "/workspace"
DEFAULT_IDLE_TIMEOUT_MS = 600_000
DEFAULT_PORT = 13014
CONFIG_DIR_NAME = ".codespin"
CONFIG_FILE_NAME = "codebox.json"


# ── execution targets ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AttachTarget:
    """Run commands inside an already running container."""

    container_name: str


@dataclass(frozen=True)
class LaunchTarget:
    """Start a fresh container from an image for every command."""

    image: str


ExecutionTarget = AttachTarget | LaunchTarget


# ── registry document ─────────────────────────────────────────────────────────

class WorkspaceConfig(BaseModel):
    """One registered workspace.

    Stored with camelCase keys (``containerPath``, ``idleTimeout`` …);
    attributes are snake_case. ``dockerImage`` is accepted as a legacy
    spelling of ``image``.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    name: str
    path: str
    container_path: str | None = None
    image: str | None = Field(
        default=None,
        validation_alias=AliasChoices("image", "dockerImage"),
    )
    container_name: str | None = None
    network: str | None = None
    copy_mode: bool = Field(default=False, alias="copy")
    idle_timeout: int | None = Field(default=None, ge=0)
    run_template: str | None = None
    exec_template: str | None = None

    @property
    def target(self) -> ExecutionTarget:
        """The tagged execution target.

        Raises:
            MisconfiguredExecutionTarget: neither or both of image and
                containerName are set.
        """
        if self.container_name and self.image:
            raise MisconfiguredExecutionTarget(
                f"Workspace '{self.name}' sets both a Docker image and a container name"
            )
        if self.container_name:
            return AttachTarget(self.container_name)
        if self.image:
            return LaunchTarget(self.image)
        raise MisconfiguredExecutionTarget(
            "No Docker image or container configured for this workspace"
        )

    @property
    def effective_container_path(self) -> str:
        return self.container_path or DEFAULT_CONTAINER_PATH

    def to_document(self) -> dict[str, Any]:
        """Serialize with on-disk keys, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True)


class SystemConfig(BaseModel):
    """The whole registry document."""

    model_config = ConfigDict(extra="ignore")

    workspaces: list[WorkspaceConfig] = Field(default_factory=list)
    debug: bool = False

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_projects(cls, data: Any) -> Any:
        # Older documents call the list "projects".
        if isinstance(data, dict) and "workspaces" not in data and "projects" in data:
            data = {**data, "workspaces": data["projects"]}
        if isinstance(data, dict) and not isinstance(data.get("workspaces", []), list):
            data = {**data, "workspaces": []}
        return data

    def get(self, name: str) -> WorkspaceConfig | None:
        for workspace in self.workspaces:
            if workspace.name == name:
                return workspace
        return None


def default_home() -> Path:
    """Base directory holding ``.codespin`` (``CODEBOX_HOME`` or the user home)."""
    return Path(os.environ.get("CODEBOX_HOME") or Path.home())


class WorkspaceRepository:
    """Reads and writes the workspace registry document.

    Example::

        repo = WorkspaceRepository(tmp_path)
        repo.upsert(WorkspaceConfig(name="w", path="/src/w", image="python:3.12"))
        ws = repo.get("w")
    """

    def __init__(self, home: str | Path | None = None) -> None:
        self.home = Path(home) if home is not None else default_home()

    @property
    def config_dir(self) -> Path:
        return self.home / CONFIG_DIR_NAME

    @property
    def config_file(self) -> Path:
        return self.config_dir / CONFIG_FILE_NAME

    @property
    def logs_dir(self) -> Path:
        return self.config_dir / "logs"

    def load(self) -> SystemConfig:
        """Read the registry; a missing or unreadable file is an empty registry."""
        if not self.config_file.exists():
            return SystemConfig()

        try:
            with open(self.config_file, encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"[config] failed to parse {self.config_file}: {e}")
            return SystemConfig()

        if raw is None:
            return SystemConfig()

        try:
            return SystemConfig.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"[config] invalid registry document {self.config_file}: {e}")
            return SystemConfig()

    def save(self, config: SystemConfig) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        document = {
            "workspaces": [w.to_document() for w in config.workspaces],
            "debug": config.debug,
        }
        self.config_file.write_text(json.dumps(document, indent=2), encoding="utf-8")

    def list_workspaces(self) -> list[WorkspaceConfig]:
        return self.load().workspaces

    def get(self, name: str) -> WorkspaceConfig | None:
        return self.load().get(name)

    def is_valid(self, name: str) -> bool:
        """True when the workspace is registered and its host path is a directory."""
        workspace = self.get(name)
        return workspace is not None and Path(workspace.path).is_dir()

    def is_debug(self) -> bool:
        return self.load().debug

    def upsert(self, workspace: WorkspaceConfig) -> bool:
        """Add or replace a workspace by name.

        Returns:
            True if an existing entry was replaced, False if added.
        """
        config = self.load()
        for index, existing in enumerate(config.workspaces):
            if existing.name == workspace.name:
                config.workspaces[index] = workspace
                self.save(config)
                return True
        config.workspaces.append(workspace)
        self.save(config)
        return False

    def remove(self, name: str) -> WorkspaceConfig | None:
        """Remove a workspace by name, returning the removed entry."""
        config = self.load()
        for index, existing in enumerate(config.workspaces):
            if existing.name == name:
                removed = config.workspaces.pop(index)
                self.save(config)
                return removed
        return None


# ── process settings ──────────────────────────────────────────────────────────

class ServerSettings(BaseSettings):
    """Settings for ``codebox start``.

    Every field can be set from a ``CODEBOX_``-prefixed environment variable
    (``CODEBOX_PORT``, ``CODEBOX_HOME`` …). Values passed explicitly (from
    command line options) take precedence over the environment.
    """

    model_config = SettingsConfigDict(env_prefix="CODEBOX_", extra="ignore")

    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    home: str | None = None
    allowed_origins: list[str] = Field(default_factory=list)
    idle_check_interval: float = Field(default=60.0, gt=0)
    serialize_commands: bool = False
    log_level: str = "INFO"
    log_format: str = "text"

    @model_validator(mode="after")
    def _default_origins(self) -> "ServerSettings":
        if not self.allowed_origins:
            self.allowed_origins = [f"http://localhost:{self.port}"]
        return self

    def repository(self) -> WorkspaceRepository:
        return WorkspaceRepository(self.home)
