"""Tests for the codebox CLI and the registry commands behind it."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from codebox import __version__
from codebox.cli import cli
from codebox.config import WorkspaceConfig
from codebox.registry import add_workspace, describe_target, remove_workspace


@pytest.fixture
def cli_runner(home: Path) -> CliRunner:
    return CliRunner(env={"CODEBOX_HOME": str(home)})


class TestRegistryAdd:
    @pytest.mark.asyncio
    async def test_add_with_image(self, repo, docker, project_dir):
        result = await add_workspace(repo, str(project_dir), image="node:20", docker=docker)

        assert result.replaced is False
        assert result.warnings == []
        saved = repo.get("project")
        assert saved.path == str(project_dir.resolve())
        assert saved.image == "node:20"
        assert saved.copy_mode is False

    @pytest.mark.asyncio
    async def test_relative_dirname_and_name(self, repo, docker, project_dir):
        result = await add_workspace(
            repo, "src", image="alpine", name="sources", cwd=project_dir, docker=docker
        )
        assert result.workspace.name == "sources"
        assert result.workspace.path == str((project_dir / "src").resolve())

    @pytest.mark.asyncio
    async def test_requires_exactly_one_target(self, repo, docker, project_dir):
        with pytest.raises(ValueError, match="--image"):
            await add_workspace(repo, str(project_dir), docker=docker)
        with pytest.raises(ValueError, match="only one"):
            await add_workspace(repo, str(project_dir), image="a", container="b", docker=docker)
        assert repo.list_workspaces() == []

    @pytest.mark.asyncio
    async def test_missing_directory(self, repo, docker, tmp_path):
        with pytest.raises(FileNotFoundError):
            await add_workspace(repo, str(tmp_path / "nope"), image="alpine", docker=docker)

    @pytest.mark.asyncio
    async def test_container_not_running_warns_but_saves(self, repo, docker, project_dir):
        result = await add_workspace(repo, str(project_dir), container="dev-box", docker=docker)

        assert len(result.warnings) == 1
        assert "Container 'dev-box' not found or not running" in result.warnings[0]
        assert repo.get("project").container_name == "dev-box"

    @pytest.mark.asyncio
    async def test_running_container_and_network(self, repo, docker, runner, project_dir):
        runner.running_containers.add("dev-box")
        result = await add_workspace(repo, str(project_dir), container="dev-box", docker=docker)
        assert result.warnings == []

        result = await add_workspace(
            repo, str(project_dir), image="alpine", network="missing-net", docker=docker
        )
        assert result.warnings == [
            "Network 'missing-net' not found. Commands may fail until the network is available."
        ]

    @pytest.mark.asyncio
    async def test_re_add_merges_options(self, repo, docker, project_dir):
        await add_workspace(
            repo, str(project_dir), image="alpine", network="devnet",
            container_path="/src", idle_timeout=0, docker=docker,
        )
        result = await add_workspace(
            repo, str(project_dir), container="dev-box", copy=True, docker=docker
        )

        assert result.replaced is True
        ws = repo.get("project")
        assert ws.image is None
        assert ws.container_name == "dev-box"
        assert ws.network == "devnet"
        assert ws.container_path == "/src"
        assert ws.idle_timeout == 0
        assert ws.copy_mode is True
        assert len(repo.list_workspaces()) == 1


class TestRegistryRemove:
    def test_by_name(self, repo, register, project_dir):
        register("app", project_dir)
        assert remove_workspace(repo, "app").name == "app"
        assert repo.list_workspaces() == []

    def test_by_name_option(self, repo, register, project_dir):
        register("app", project_dir)
        assert remove_workspace(repo, "ignored/path", name="app").name == "app"

    def test_by_path(self, repo, register, project_dir):
        register("app", project_dir)
        assert remove_workspace(repo, str(project_dir)).name == "app"

    def test_current_directory(self, repo, register, project_dir):
        register("app", project_dir)
        assert remove_workspace(repo, ".", cwd=project_dir).name == "app"

    def test_not_found(self, repo, register, project_dir, tmp_path):
        register("app", project_dir)
        assert remove_workspace(repo, "other") is None
        assert remove_workspace(repo, str(tmp_path / "elsewhere")) is None
        assert [w.name for w in repo.list_workspaces()] == ["app"]


class TestDescribeTarget:
    def test_targets(self):
        assert describe_target(WorkspaceConfig(name="a", path="/a", image="alpine")) == "image alpine"
        assert describe_target(WorkspaceConfig(name="a", path="/a", container_name="box")) == "container box"
        assert describe_target(WorkspaceConfig(name="a", path="/a")).startswith("invalid")
        assert describe_target(
            WorkspaceConfig(name="a", path="/a", image="x", container_name="y")
        ).startswith("invalid")


class TestWorkspaceCommands:
    def test_add_list_remove(self, cli_runner: CliRunner, repo, project_dir):
        result = cli_runner.invoke(cli, ["workspace", "add", str(project_dir), "--image", "node:20"])
        assert result.exit_code == 0, result.output
        assert "Added workspace: project" in result.output

        result = cli_runner.invoke(
            cli, ["workspace", "add", str(project_dir), "--image", "node:22", "--copy"]
        )
        assert "Updated workspace: project" in result.output
        assert repo.get("project").image == "node:22"
        assert repo.get("project").copy_mode is True

        result = cli_runner.invoke(cli, ["workspace", "list"])
        assert result.exit_code == 0
        assert "project" in result.output
        assert "exists" in result.output

        result = cli_runner.invoke(cli, ["workspace", "remove", "project"])
        assert "Removed workspace: project" in result.output
        assert repo.list_workspaces() == []

    def test_add_all_options(self, cli_runner: CliRunner, repo, project_dir):
        result = cli_runner.invoke(cli, [
            "workspace", "add", str(project_dir),
            "--image", "python:3.12",
            "--name", "py",
            "--container-path", "/code",
            "--network", "devnet",
            "--idle-timeout", "0",
            "--run-template", "docker run {{image}} sh -c \"{{command}}\"",
        ])
        assert result.exit_code == 0, result.output

        saved = json.loads(repo.config_file.read_text())["workspaces"][0]
        assert saved["name"] == "py"
        assert saved["containerPath"] == "/code"
        assert saved["network"] == "devnet"
        assert saved["idleTimeout"] == 0
        assert saved["runTemplate"] == "docker run {{image}} sh -c \"{{command}}\""

    def test_add_without_target_fails(self, cli_runner: CliRunner, repo, project_dir):
        result = cli_runner.invoke(cli, ["workspace", "add", str(project_dir)])
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert repo.list_workspaces() == []

    def test_add_missing_directory_fails(self, cli_runner: CliRunner, tmp_path):
        result = cli_runner.invoke(cli, ["workspace", "add", str(tmp_path / "nope"), "--image", "x"])
        assert result.exit_code == 1
        assert "Directory not found" in result.output

    def test_negative_idle_timeout_rejected(self, cli_runner: CliRunner, project_dir):
        result = cli_runner.invoke(
            cli, ["workspace", "add", str(project_dir), "--image", "x", "--idle-timeout", "-5"]
        )
        assert result.exit_code == 2

    def test_list_empty(self, cli_runner: CliRunner):
        result = cli_runner.invoke(cli, ["workspace", "list"])
        assert result.exit_code == 0
        assert "No workspaces are registered" in result.output

    def test_remove_unknown(self, cli_runner: CliRunner):
        result = cli_runner.invoke(cli, ["workspace", "remove", "--name", "ghost"])
        assert result.exit_code == 0
        assert "Workspace not found: ghost" in result.output


class TestStartCommand:
    def test_stdio_session(self, cli_runner: CliRunner, register, project_dir, monkeypatch):
        monkeypatch.setattr("codebox.utils.setup_logging", lambda *args, **kwargs: None)
        register("app", project_dir)
        request = json.dumps({"id": 1, "tool": "list_workspaces"})

        result = cli_runner.invoke(cli, ["start"], input=request + "\n")

        assert result.exit_code == 0, result.output
        responses = [
            json.loads(line) for line in result.output.splitlines() if line.startswith('{"id"')
        ]
        assert responses == [{"id": 1, "success": True, "output": "app", "error": None}]

    def test_invalid_interval(self, cli_runner: CliRunner):
        result = cli_runner.invoke(cli, ["start", "--idle-check-interval", "0"])
        assert result.exit_code == 1
        assert "Invalid settings" in result.output


class TestVersion:
    def test_version_command(self):
        result = CliRunner().invoke(cli, ["version"])
        assert result.output.strip() == f"codebox {__version__}"

    def test_version_option(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert __version__ in result.output
