"""Tests for the tool providers and the tool executor."""

from __future__ import annotations

import asyncio
import json
import threading
from pathlib import Path

import pytest

from codebox.factory import create_tool_executor
from codebox.fs import IsolatedCopyMaterializer
from codebox.tokens import WorkspaceTokenStore
from codebox.tools import ExecuteTools, FileTools, ToolExecutor, ToolResult, WorkspaceTools
from codebox.tools.workspaces import NO_WORKSPACES_HINT
from codebox.utils.audit import RequestAuditLog


@pytest.fixture
def tools(repo, store, docker) -> ToolExecutor:
    return create_tool_executor(repo, store, docker)


async def open_token(tools: ToolExecutor, name: str) -> str:
    result = await tools.execute("open_workspace", {"workspaceName": name})
    assert result.success, result.error
    return result.output


class TestToolResult:
    def test_ok_and_fail(self):
        assert ToolResult.ok("x").model_dump() == {"success": True, "output": "x", "error": None}
        failed = ToolResult.fail("bad")
        assert failed.success is False
        assert failed.error == "bad"
        assert failed.output is None


class TestToolExecutor:
    def test_tool_definitions(self, tools: ToolExecutor):
        assert tools.available_tools == [
            "list_workspaces",
            "open_workspace",
            "close_workspace",
            "execute_command",
            "execute_batch_commands",
            "write_file",
            "write_batch_files",
            "read_file",
        ]
        definitions = {d.name: d for d in tools.get_tool_definitions()}
        assert definitions["write_file"].parameters["required"] == [
            "workspaceToken", "filePath", "content",
        ]

    @pytest.mark.asyncio
    async def test_unknown_tool(self, tools: ToolExecutor):
        result = await tools.execute("format_disk", {})
        assert result.success is False
        assert result.error == "Unknown tool: format_disk"
        assert tools.execution_count == 1

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, tools: ToolExecutor):
        result = await tools.execute("open_workspace", {})
        assert result.success is False
        assert result.error.startswith("Invalid arguments: workspaceName")

    @pytest.mark.asyncio
    async def test_provider_exception_becomes_failure(self, repo, store, docker):
        class Exploding(WorkspaceTools):
            async def execute(self, tool_name, arguments):
                raise RuntimeError("kaboom")

        executor = ToolExecutor([Exploding(repo, store)])
        result = await executor.execute("list_workspaces")
        assert result.success is False
        assert result.error == "Unexpected error in list_workspaces: kaboom"

    @pytest.mark.asyncio
    async def test_audit_log(self, repo, store, docker, tmp_path: Path):
        audit = RequestAuditLog(tmp_path / "logs", enabled=True)
        executor = create_tool_executor(repo, store, docker, audit_log=audit)

        await executor.execute("list_workspaces", {})

        request_files = sorted(p.name for p in audit.requests_dir.iterdir())
        assert len(request_files) == 2
        assert request_files[0].endswith("_request.json")
        assert request_files[1].endswith("_response.json")
        response = json.loads((audit.requests_dir / request_files[1]).read_text())
        assert response["tool"] == "list_workspaces"
        assert response["response"]["success"] is True

        log_lines = next(audit.logs_dir.glob("*.log")).read_text().splitlines()
        assert log_lines[0].endswith("list_workspaces")
        assert log_lines[1].endswith("list_workspaces ok")


class TestWorkspaceTools:
    @pytest.mark.asyncio
    async def test_list(self, tools, register, project_dir):
        result = await tools.execute("list_workspaces", {})
        assert result.output == NO_WORKSPACES_HINT

        register("alpha", project_dir)
        register("beta", project_dir)
        result = await tools.execute("list_workspaces", {})
        assert result.success
        assert result.output == "alpha\nbeta"

    @pytest.mark.asyncio
    async def test_open_and_close(self, tools, store, register, project_dir):
        register("w", project_dir)
        token = await open_token(tools, "w")
        assert token in store

        result = await tools.execute("close_workspace", {"workspaceToken": token})
        assert result.success
        assert result.output == f"Workspace token closed: {token}"
        assert token not in store

        result = await tools.execute("close_workspace", {"workspaceToken": token})
        assert result.success is False
        assert result.error == f"Invalid workspace token: {token}"

    @pytest.mark.asyncio
    async def test_open_unregistered(self, tools):
        result = await tools.execute("open_workspace", {"workspaceName": "ghost"})
        assert result.success is False
        assert result.error == "Invalid or unregistered workspace: ghost"

    @pytest.mark.asyncio
    async def test_open_missing_directory(self, tools, register, tmp_path):
        register("gone", tmp_path / "deleted")
        result = await tools.execute("open_workspace", {"workspaceName": "gone"})
        assert result.success is False
        assert result.error == "Invalid or unregistered workspace: gone"

    @pytest.mark.asyncio
    async def test_copy_in_progress_does_not_stall_other_calls(
        self, repo, docker, register, project_dir, clock
    ):
        gate = threading.Event()

        class SlowMaterializer(IsolatedCopyMaterializer):
            def create(self, source_dir, prefix):
                gate.wait(timeout=2)
                return super().create(source_dir, prefix)

        register("copied", project_dir, copy_mode=True)
        register("plain", project_dir)
        store = WorkspaceTokenStore(repo, materializer=SlowMaterializer(), clock=clock)
        tools = create_tool_executor(repo, store, docker)

        opening = asyncio.create_task(
            tools.execute("open_workspace", {"workspaceName": "copied"})
        )
        await asyncio.sleep(0.05)
        plain = await open_token(tools, "plain")

        assert not opening.done()
        assert store.tokens() == [plain]

        gate.set()
        result = await opening
        assert result.success
        assert (Path(store.resolve_working_dir(result.output)) / "README.md").exists()
        await store.close_all_async()


class TestExecuteTools:
    @pytest.mark.asyncio
    async def test_execute_command(self, tools, runner, register, project_dir):
        register("w", project_dir, image="node:20")
        token = await open_token(tools, "w")
        runner.queue(stdout="done\n", stderr="warning: x\n")

        result = await tools.execute("execute_command", {"workspaceToken": token, "command": "npm test"})

        assert result.success
        assert result.output == "done\n\nSTDERR:\nwarning: x\n"
        assert runner.commands[0].endswith('node:20 /bin/sh -c "npm test"')

    @pytest.mark.asyncio
    async def test_execute_in_copy_mounts_copy(self, tools, store, runner, register, project_dir):
        register("w", project_dir, image="node:20", copy_mode=True)
        token = await open_token(tools, "w")
        working_dir = store.resolve_working_dir(token)

        await tools.execute("execute_command", {"workspaceToken": token, "command": "ls"})

        assert f'-v "{working_dir}:/workspace"' in runner.commands[0]
        store.close_all()

    @pytest.mark.asyncio
    async def test_invalid_token(self, tools, runner):
        result = await tools.execute("execute_command", {"workspaceToken": "nope", "command": "ls"})
        assert result.success is False
        assert result.error == "Invalid or expired workspace token: nope"
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_command_failure(self, tools, runner, register, project_dir):
        register("w", project_dir)
        token = await open_token(tools, "w")
        runner.queue(stdout="", stderr="not found", exit_code=127)

        result = await tools.execute("execute_command", {"workspaceToken": token, "command": "nope"})

        assert result.success is False
        assert result.error.startswith("Error executing command: Docker execution failed:\n")
        assert result.error.endswith("STDERR:\nnot found")

    @pytest.mark.asyncio
    async def test_container_not_running(self, tools, register, project_dir):
        register("w", project_dir, container_name="dev-box")
        token = await open_token(tools, "w")

        result = await tools.execute("execute_command", {"workspaceToken": token, "command": "ls"})
        assert result.success is False
        assert "Container 'dev-box' not found or not running" in result.error

    @pytest.mark.asyncio
    async def test_batch_stops_on_error(self, tools, runner, register, project_dir):
        register("w", project_dir)
        token = await open_token(tools, "w")
        runner.queue(stdout="one\n")
        runner.queue(stderr="broken", exit_code=1)

        result = await tools.execute("execute_batch_commands", {
            "workspaceToken": token,
            "commands": ["echo one", "false", "echo three"],
        })

        assert result.success
        assert len(runner.commands) == 2
        assert "Command: echo one\nStatus: Success\nOutput:\none\n" in result.output
        assert "Command: false\nStatus: Failed\n" in result.output
        assert "echo three" not in result.output
        assert result.output.count("----------------------------------------") == 2

    @pytest.mark.asyncio
    async def test_batch_continues_when_asked(self, tools, runner, register, project_dir):
        register("w", project_dir)
        token = await open_token(tools, "w")
        runner.queue(exit_code=1)

        result = await tools.execute("execute_batch_commands", {
            "workspaceToken": token,
            "commands": ["false", "echo two"],
            "stopOnError": False,
        })

        assert result.success
        assert len(runner.commands) == 2
        assert "Command: echo two\nStatus: Success" in result.output

    @pytest.mark.asyncio
    async def test_serialized_commands(self, repo, store, docker, runner, register, project_dir):
        tools = create_tool_executor(repo, store, docker, serialize_commands=True)
        register("w", project_dir)
        token = await open_token(tools, "w")

        result = await tools.execute("execute_command", {"workspaceToken": token, "command": "ls"})
        assert result.success


class TestFileTools:
    @pytest.mark.asyncio
    async def test_write_and_read(self, tools, register, project_dir):
        register("w", project_dir)
        token = await open_token(tools, "w")

        result = await tools.execute("write_file", {
            "workspaceToken": token, "filePath": "notes/todo.txt", "content": "a\n",
        })
        assert result.output == "Successfully wrote file: notes/todo.txt"

        result = await tools.execute("write_file", {
            "workspaceToken": token, "filePath": "notes/todo.txt", "content": "b\n", "mode": "append",
        })
        assert result.output == "Successfully appended to file: notes/todo.txt"

        result = await tools.execute("read_file", {"workspaceToken": token, "filePath": "notes/todo.txt"})
        assert result.output == "a\nb\n"
        assert (project_dir / "notes" / "todo.txt").read_text() == "a\nb\n"

    @pytest.mark.asyncio
    async def test_write_traversal(self, tools, register, project_dir):
        register("w", project_dir)
        token = await open_token(tools, "w")

        result = await tools.execute("write_file", {
            "workspaceToken": token, "filePath": "../evil.txt", "content": "x",
        })
        assert result.success is False
        assert result.error == "Invalid file path: ../evil.txt - path traversal attempt detected"
        assert not (project_dir.parent / "evil.txt").exists()

    @pytest.mark.asyncio
    async def test_invalid_mode(self, tools, register, project_dir):
        register("w", project_dir)
        token = await open_token(tools, "w")
        result = await tools.execute("write_file", {
            "workspaceToken": token, "filePath": "a.txt", "content": "x", "mode": "truncate",
        })
        assert result.success is False
        assert result.error.startswith("Invalid arguments: mode")

    @pytest.mark.asyncio
    async def test_read_missing(self, tools, register, project_dir):
        register("w", project_dir)
        token = await open_token(tools, "w")
        result = await tools.execute("read_file", {"workspaceToken": token, "filePath": "nope.txt"})
        assert result.success is False
        assert "File not found: nope.txt" in result.error

    @pytest.mark.asyncio
    async def test_invalid_token(self, tools):
        result = await tools.execute("read_file", {"workspaceToken": "nope", "filePath": "a"})
        assert result.error == "Invalid or expired workspace token: nope"

    @pytest.mark.asyncio
    async def test_batch_write(self, tools, register, project_dir):
        register("w", project_dir)
        token = await open_token(tools, "w")

        result = await tools.execute("write_batch_files", {
            "workspaceToken": token,
            "files": [
                {"filePath": "a.txt", "content": "A"},
                {"filePath": "b/b.txt", "content": "B", "mode": "append"},
            ],
        })

        assert result.success
        assert "File: a.txt\nStatus: Success\nMessage: Successfully wrote file\n" in result.output
        assert "File: b/b.txt\nStatus: Success\nMessage: Successfully appended to file\n" in result.output
        assert (project_dir / "a.txt").read_text() == "A"
        assert (project_dir / "b" / "b.txt").read_text() == "B"

    @pytest.mark.asyncio
    async def test_batch_bad_path_writes_nothing(self, tools, register, project_dir):
        register("w", project_dir)
        token = await open_token(tools, "w")

        result = await tools.execute("write_batch_files", {
            "workspaceToken": token,
            "files": [
                {"filePath": "good.txt", "content": "ok"},
                {"filePath": "../bad.txt", "content": "no"},
            ],
        })

        assert result.success is False
        assert "File: ../bad.txt\nStatus: Failed" in result.error
        assert not (project_dir / "good.txt").exists()

    @pytest.mark.asyncio
    async def test_batch_bad_path_without_stop(self, tools, register, project_dir):
        register("w", project_dir)
        token = await open_token(tools, "w")

        result = await tools.execute("write_batch_files", {
            "workspaceToken": token,
            "stopOnError": False,
            "files": [
                {"filePath": "../bad.txt", "content": "no"},
                {"filePath": "good.txt", "content": "ok"},
            ],
        })

        assert result.success
        assert "File: ../bad.txt\nStatus: Failed" in result.output
        assert "File: good.txt\nStatus: Success" in result.output
        assert (project_dir / "good.txt").read_text() == "ok"

    @pytest.mark.asyncio
    async def test_copy_mode_writes_stay_private(self, tools, store, register, project_dir):
        register("w", project_dir, copy_mode=True)
        token = await open_token(tools, "w")

        await tools.execute("write_file", {
            "workspaceToken": token, "filePath": "file.txt", "content": "private",
        })

        working_dir = Path(store.resolve_working_dir(token))
        assert (working_dir / "file.txt").read_text() == "private"
        assert not (project_dir / "file.txt").exists()

        await tools.execute("close_workspace", {"workspaceToken": token})
        assert not working_dir.exists()


class TestProviders:
    def test_provides_tool(self, repo, store, docker):
        assert WorkspaceTools(repo, store).provides_tool("open_workspace")
        assert ExecuteTools(store, docker).provides_tool("execute_batch_commands")
        assert FileTools(store).provides_tool("read_file")
        assert not FileTools(store).provides_tool("execute_command")
