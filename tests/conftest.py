"""Shared fixtures: a temp registry, a fake clock and a fake docker runner."""

from __future__ import annotations

from pathlib import Path

import pytest

from codebox.config import WorkspaceConfig, WorkspaceRepository
from codebox.docker.execution import DockerExecutor, ProcessOutput
from codebox.tokens.store import WorkspaceTokenStore


class FakeClock:
    """Epoch-ms clock the test moves by hand."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeRunner:
    """Stands in for ``run_shell``; records every command line.

    ``docker ps`` / ``docker network inspect`` probes answer from
    ``running_containers`` / ``networks``. Every other command pops the next
    queued output, or returns ``default``.
    """

    def __init__(self):
        self.calls: list[str] = []
        self.running_containers: set[str] = set()
        self.networks: set[str] = set()
        self.queued: list[ProcessOutput] = []
        self.default = ProcessOutput(stdout="ok\n", stderr="", exit_code=0)

    async def __call__(self, command_line: str, max_buffer: int) -> ProcessOutput:
        self.calls.append(command_line)
        if command_line.startswith("docker ps"):
            found = any(f"name=^{c}$" in command_line for c in self.running_containers)
            return ProcessOutput("f00dcafe\n" if found else "", "", 0)
        if command_line.startswith("docker network inspect"):
            found = any(f"inspect {n} " in command_line for n in self.networks)
            return ProcessOutput("net\n" if found else "", "" if found else "No such network", 0 if found else 1)
        if self.queued:
            return self.queued.pop(0)
        return self.default

    def queue(self, stdout: str = "", stderr: str = "", exit_code: int = 0) -> None:
        self.queued.append(ProcessOutput(stdout, stderr, exit_code))

    @property
    def commands(self) -> list[str]:
        """Calls that were not container/network probes."""
        return [
            c for c in self.calls
            if not c.startswith("docker ps") and not c.startswith("docker network inspect")
        ]


@pytest.fixture
def home(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def repo(home: Path) -> WorkspaceRepository:
    return WorkspaceRepository(home)


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A small project tree to register as a workspace."""
    project = tmp_path / "project"
    (project / "src").mkdir(parents=True)
    (project / "README.md").write_text("# Project\n")
    (project / "src" / "main.py").write_text("print('hello')\n")
    return project


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def docker(repo: WorkspaceRepository, runner: FakeRunner) -> DockerExecutor:
    return DockerExecutor(repo, runner=runner, identity=(1000, 1000))


@pytest.fixture
def store(repo: WorkspaceRepository, clock: FakeClock) -> WorkspaceTokenStore:
    return WorkspaceTokenStore(repo, clock=clock)


@pytest.fixture
def register(repo: WorkspaceRepository):
    """Register a workspace directly in the repository (image defaults to python:3.12)."""

    def _register(name: str, path: Path | str, **fields) -> WorkspaceConfig:
        if "image" not in fields and "container_name" not in fields:
            fields["image"] = "python:3.12"
        workspace = WorkspaceConfig(name=name, path=str(path), **fields)
        repo.upsert(workspace)
        return workspace

    return _register
