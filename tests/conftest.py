"""Shared fixtures and test helpers."""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Union

import pytest

from buildspace.config import Settings
from buildspace.manager import WorkspaceManager
from buildspace.registry import InMemoryWorkspaceStore
from buildspace.schemas import ExecutionResult


@dataclass
class Call:
    command: str
    cwd: Path
    timeout: float | None


Handler = Union[ExecutionResult, Callable[[str, Path], ExecutionResult]]


class FakeRunner:
    """Stands in for run_process: records calls and answers from handlers.

    Handlers are matched by regex in registration order; unmatched
    commands succeed with empty output.
    """

    def __init__(self):
        self.calls: list[Call] = []
        self.handlers: list[tuple[re.Pattern[str], Handler]] = []

    def on(self, pattern: str, handler: Handler) -> "FakeRunner":
        self.handlers.append((re.compile(pattern), handler))
        return self

    async def __call__(self, command, cwd, env=None, timeout=None, max_output_bytes=0):
        self.calls.append(Call(command=command, cwd=Path(cwd), timeout=timeout))
        for pattern, handler in self.handlers:
            if pattern.search(command):
                return handler(command, Path(cwd)) if callable(handler) else handler
        return ExecutionResult(output="", exit_code=0)

    @property
    def commands(self) -> list[str]:
        return [call.command for call in self.calls]


def fail(error: str, exit_code: int = 1) -> ExecutionResult:
    return ExecutionResult(output="", error=error, exit_code=exit_code)


def write_manifest(project_dir: Path, scripts: dict[str, str], **extra) -> Path:
    project_dir.mkdir(parents=True, exist_ok=True)
    path = project_dir / "package.json"
    path.write_text(json.dumps({"name": project_dir.name, "scripts": scripts, **extra}))
    return path


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        workspace_root=tmp_path / "workspace",
        scaffold_settle_seconds=0,
        sandbox_timeout_seconds=5,
        preview_ports=[1],
        preview_probe_timeout=0.1,
    )


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def manager(settings, runner) -> WorkspaceManager:
    return WorkspaceManager(settings, store=InMemoryWorkspaceStore(), runner=runner)


@pytest.fixture
async def workspace(manager):
    return await manager.get_or_create_active_workspace()
