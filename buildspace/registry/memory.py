"""In-memory workspace store."""

from __future__ import annotations

from buildspace.registry.base import WorkspaceStore
from buildspace.schemas import Workspace


class InMemoryWorkspaceStore(WorkspaceStore):
    """Dict-backed store; records live for the life of the process."""

    def __init__(self) -> None:
        self._workspaces: dict[str, Workspace] = {}

    async def get(self, workspace_id: str) -> Workspace | None:
        return self._workspaces.get(workspace_id)

    async def put(self, workspace: Workspace) -> None:
        self._workspaces[workspace.id] = workspace

    async def list(self) -> list[Workspace]:
        return sorted(self._workspaces.values(), key=lambda w: w.created_at)

    async def clear(self) -> None:
        self._workspaces.clear()
