"""Workspace registry.

Creates workspace directories under the process-wide root and tracks
their records through a WorkspaceStore. The working directory is only
ever changed through ``update_working_dir``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

from buildspace.errors import ContainmentError, WorkspaceNotFoundError
from buildspace.registry.base import WorkspaceStore
from buildspace.registry.memory import InMemoryWorkspaceStore
from buildspace.schemas import Workspace
from buildspace.tools.paths import is_within


logger = logging.getLogger(__name__)

WORKSPACE_NAME_PREFIX = "workspace"


class WorkspaceRegistry:
    """Creates, stores and retrieves workspace records."""

    def __init__(self, workspace_root: Path, store: WorkspaceStore | None = None):
        self.workspace_root = Path(workspace_root).resolve()
        self.store = store if store is not None else InMemoryWorkspaceStore()

    def ensure_root(self) -> None:
        self.workspace_root.mkdir(parents=True, exist_ok=True)

    async def create(self) -> Workspace:
        """Allocate a new workspace directory and register it."""
        self.ensure_root()

        workspace_id = str(uuid4())
        name = f"{WORKSPACE_NAME_PREFIX}-{uuid4().hex[:8]}"
        root_dir = self.workspace_root / name
        root_dir.mkdir(parents=True, exist_ok=True)

        workspace = Workspace(
            id=workspace_id,
            name=name,
            root_dir=root_dir,
            working_dir=root_dir,
            created_at=datetime.now(timezone.utc),
        )
        await self.store.put(workspace)

        logger.info(f"Created workspace {name} ({workspace_id}) at {root_dir}")
        return workspace

    async def get(self, workspace_id: str) -> Workspace:
        """Get a workspace by id.

        Raises:
            WorkspaceNotFoundError: If the id is unknown
        """
        workspace = await self.store.get(workspace_id)
        if workspace is None:
            raise WorkspaceNotFoundError(workspace_id)
        return workspace

    async def get_or_create_active(self) -> Workspace:
        """Return the oldest registered workspace, creating one if none exist."""
        workspaces = await self.store.list()
        if workspaces:
            return workspaces[0]
        return await self.create()

    async def list(self) -> list[Workspace]:
        return await self.store.list()

    async def update_working_dir(self, workspace_id: str, path: Path) -> Workspace:
        """Point a workspace's working directory at path.

        Raises:
            WorkspaceNotFoundError: If the id is unknown
            ContainmentError: If path is outside the workspace directory
        """
        workspace = await self.get(workspace_id)
        target = Path(path).resolve()

        if not is_within(target, workspace.root_dir):
            raise ContainmentError(str(target), str(workspace.root_dir))

        updated = workspace.model_copy(update={"working_dir": target})
        await self.store.put(updated)

        logger.info(f"Workspace {workspace.name} working directory -> {target}")
        return updated

    async def clear(self) -> int:
        """Drop every record; workspace files stay on disk for diagnostics."""
        workspaces = await self.store.list()
        for workspace in workspaces:
            logger.info(f"Workspace {workspace.name} released (files retained at {workspace.root_dir})")
        await self.store.clear()
        return len(workspaces)
