"""Workspace manager.

Boundary operations consumed by the HTTP layer and the CLI. Each
operation names a workspace by id; the manager looks it up in the
registry and delegates to the command gateway or file operations.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import httpx

from buildspace.config import Settings, get_settings
from buildspace.errors import ContainmentError
from buildspace.registry import InMemoryWorkspaceStore, WorkspaceRegistry, WorkspaceStore
from buildspace.schemas import (
    DirectoryListing,
    ErrorKind,
    ExecutionResult,
    ExistsResult,
    FileContent,
    OperationResult,
    PreviewHint,
    ProjectFiles,
    StatusResponse,
    Workspace,
    WorkspaceCreated,
)
from buildspace.tools.files import FileOperations
from buildspace.tools.paths import PathResolver
from buildspace.tools.process import CommandRunner, run_process
from buildspace.tools.sandbox import CommandGateway


logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> WorkspaceStore:
    """Create the workspace store selected by ``registry_backend``."""
    if settings.registry_backend == "sql":
        from buildspace.database import SQLWorkspaceStore

        return SQLWorkspaceStore(settings.registry_database_url, echo=settings.debug)
    return InMemoryWorkspaceStore()


class WorkspaceManager:
    """Allocates workspaces and runs commands and file operations in them."""

    def __init__(
        self,
        settings: Settings | None = None,
        store: WorkspaceStore | None = None,
        runner: CommandRunner = run_process,
    ):
        self.settings = settings or get_settings()
        root = self.settings.resolved_workspace_root

        self.registry = WorkspaceRegistry(root, store if store is not None else build_store(self.settings))
        self.resolver = PathResolver(root, self.settings.legacy_path_prefix)
        self.gateway = CommandGateway(self.registry, self.resolver, self.settings, runner=runner)
        self.files = FileOperations(self.resolver, self.settings)

    # =========================================================================
    # Workspaces
    # =========================================================================

    async def create_workspace(self) -> WorkspaceCreated:
        workspace = await self.registry.create()
        return WorkspaceCreated(workspace_id=workspace.id, workspace_name=workspace.name)

    async def get_or_create_active_workspace(self) -> Workspace:
        return await self.registry.get_or_create_active()

    async def get_workspace(self, workspace_id: str | None = None) -> Workspace:
        """Look up a workspace, falling back to the active one when no id is given.

        Raises:
            WorkspaceNotFoundError: If an explicit id is unknown
        """
        if workspace_id is None:
            return await self.registry.get_or_create_active()
        return await self.registry.get(workspace_id)

    async def set_working_directory(self, workspace_id: str | None, path: str) -> OperationResult:
        workspace = await self.get_workspace(workspace_id)
        try:
            target = self.resolver.resolve(workspace, path)
            if not target.is_dir():
                return OperationResult(
                    success=False,
                    error=f"Not a directory: {path}",
                    error_kind=ErrorKind.EXECUTION_FAILURE,
                )
            await self.registry.update_working_dir(workspace.id, target)
        except ContainmentError as e:
            return OperationResult(
                success=False,
                error=str(e),
                error_kind=ErrorKind.CONTAINMENT_VIOLATION,
            )
        return OperationResult(success=True)

    # =========================================================================
    # Commands
    # =========================================================================

    async def execute(
        self,
        workspace_id: str | None,
        command: str,
        working_dir: str | None = None,
    ) -> ExecutionResult:
        workspace = await self.get_workspace(workspace_id)
        logger.info(f"[{workspace.name}] execute: {command}")
        return await self.gateway.execute(workspace, command, working_dir)

    # =========================================================================
    # Files
    # =========================================================================

    async def read_file(self, workspace_id: str | None, path: str, working_dir: str | None = None) -> FileContent:
        workspace = await self.get_workspace(workspace_id)
        return await self.files.read_file(workspace, path, working_dir)

    async def write_file(
        self,
        workspace_id: str | None,
        path: str,
        content: str,
        working_dir: str | None = None,
    ) -> OperationResult:
        workspace = await self.get_workspace(workspace_id)
        return await self.files.write_file(workspace, path, content, working_dir)

    async def list_dir(self, workspace_id: str | None, path: str = ".", working_dir: str | None = None) -> DirectoryListing:
        workspace = await self.get_workspace(workspace_id)
        return await self.files.list_dir(workspace, path, working_dir)

    async def mkdir(self, workspace_id: str | None, path: str, working_dir: str | None = None) -> OperationResult:
        workspace = await self.get_workspace(workspace_id)
        return await self.files.make_dir(workspace, path, working_dir)

    async def delete(self, workspace_id: str | None, path: str, working_dir: str | None = None) -> OperationResult:
        workspace = await self.get_workspace(workspace_id)
        return await self.files.delete(workspace, path, working_dir)

    async def exists(self, workspace_id: str | None, path: str, working_dir: str | None = None) -> ExistsResult:
        workspace = await self.get_workspace(workspace_id)
        return await self.files.exists(workspace, path, working_dir)

    async def list_all_files(self, workspace_id: str | None, working_dir: str | None = None) -> ProjectFiles:
        workspace = await self.get_workspace(workspace_id)
        return await self.files.list_all_files(workspace, working_dir)

    # =========================================================================
    # Preview
    # =========================================================================

    async def get_preview_hint(self, workspace_id: str | None = None) -> PreviewHint:
        """Best-effort guess at where the workspace's dev server listens.

        A returned url only means something answered on that port.
        """
        workspace = await self.get_workspace(workspace_id)
        metadata = _project_metadata(workspace)
        metadata["ports_checked"] = list(self.settings.preview_ports)

        async with httpx.AsyncClient(timeout=self.settings.preview_probe_timeout) as client:
            for port in self.settings.preview_ports:
                url = f"http://localhost:{port}"
                try:
                    await client.get(url)
                except httpx.HTTPError:
                    continue
                logger.info(f"[{workspace.name}] preview answering on port {port}")
                return PreviewHint(url=url, metadata=metadata)

        return PreviewHint(url=None, metadata=metadata)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def cleanup(self) -> int:
        """Release every workspace record; files stay on disk."""
        count = await self.registry.clear()
        logger.info(f"Cleanup released {count} workspace(s)")
        return count

    async def status(self) -> StatusResponse:
        workspaces = await self.registry.list()
        return StatusResponse(
            mode=self.settings.mode,
            active_workspace_count=len(workspaces),
            workspaces=[workspace.summary() for workspace in workspaces],
            workspace_root=str(self.registry.workspace_root),
        )

    async def close(self) -> None:
        await self.registry.store.close()


def _project_metadata(workspace: Workspace) -> dict:
    working_dir = Path(workspace.working_dir)
    metadata: dict = {
        "working_dir": working_dir.relative_to(workspace.root_dir).as_posix(),
        "project_name": None,
        "framework": "unknown",
        "has_dev_script": False,
    }

    manifest_path = working_dir / "package.json"
    try:
        manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return metadata
    if not isinstance(manifest, dict):
        return metadata

    deps: dict = {}
    for field in ("dependencies", "devDependencies"):
        if isinstance(manifest.get(field), dict):
            deps.update(manifest[field])
    scripts = manifest.get("scripts")
    if not isinstance(scripts, dict):
        scripts = {}
    name = manifest.get("name")
    metadata["project_name"] = name if isinstance(name, str) else None
    metadata["has_dev_script"] = "dev" in scripts
    if "next" in deps:
        metadata["framework"] = "next"
    elif "vite" in deps:
        metadata["framework"] = "vite"
    return metadata
