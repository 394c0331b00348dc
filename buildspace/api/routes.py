"""FastAPI routes for workspace operations.

Endpoints (mounted under /api/workspace):
- POST /init        - Create a new workspace
- GET  /active      - Get or create the active workspace
- POST /execute     - Run a command
- POST /read        - Read a file
- POST /write       - Write a file
- POST /list        - List a directory
- POST /mkdir       - Create a directory
- POST /delete      - Delete a file or directory
- POST /exists      - Check a path
- POST /all-files   - Snapshot the project's text files
- GET  /preview-url - Best-effort dev server URL
- POST /cwd         - Change the working directory
- POST /cleanup     - Release all workspaces
- GET  /status      - Manager status

Requests without a workspace_id use the active workspace.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from buildspace.errors import WorkspaceNotFoundError
from buildspace.manager import WorkspaceManager
from buildspace.schemas import (
    DirectoryListing,
    ExecuteRequest,
    ExecutionResult,
    ExistsResult,
    FileContent,
    OperationResult,
    PathRequest,
    PreviewHint,
    ProjectFiles,
    StatusResponse,
    WorkingDirRequest,
    WorkspaceCreated,
    WorkspaceRequest,
    WorkspaceSummary,
    WriteFileRequest,
)


logger = logging.getLogger(__name__)
router = APIRouter()

_manager: WorkspaceManager | None = None


def get_manager() -> WorkspaceManager:
    """Process-wide manager instance."""
    global _manager
    if _manager is None:
        _manager = WorkspaceManager()
    return _manager


def _not_found(error: WorkspaceNotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(error))


# =============================================================================
# Workspaces
# =============================================================================

@router.post("/init", response_model=WorkspaceCreated)
async def init_workspace(manager: WorkspaceManager = Depends(get_manager)) -> WorkspaceCreated:
    created = await manager.create_workspace()
    logger.info(f"Initialized workspace {created.workspace_name}")
    return created


@router.get("/active", response_model=WorkspaceSummary)
async def active_workspace(manager: WorkspaceManager = Depends(get_manager)) -> WorkspaceSummary:
    workspace = await manager.get_or_create_active_workspace()
    return workspace.summary()


@router.post("/cwd", response_model=OperationResult)
async def set_working_directory(
    request: WorkingDirRequest,
    manager: WorkspaceManager = Depends(get_manager),
) -> OperationResult:
    try:
        return await manager.set_working_directory(request.workspace_id, request.path)
    except WorkspaceNotFoundError as e:
        raise _not_found(e)


# =============================================================================
# Commands
# =============================================================================

@router.post("/execute", response_model=ExecutionResult)
async def execute(
    request: ExecuteRequest,
    manager: WorkspaceManager = Depends(get_manager),
) -> ExecutionResult:
    """Run a command in a workspace.

    Rejected, failed and timed-out commands still return 200 with a
    non-zero exit_code; only an unknown workspace_id is an HTTP error.
    """
    try:
        return await manager.execute(request.workspace_id, request.command, request.working_dir)
    except WorkspaceNotFoundError as e:
        raise _not_found(e)


# =============================================================================
# Files
# =============================================================================

@router.post("/read", response_model=FileContent)
async def read_file(request: PathRequest, manager: WorkspaceManager = Depends(get_manager)) -> FileContent:
    try:
        return await manager.read_file(request.workspace_id, request.path, request.working_dir)
    except WorkspaceNotFoundError as e:
        raise _not_found(e)


@router.post("/write", response_model=OperationResult)
async def write_file(request: WriteFileRequest, manager: WorkspaceManager = Depends(get_manager)) -> OperationResult:
    try:
        return await manager.write_file(
            request.workspace_id, request.path, request.content, request.working_dir
        )
    except WorkspaceNotFoundError as e:
        raise _not_found(e)


@router.post("/list", response_model=DirectoryListing)
async def list_dir(request: PathRequest, manager: WorkspaceManager = Depends(get_manager)) -> DirectoryListing:
    try:
        return await manager.list_dir(request.workspace_id, request.path, request.working_dir)
    except WorkspaceNotFoundError as e:
        raise _not_found(e)


@router.post("/mkdir", response_model=OperationResult)
async def mkdir(request: PathRequest, manager: WorkspaceManager = Depends(get_manager)) -> OperationResult:
    try:
        return await manager.mkdir(request.workspace_id, request.path, request.working_dir)
    except WorkspaceNotFoundError as e:
        raise _not_found(e)


@router.post("/delete", response_model=OperationResult)
async def delete(request: PathRequest, manager: WorkspaceManager = Depends(get_manager)) -> OperationResult:
    try:
        return await manager.delete(request.workspace_id, request.path, request.working_dir)
    except WorkspaceNotFoundError as e:
        raise _not_found(e)


@router.post("/exists", response_model=ExistsResult)
async def exists(request: PathRequest, manager: WorkspaceManager = Depends(get_manager)) -> ExistsResult:
    try:
        return await manager.exists(request.workspace_id, request.path, request.working_dir)
    except WorkspaceNotFoundError as e:
        raise _not_found(e)


@router.post("/all-files", response_model=ProjectFiles)
async def all_files(request: WorkspaceRequest, manager: WorkspaceManager = Depends(get_manager)) -> ProjectFiles:
    try:
        return await manager.list_all_files(request.workspace_id, request.working_dir)
    except WorkspaceNotFoundError as e:
        raise _not_found(e)


# =============================================================================
# Preview / lifecycle
# =============================================================================

@router.get("/preview-url", response_model=PreviewHint)
async def preview_url(
    workspace_id: str | None = None,
    manager: WorkspaceManager = Depends(get_manager),
) -> PreviewHint:
    try:
        return await manager.get_preview_hint(workspace_id)
    except WorkspaceNotFoundError as e:
        raise _not_found(e)


@router.post("/cleanup")
async def cleanup(manager: WorkspaceManager = Depends(get_manager)) -> dict:
    released = await manager.cleanup()
    return {"success": True, "released": released}


@router.get("/status", response_model=StatusResponse)
async def status(manager: WorkspaceManager = Depends(get_manager)) -> StatusResponse:
    return await manager.status()
