"""Pydantic schemas for workspace records and engine I/O contracts.

These schemas define the strict contracts between:
- The workspace registry and its stores
- The command gateway, scaffold orchestrator and dependency installer
- File operations and the HTTP layer
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================

class ErrorKind(str, Enum):
    """Taxonomy of structured failures returned to callers."""
    POLICY_REJECTION = "policy_rejection"
    VALIDATION_FAILURE = "validation_failure"
    EXECUTION_FAILURE = "execution_failure"
    CONTAINMENT_VIOLATION = "containment_violation"
    SCAFFOLD_EXHAUSTION = "scaffold_exhaustion"
    INSTALL_SHORTFALL = "install_shortfall"


class CommandClass(str, Enum):
    """Allowlisted command shapes."""
    PACKAGE_MANAGER = "package_manager"
    READ_ONLY = "read_only"
    VERSION_CONTROL = "version_control"
    DIRECTORY_CHANGE = "directory_change"
    COMPOUND = "compound"


# =============================================================================
# Workspace
# =============================================================================

class Workspace(BaseModel):
    """An isolated directory tree standing in for a container.

    Records are immutable; the registry replaces them when the working
    directory changes.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Opaque workspace token")
    name: str = Field(..., description="Human-readable slug")
    root_dir: Path = Field(..., description="Absolute workspace directory")
    working_dir: Path = Field(..., description="Current working directory")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def summary(self) -> WorkspaceSummary:
        return WorkspaceSummary(
            id=self.id,
            name=self.name,
            root_dir=str(self.root_dir),
            working_dir=str(self.working_dir),
            created_at=self.created_at,
        )


class WorkspaceSummary(BaseModel):
    """Serializable view of a workspace."""
    id: str
    name: str
    root_dir: str
    working_dir: str
    created_at: datetime


# =============================================================================
# Execution Schemas
# =============================================================================

class ExecutionResult(BaseModel):
    """Outcome of one execution request."""
    model_config = ConfigDict(frozen=True)

    output: str = Field(default="", description="Captured standard output")
    error: str | None = Field(default=None, description="Error text or stderr")
    exit_code: int = Field(..., description="Process exit code")
    error_kind: ErrorKind | None = Field(default=None)
    warnings: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ScaffoldRequest(BaseModel):
    """Project-creation parameters extracted from a command string."""
    model_config = ConfigDict(frozen=True)

    project_name: str = Field(..., description="Project directory; \".\" creates in place")
    template: str
    original_command: str

    @property
    def in_place(self) -> bool:
        return self.project_name == "."


class InstallReport(BaseModel):
    """Outcome of a dependency installation run."""
    ok: bool
    strategy: str | None = Field(default=None, description="Strategy that succeeded")
    attempted: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    error: str | None = None


# =============================================================================
# File Operation Schemas
# =============================================================================

class FileContent(BaseModel):
    content: str = ""
    error: str | None = None
    error_kind: ErrorKind | None = None


class OperationResult(BaseModel):
    success: bool
    error: str | None = None
    error_kind: ErrorKind | None = None


class DirectoryListing(BaseModel):
    files: list[str] = Field(default_factory=list)
    error: str | None = None
    error_kind: ErrorKind | None = None


class ExistsResult(BaseModel):
    exists: bool


class ProjectFile(BaseModel):
    path: str
    content: str


class ProjectFiles(BaseModel):
    files: list[ProjectFile] = Field(default_factory=list)
    truncated: bool = False


class PreviewHint(BaseModel):
    """Best-effort hint about where a dev server may be reachable."""
    url: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# API Request/Response Schemas
# =============================================================================

class WorkspaceCreated(BaseModel):
    workspace_id: str
    workspace_name: str


class StatusResponse(BaseModel):
    mode: str
    active_workspace_count: int
    workspaces: list[WorkspaceSummary] = Field(default_factory=list)
    workspace_root: str


class ExecuteRequest(BaseModel):
    """API request to run a command."""
    command: str = Field(..., description="Shell command to run")
    workspace_id: str | None = Field(default=None)
    working_dir: str | None = Field(default=None, description="Working directory override")

    class Config:
        json_schema_extra = {
            "example": {
                "command": "npm create vite@latest my-app -- --template react-ts",
                "working_dir": None,
            }
        }


class PathRequest(BaseModel):
    path: str = Field(default=".", description="Path inside the workspace")
    workspace_id: str | None = None
    working_dir: str | None = None


class WriteFileRequest(PathRequest):
    content: str = ""


class WorkingDirRequest(BaseModel):
    path: str
    workspace_id: str | None = None


class WorkspaceRequest(BaseModel):
    workspace_id: str | None = None
    working_dir: str | None = None
