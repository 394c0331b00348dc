"""SQLModel database tables.

Tables:
- WorkspaceRecord: persisted workspace registry entries
"""

from datetime import datetime, timezone
from pathlib import Path

from sqlmodel import Field, SQLModel

from buildspace.schemas import Workspace


class WorkspaceRecord(SQLModel, table=True):
    """A registered workspace."""

    __tablename__ = "workspaces"

    id: str = Field(primary_key=True, description="Workspace id")
    name: str = Field(index=True, description="Workspace slug")
    root_dir: str = Field(description="Absolute workspace directory")
    working_dir: str = Field(description="Current working directory")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)

    @classmethod
    def from_workspace(cls, workspace: Workspace) -> "WorkspaceRecord":
        return cls(
            id=workspace.id,
            name=workspace.name,
            root_dir=str(workspace.root_dir),
            working_dir=str(workspace.working_dir),
            created_at=workspace.created_at,
        )

    def to_workspace(self) -> Workspace:
        return Workspace(
            id=self.id,
            name=self.name,
            root_dir=Path(self.root_dir),
            working_dir=Path(self.working_dir),
            created_at=self.created_at,
        )
