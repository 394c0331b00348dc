"""Abstract base class for workspace stores."""

from __future__ import annotations

from abc import ABC, abstractmethod

from buildspace.schemas import Workspace


class WorkspaceStore(ABC):
    """Key-value store of workspace records keyed by workspace id.

    The registry depends only on this interface, so the in-memory store
    can be replaced by a persistent or shared one.
    """

    @abstractmethod
    async def get(self, workspace_id: str) -> Workspace | None:
        """Return the record for workspace_id, or None if absent."""
        ...

    @abstractmethod
    async def put(self, workspace: Workspace) -> None:
        """Insert or replace a record."""
        ...

    @abstractmethod
    async def list(self) -> list[Workspace]:
        """Return all records, oldest first."""
        ...

    @abstractmethod
    async def clear(self) -> None:
        ...

    async def close(self) -> None:
        """Release store resources."""
        return None
