"""SQL-backed workspace store."""

from __future__ import annotations

from sqlalchemy import delete
from sqlmodel import select

from buildspace.database.models import WorkspaceRecord
from buildspace.database.session import get_engine, get_session, get_session_maker, init_db
from buildspace.registry.base import WorkspaceStore
from buildspace.schemas import Workspace


class SQLWorkspaceStore(WorkspaceStore):
    """Persists workspace records in a SQL database (sqlite by default).

    Tables are created on first access.
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.engine = get_engine(database_url, echo=echo)
        self.session_maker = get_session_maker(self.engine)
        self._initialized = False

    async def _ensure_tables(self) -> None:
        if not self._initialized:
            await init_db(self.engine)
            self._initialized = True

    async def get(self, workspace_id: str) -> Workspace | None:
        await self._ensure_tables()
        async with get_session(self.session_maker) as session:
            record = await session.get(WorkspaceRecord, workspace_id)
            return record.to_workspace() if record else None

    async def put(self, workspace: Workspace) -> None:
        await self._ensure_tables()
        async with get_session(self.session_maker) as session:
            await session.merge(WorkspaceRecord.from_workspace(workspace))

    async def list(self) -> list[Workspace]:
        await self._ensure_tables()
        async with get_session(self.session_maker) as session:
            result = await session.execute(
                select(WorkspaceRecord).order_by(WorkspaceRecord.created_at)
            )
            return [record.to_workspace() for record in result.scalars().all()]

    async def clear(self) -> None:
        await self._ensure_tables()
        async with get_session(self.session_maker) as session:
            await session.execute(delete(WorkspaceRecord))

    async def close(self) -> None:
        await self.engine.dispose()
