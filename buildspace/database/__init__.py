from buildspace.database.store import SQLWorkspaceStore

__all__ = ["SQLWorkspaceStore"]
