from buildspace.registry.base import WorkspaceStore
from buildspace.registry.memory import InMemoryWorkspaceStore
from buildspace.registry.registry import WorkspaceRegistry

__all__ = [
    "WorkspaceStore",
    "InMemoryWorkspaceStore",
    "WorkspaceRegistry",
]
