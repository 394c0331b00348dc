"""Exceptions raised for caller contract violations.

Environmental failures are returned as structured results instead.
"""

from __future__ import annotations


class BuildspaceError(Exception):
    """Base class for buildspace errors."""


class WorkspaceNotFoundError(BuildspaceError, LookupError):
    """Raised when a workspace id is not present in the registry."""

    def __init__(self, workspace_id: str):
        super().__init__(f"Workspace {workspace_id} not found")
        self.workspace_id = workspace_id


class ContainmentError(BuildspaceError):
    """Raised when a path resolves outside the authorized root."""

    def __init__(self, path: str, root: str):
        super().__init__(f"Access denied: {path} is outside {root}")
        self.path = path
        self.root = root
