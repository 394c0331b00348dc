"""Workspace file operations.

Thin wrappers over the filesystem:
- read_file / write_file: text content (write creates parent directories)
- list_dir / make_dir / delete / exists
- list_all_files: recursive snapshot of a project, bounded in size

Every path goes through the PathResolver and is re-checked for
containment right before disk access. Containment failures come back as
structured access-denied results.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from buildspace.config import Settings, get_settings
from buildspace.errors import ContainmentError
from buildspace.schemas import (
    DirectoryListing,
    ErrorKind,
    ExistsResult,
    FileContent,
    OperationResult,
    ProjectFile,
    ProjectFiles,
    Workspace,
)
from buildspace.tools.paths import PathResolver


logger = logging.getLogger(__name__)

# Dependency, build-output and cache directories never included in snapshots
IGNORED_DIRS = frozenset({
    "node_modules", "dist", "build", ".next", ".npm-install", ".cache",
})


def _denied(error: ContainmentError) -> str:
    return f"Access denied: {error.path} is outside the workspace"


class FileOperations:
    """File and directory access scoped to workspaces."""

    def __init__(self, resolver: PathResolver, settings: Settings | None = None):
        self.resolver = resolver
        self.settings = settings or get_settings()

    def _target(self, workspace: Workspace, path: str, working_dir: str | None) -> Path:
        resolved = self.resolver.resolve(workspace, path, working_dir)
        return self.resolver.ensure_contained(resolved)

    async def read_file(
        self,
        workspace: Workspace,
        path: str,
        working_dir: str | None = None,
    ) -> FileContent:
        try:
            target = self._target(workspace, path, working_dir)
            with open(target, "r", encoding="utf-8", newline="") as f:
                return FileContent(content=f.read())
        except ContainmentError as e:
            return FileContent(error=_denied(e), error_kind=ErrorKind.CONTAINMENT_VIOLATION)
        except FileNotFoundError:
            return FileContent(error=f"File not found: {path}", error_kind=ErrorKind.EXECUTION_FAILURE)
        except (OSError, UnicodeDecodeError) as e:
            return FileContent(error=f"Failed to read {path}: {e}", error_kind=ErrorKind.EXECUTION_FAILURE)

    async def write_file(
        self,
        workspace: Workspace,
        path: str,
        content: str,
        working_dir: str | None = None,
    ) -> OperationResult:
        try:
            target = self._target(workspace, path, working_dir)
            data = content.encode("utf-8")
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except ContainmentError as e:
            return OperationResult(success=False, error=_denied(e), error_kind=ErrorKind.CONTAINMENT_VIOLATION)
        except (OSError, UnicodeError) as e:
            return OperationResult(
                success=False, error=f"Failed to write {path}: {e}", error_kind=ErrorKind.EXECUTION_FAILURE
            )

        logger.info(f"Wrote {len(content)} chars to {target}")
        return OperationResult(success=True)

    async def list_dir(
        self,
        workspace: Workspace,
        path: str = ".",
        working_dir: str | None = None,
    ) -> DirectoryListing:
        try:
            target = self._target(workspace, path, working_dir)
            return DirectoryListing(files=sorted(os.listdir(target)))
        except ContainmentError as e:
            return DirectoryListing(error=_denied(e), error_kind=ErrorKind.CONTAINMENT_VIOLATION)
        except OSError as e:
            return DirectoryListing(
                error=f"Failed to list {path}: {e}", error_kind=ErrorKind.EXECUTION_FAILURE
            )

    async def make_dir(
        self,
        workspace: Workspace,
        path: str,
        working_dir: str | None = None,
    ) -> OperationResult:
        try:
            target = self._target(workspace, path, working_dir)
            target.mkdir(parents=True, exist_ok=True)
        except ContainmentError as e:
            return OperationResult(success=False, error=_denied(e), error_kind=ErrorKind.CONTAINMENT_VIOLATION)
        except OSError as e:
            return OperationResult(
                success=False, error=f"Failed to create {path}: {e}", error_kind=ErrorKind.EXECUTION_FAILURE
            )
        return OperationResult(success=True)

    async def delete(
        self,
        workspace: Workspace,
        path: str,
        working_dir: str | None = None,
    ) -> OperationResult:
        try:
            target = self._target(workspace, path, working_dir)
            root = self.resolver.workspace_root
            if target == root or target.parent == root:
                return OperationResult(
                    success=False,
                    error=f"Refusing to delete workspace root: {path}",
                    error_kind=ErrorKind.CONTAINMENT_VIOLATION,
                )
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            else:
                target.unlink()
        except ContainmentError as e:
            return OperationResult(success=False, error=_denied(e), error_kind=ErrorKind.CONTAINMENT_VIOLATION)
        except FileNotFoundError:
            return OperationResult(
                success=False, error=f"Not found: {path}", error_kind=ErrorKind.EXECUTION_FAILURE
            )
        except OSError as e:
            return OperationResult(
                success=False, error=f"Failed to delete {path}: {e}", error_kind=ErrorKind.EXECUTION_FAILURE
            )

        logger.info(f"Deleted {target}")
        return OperationResult(success=True)

    async def exists(
        self,
        workspace: Workspace,
        path: str,
        working_dir: str | None = None,
    ) -> ExistsResult:
        try:
            target = self._target(workspace, path, working_dir)
        except ContainmentError:
            return ExistsResult(exists=False)
        return ExistsResult(exists=target.exists())

    async def list_all_files(
        self,
        workspace: Workspace,
        working_dir: str | None = None,
    ) -> ProjectFiles:
        """Collect text files under the working directory.

        Hidden entries and IGNORED_DIRS are skipped; binary files are left
        out. Stops after ``max_listed_files`` files.
        """
        try:
            base = self._target(workspace, ".", working_dir)
        except ContainmentError as e:
            logger.warning(_denied(e))
            return ProjectFiles()

        limit = self.settings.max_listed_files
        files: list[ProjectFile] = []

        for dirpath, dirnames, filenames in os.walk(base):
            dirnames[:] = sorted(
                d for d in dirnames if not d.startswith(".") and d not in IGNORED_DIRS
            )
            for filename in sorted(filenames):
                if filename.startswith("."):
                    continue
                full_path = Path(dirpath) / filename
                if not self.resolver.is_contained(full_path):
                    continue
                if len(files) >= limit:
                    return ProjectFiles(files=files, truncated=True)
                try:
                    content = full_path.read_text(encoding="utf-8")
                except (OSError, UnicodeDecodeError):
                    continue
                files.append(ProjectFile(
                    path=full_path.relative_to(base).as_posix(),
                    content=content,
                ))

        return ProjectFiles(files=files)
