"""Path resolution with workspace containment.

Every caller-supplied path is mapped to an absolute path under the
process-wide workspace root:
- legacy container paths (``/workspace/...``) are rebased onto the
  workspace's working directory
- root-prefixed relative paths (``workspace/...``) are translated
- relative paths resolve against the working directory
- absolute paths already under the root pass through
- any other absolute path keeps only its base name
"""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePosixPath

from buildspace.errors import ContainmentError
from buildspace.schemas import Workspace


logger = logging.getLogger(__name__)


def _normalize(path: str | Path) -> Path:
    """Collapse ``..`` and ``.`` segments without touching the filesystem."""
    return Path(os.path.normpath(str(path)))


def is_within(path: str | Path, root: str | Path) -> bool:
    """Check if path is root itself or a descendant of it, following symlinks."""
    real_root = os.path.realpath(root)
    real_path = os.path.realpath(path)
    return real_path == real_root or real_path.startswith(real_root + os.sep)


class PathResolver:
    """Maps caller paths onto a workspace and enforces containment."""

    def __init__(self, workspace_root: Path, legacy_prefix: str = "/workspace"):
        self.workspace_root = _normalize(Path(workspace_root).resolve())
        self.legacy_prefix = legacy_prefix.rstrip("/") or "/"

    def resolve(
        self,
        workspace: Workspace,
        caller_path: str,
        working_dir: str | None = None,
    ) -> Path:
        """Resolve caller_path for a workspace.

        Args:
            workspace: Workspace whose working directory anchors relative paths
            caller_path: Path as supplied by the caller
            working_dir: Optional working directory override, itself resolved
                against the workspace

        Returns:
            Absolute path under the workspace root

        Raises:
            ContainmentError: If the result falls outside the workspace root
        """
        base = Path(workspace.working_dir)
        if working_dir:
            base = self._resolve_against(base, working_dir)
        return self._resolve_against(base, caller_path)

    def ensure_contained(self, path: str | Path) -> Path:
        """Re-verify that path lies under the workspace root."""
        if not is_within(path, self.workspace_root):
            logger.warning(f"Containment violation: {path}")
            raise ContainmentError(str(path), str(self.workspace_root))
        return Path(path)

    def is_contained(self, path: str | Path) -> bool:
        return is_within(path, self.workspace_root)

    def is_legacy_path(self, caller_path: str) -> bool:
        posix = caller_path.replace("\\", "/")
        return posix == self.legacy_prefix or posix.startswith(self.legacy_prefix + "/")

    def _resolve_against(self, base: Path, caller_path: str) -> Path:
        raw = (caller_path or ".").strip().replace("\\", "/")
        candidate = Path(raw)

        if candidate.is_absolute() and not self.is_contained(candidate):
            if self.is_legacy_path(raw):
                remainder = raw[len(self.legacy_prefix):].lstrip("/")
                resolved = _normalize(base / remainder)
            else:
                # Last resort: keep only the base name
                name = PurePosixPath(raw).name
                logger.warning(f"Rebasing out-of-root path {raw} onto {base} as {name!r}")
                resolved = _normalize(base / name)
        elif candidate.is_absolute():
            resolved = _normalize(candidate)
        elif self._has_root_prefix(raw):
            resolved = self._translate_root_relative(base, raw)
        else:
            resolved = _normalize(base / raw)

        return self.ensure_contained(resolved)

    def _root_prefix(self) -> str | None:
        """The workspace root as a path relative to the process CWD, if any."""
        try:
            return Path(self.workspace_root).relative_to(Path.cwd()).as_posix()
        except ValueError:
            return None

    def _has_root_prefix(self, raw: str) -> bool:
        prefix = self._root_prefix()
        if not prefix or prefix == ".":
            return False
        raw = raw[2:] if raw.startswith("./") else raw
        return raw == prefix or raw.startswith(prefix + "/")

    def _translate_root_relative(self, base: Path, raw: str) -> Path:
        absolute = _normalize(Path.cwd() / raw)
        relative = os.path.relpath(absolute, self.workspace_root)
        # Paths that already name the workspace directory stay where they are
        if is_within(absolute, base) or relative.split(os.sep)[0] == _workspace_dir_name(
            base, self.workspace_root
        ):
            return absolute
        return _normalize(base / relative)


def _workspace_dir_name(base: Path, root: Path) -> str | None:
    try:
        return Path(base).relative_to(root).parts[0]
    except (ValueError, IndexError):
        return None
