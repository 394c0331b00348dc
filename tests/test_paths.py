"""Tests for path resolution and containment."""

import pytest

from buildspace.errors import ContainmentError
from buildspace.tools.paths import PathResolver, is_within


@pytest.fixture
def resolver(manager) -> PathResolver:
    return manager.resolver


class TestResolve:
    """Test the resolution rules."""

    @pytest.mark.asyncio
    async def test_relative_path_uses_working_dir(self, resolver, workspace):
        assert resolver.resolve(workspace, "src/App.tsx") == workspace.root_dir / "src" / "App.tsx"

    @pytest.mark.asyncio
    async def test_empty_path_is_working_dir(self, resolver, workspace):
        assert resolver.resolve(workspace, "") == workspace.working_dir

    @pytest.mark.asyncio
    async def test_legacy_prefix_is_rebased(self, resolver, workspace):
        resolved = resolver.resolve(workspace, "/workspace/my-app/src/main.tsx")
        assert resolved == workspace.root_dir / "my-app" / "src" / "main.tsx"

    @pytest.mark.asyncio
    async def test_bare_legacy_prefix_is_working_dir(self, resolver, workspace):
        assert resolver.resolve(workspace, "/workspace") == workspace.working_dir

    @pytest.mark.asyncio
    async def test_absolute_path_under_root_unchanged(self, resolver, workspace):
        target = workspace.root_dir / "pkg" / "index.js"
        assert resolver.resolve(workspace, str(target)) == target

    @pytest.mark.asyncio
    async def test_foreign_absolute_path_keeps_base_name(self, resolver, workspace):
        assert resolver.resolve(workspace, "/etc/passwd") == workspace.working_dir / "passwd"

    @pytest.mark.asyncio
    async def test_root_relative_prefix_is_translated(self, resolver, workspace, settings, monkeypatch):
        monkeypatch.chdir(settings.workspace_root.parent)

        own = resolver.resolve(workspace, f"workspace/{workspace.name}/src")
        assert own == workspace.root_dir / "src"

        other = resolver.resolve(workspace, "workspace/notes.txt")
        assert other == workspace.working_dir / "notes.txt"

    @pytest.mark.asyncio
    async def test_working_dir_override(self, resolver, workspace):
        resolved = resolver.resolve(workspace, "package.json", working_dir="my-app")
        assert resolved == workspace.root_dir / "my-app" / "package.json"

    @pytest.mark.asyncio
    async def test_traversal_is_refused(self, resolver, workspace):
        with pytest.raises(ContainmentError):
            resolver.resolve(workspace, "../../etc/passwd")

    @pytest.mark.asyncio
    async def test_legacy_traversal_is_refused(self, resolver, workspace):
        with pytest.raises(ContainmentError):
            resolver.resolve(workspace, "/workspace/../../../etc/shadow")

    @pytest.mark.asyncio
    async def test_symlink_escape_is_refused(self, resolver, workspace, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        (workspace.root_dir / "link").symlink_to(outside)

        with pytest.raises(ContainmentError):
            resolver.resolve(workspace, "link/secret.txt")


class TestContainmentProperty:
    """Every resolved path stays under the workspace root."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("caller_path", [
        ".",
        "a/b/c.txt",
        "./a/../b",
        "..",
        "../..",
        "/workspace/x",
        "/workspace/../..",
        "/",
        "/usr/bin/env",
        "/tmp",
        "workspace/foo",
        "~/.ssh/id_rsa",
        "a/../../..",
    ])
    async def test_result_is_contained_or_refused(self, resolver, workspace, caller_path):
        try:
            resolved = resolver.resolve(workspace, caller_path)
        except ContainmentError:
            return
        assert is_within(resolved, resolver.workspace_root)


class TestIsWithin:

    def test_root_itself(self, tmp_path):
        assert is_within(tmp_path, tmp_path)

    def test_sibling_with_shared_prefix(self, tmp_path):
        assert not is_within(tmp_path / "workspace-evil", tmp_path / "workspace")
