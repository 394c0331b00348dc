"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from buildspace.api.main import app
from buildspace.api.routes import get_manager


@pytest.fixture
def client(manager):
    app.dependency_overrides[get_manager] = lambda: manager
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class TestWorkspaceEndpoints:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_init_and_status(self, client):
        created = client.post("/api/workspace/init").json()
        status = client.get("/api/workspace/status").json()

        assert created["workspace_name"].startswith("workspace-")
        assert status["active_workspace_count"] == 1
        assert status["workspaces"][0]["id"] == created["workspace_id"]

    def test_active_is_idempotent(self, client):
        first = client.get("/api/workspace/active").json()
        second = client.get("/api/workspace/active").json()
        assert first["id"] == second["id"]

    def test_execute(self, client, runner):
        response = client.post("/api/workspace/execute", json={"command": "ls -la"})

        assert response.status_code == 200
        assert response.json()["exit_code"] == 0
        assert runner.commands == ["ls -la"]

    def test_execute_rejected(self, client, runner):
        response = client.post("/api/workspace/execute", json={"command": "rm -rf /"})
        body = response.json()

        assert response.status_code == 200
        assert body["exit_code"] == 1
        assert body["output"] == ""
        assert body["error_kind"] == "policy_rejection"
        assert runner.calls == []

    def test_unknown_workspace_is_404(self, client):
        response = client.post(
            "/api/workspace/execute",
            json={"command": "ls", "workspace_id": "missing"},
        )
        assert response.status_code == 404

    def test_file_roundtrip(self, client):
        write = client.post("/api/workspace/write", json={"path": "src/App.tsx", "content": "<App />"})
        read = client.post("/api/workspace/read", json={"path": "src/App.tsx"})
        exists = client.post("/api/workspace/exists", json={"path": "src/App.tsx"})
        listing = client.post("/api/workspace/list", json={"path": "src"})

        assert write.json()["success"] is True
        assert read.json()["content"] == "<App />"
        assert exists.json()["exists"] is True
        assert listing.json()["files"] == ["App.tsx"]

    def test_read_traversal(self, client):
        body = client.post("/api/workspace/read", json={"path": "../../etc/passwd"}).json()

        assert body["content"] == ""
        assert body["error_kind"] == "containment_violation"

    def test_mkdir_cwd_delete(self, client):
        assert client.post("/api/workspace/mkdir", json={"path": "app"}).json()["success"]
        assert client.post("/api/workspace/cwd", json={"path": "app"}).json()["success"]

        active = client.get("/api/workspace/active").json()
        assert active["working_dir"].endswith("/app")

        assert client.post("/api/workspace/cwd", json={"path": ".."}).json()["success"]
        assert client.post("/api/workspace/delete", json={"path": "app"}).json()["success"]

    def test_all_files(self, client):
        client.post("/api/workspace/write", json={"path": "index.html", "content": "<html></html>"})
        body = client.post("/api/workspace/all-files", json={}).json()

        assert body["files"] == [{"path": "index.html", "content": "<html></html>"}]
        assert body["truncated"] is False

    def test_preview_url(self, client):
        body = client.get("/api/workspace/preview-url").json()

        assert body["url"] is None
        assert "ports_checked" in body["metadata"]

    def test_cleanup(self, client):
        client.post("/api/workspace/init")
        body = client.post("/api/workspace/cleanup").json()

        assert body == {"success": True, "released": 1}
        assert client.get("/api/workspace/status").json()["active_workspace_count"] == 0
