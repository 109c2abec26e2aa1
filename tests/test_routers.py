"""HTTP surface tests: webhook and sync routers on a bare FastAPI app."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from server.routers.SyncRouter import router as sync_router
from server.routers.WebhookRouter import router as webhook_router

from conftest import THREE_PARAGRAPHS, write_note

AUTH = {"X-API-Key": "secret"}


@pytest.fixture
def client(helper_config, sync_service) -> TestClient:
    app = FastAPI()
    app.state.helper_config = helper_config
    app.state.logging = helper_config.get_logger()
    app.state.sync_service = sync_service
    app.include_router(webhook_router)
    app.include_router(sync_router)
    return TestClient(app)


class TestAuth:

    @pytest.mark.parametrize("headers", [{}, {"X-API-Key": "wrong"}])
    def test_rejects_bad_key(self, client, headers):
        assert client.get("/sync/status", headers=headers).status_code == 401
        assert client.post("/webhook/note", json={"path": "a.md", "event": "created"}, headers=headers).status_code == 401


class TestWebhook:

    def test_event_is_queued(self, client, vault_dir, sync_service):
        write_note(vault_dir, "a.md", "text", doc_id="doc-a")
        response = client.post("/webhook/note", json={"path": "a.md", "event": "modified"}, headers=AUTH)
        assert response.status_code == 200
        assert response.json() == {"status": "accepted", "path": "a.md", "queued": True}
        assert "doc-a" in sync_service.get_queue()

    def test_note_without_id_is_not_queued(self, client, vault_dir):
        write_note(vault_dir, "a.md", "text")
        response = client.post("/webhook/note", json={"path": "a.md", "event": "created"}, headers=AUTH)
        assert response.status_code == 200
        assert response.json()["queued"] is False

    def test_boolean_and_numeric_frontmatter_keys(self, client, vault_dir, sync_service):
        (vault_dir / "a.md").write_text("---\nuuid: doc-a\non: monday\n2024: review\n---\ntext", encoding="utf-8")
        response = client.post("/webhook/note", json={"path": "a.md", "event": "modified"}, headers=AUTH)
        assert response.status_code == 200
        assert response.json()["queued"] is True
        assert "doc-a" in sync_service.get_queue()

    def test_unknown_event_kind(self, client):
        response = client.post("/webhook/note", json={"path": "a.md", "event": "renamed"}, headers=AUTH)
        assert response.status_code == 422

    def test_path_outside_vault(self, client):
        response = client.post("/webhook/note", json={"path": "../../etc/passwd.md", "event": "created"}, headers=AUTH)
        assert response.status_code == 400


class TestSyncCommands:

    def test_status(self, client, vault_dir):
        write_note(vault_dir, "a.md", "text", doc_id="doc-a")
        client.post("/webhook/note", json={"path": "a.md", "event": "created"}, headers=AUTH)
        body = client.get("/sync/status", headers=AUTH).json()
        assert body["state"] == "idle"
        assert body["queued"] == 1
        assert body["debounce_pending"] is True

    def test_flush(self, client, vault_dir, qdrant):
        write_note(vault_dir, "a.md", "text", doc_id="doc-a")
        client.post("/webhook/note", json={"path": "a.md", "event": "created"}, headers=AUTH)
        body = client.post("/sync/flush", headers=AUTH).json()
        assert body["queued"] == 0
        assert body["last_error"] is None
        assert body["last_flush_at"] is not None
        assert len(qdrant.points_for("doc-a")) == 1

    def test_flush_failure_is_reported_in_status(self, client, vault_dir, embedder):
        write_note(vault_dir, "a.md", "text", doc_id="doc-a")
        client.post("/webhook/note", json={"path": "a.md", "event": "created"}, headers=AUTH)
        embedder.fail = True
        response = client.post("/sync/flush", headers=AUTH)
        assert response.status_code == 200
        assert response.json()["queued"] == 1
        assert response.json()["last_error"].startswith("ClientRequestError")

    def test_reindex(self, client, vault_dir, qdrant):
        write_note(vault_dir, "a.md", "text a", doc_id="doc-a")
        write_note(vault_dir, "sub/b.md", "text b", doc_id="doc-b")
        write_note(vault_dir, "c.md", "no id")
        response = client.post("/sync/reindex", headers=AUTH)
        assert response.json() == {"queued": 2, "ok": True, "last_error": None}
        assert {p["payload"]["note_path"] for p in qdrant.points.values()} == {"a.md", "sub/b.md"}

    def test_sync_note(self, client, vault_dir):
        write_note(vault_dir, "a.md", THREE_PARAGRAPHS, doc_id="doc-a")
        response = client.post("/sync/note", json={"path": "a.md"}, headers=AUTH)
        assert response.status_code == 200
        assert response.json() == {"path": "a.md", "doc_id": "doc-a", "status": "synced", "points": 3}

    def test_sync_note_without_id(self, client, vault_dir):
        write_note(vault_dir, "a.md", "text")
        assert client.post("/sync/note", json={"path": "a.md"}, headers=AUTH).status_code == 422

    def test_sync_note_outside_vault(self, client):
        assert client.post("/sync/note", json={"path": "../x.md"}, headers=AUTH).status_code == 400

    def test_sync_note_backend_failure(self, client, vault_dir, qdrant):
        write_note(vault_dir, "a.md", "text", doc_id="doc-a")
        qdrant.fail_ops.add("delete")
        response = client.post("/sync/note", json={"path": "a.md"}, headers=AUTH)
        assert response.status_code == 502
        assert "delete exploded" in response.json()["detail"]
