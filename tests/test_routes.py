from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from profilepage.core import config as core_config
from profilepage.repositories.sql_repository import SQLRepository
from profilepage.services.identity import SESSION_HEADER_NAME, issue_session

LEGACY = {
    "components": [
        {"id": "hello", "type": "text", "order": 0, "content": {"text": "Hello"}},
        {"id": "site", "type": "link", "order": 1, "content": {"url": "https://example.com", "label": "Site"}},
    ],
    "backgroundColor": "#EEEEEE",
}


@pytest.fixture()
def client(temp_db, monkeypatch):
    monkeypatch.setenv("SAVE_DEBOUNCE_SECONDS", "60")
    core_config.get_settings.cache_clear()
    from profilepage.app import create_app

    with TestClient(create_app()) as c:
        yield c


@pytest.fixture()
def auth():
    repo = SQLRepository()
    repo.upsert_user("u1", username="ann", embedded_profile=LEGACY)
    return {SESSION_HEADER_NAME: issue_session("u1")}


def test_editor_requires_identity(client):
    assert client.get("/api/editor/document").status_code == 401
    assert client.post("/api/editor/components", json={"type": "text"}).status_code == 401
    assert client.get("/api/editor/document", headers={SESSION_HEADER_NAME: "bogus"}).status_code == 401


def test_edit_flow_persists_on_close(client, auth):
    res = client.get("/api/editor/document", headers=auth)
    assert res.status_code == 200
    body = res.json()
    assert body["profileId"] == "default"
    assert [c["id"] for c in body["document"]["components"]] == ["hello", "site"]
    assert body["save"]["status"] == "saved"

    res = client.post("/api/editor/components", json={"type": "text"}, headers=auth)
    assert res.status_code == 201
    new_id = res.json()["component"]["id"]
    assert res.json()["save"]["status"] == "saving"

    res = client.patch(f"/api/editor/components/{new_id}", json={"content": {"text": "<b>Fresh</b>"}}, headers=auth)
    assert res.json()["component"]["content"] == {"text": "Fresh"}

    res = client.post("/api/editor/components/reorder", json={"fromIndex": 2, "toIndex": 0}, headers=auth)
    assert res.json()["order"] == [new_id, "hello", "site"]

    res = client.delete("/api/editor/components/site", headers=auth)
    assert res.status_code == 200

    assert client.get("/api/editor/status", headers=auth).json()["pending"] is True
    assert client.post("/api/editor/close", headers=auth).json() == {"closed": True, "status": "saved"}

    record = SQLRepository().get_profile("u1", "default")
    assert [c["id"] for c in record.components] == [new_id, "hello"]
    assert [c["order"] for c in record.components] == [0, 1]

    page = client.get("/p/ann")
    assert page.status_code == 200
    assert page.text.index("Fresh") < page.text.index("Hello")
    assert "Site" not in page.text


def test_editor_errors_map_to_http(client, auth):
    assert client.post("/api/editor/components", json={"type": "scaffold"}, headers=auth).status_code == 422
    assert client.post("/api/editor/components", json={"type": "video"}, headers=auth).status_code == 422
    assert client.patch("/api/editor/components/missing", json={"content": {}}, headers=auth).status_code == 404
    assert client.delete("/api/editor/components/missing", headers=auth).status_code == 404
    assert client.post("/api/editor/components/reorder", json={"fromIndex": 0, "toIndex": 9}, headers=auth).status_code == 422


def test_flush_and_background(client, auth):
    assert client.post("/api/editor/flush", headers=auth).json() == {"warn": False}
    res = client.put("/api/editor/background", json={"type": "image", "url": "https://x.io/bg.jpg"}, headers=auth)
    assert res.status_code == 200
    assert res.json()["background"]["opacity"] == pytest.approx(0.7)
    assert "linear-gradient" in res.json()["backgroundStyle"]["background-image"]
    assert set(client.post("/api/editor/flush", headers=auth).json()) == {"warn"}
    client.post("/api/editor/close", headers=auth)
    record = SQLRepository().get_profile("u1", "default")
    assert record.background["type"] == "image"


def test_public_page(client, auth):
    res = client.get("/p/ann")
    assert res.status_code == 200
    assert "Hello" in res.text
    assert 'target="_blank" rel="noopener noreferrer"' in res.text
    assert "data-component-id" not in res.text
    assert res.headers["X-Frame-Options"] == "DENY"
    assert client.get("/p/nobody").status_code == 404


def test_public_page_with_unreadable_legacy_graph(client):
    SQLRepository().upsert_user("u2", username="bob", embedded_profile={"editorContent": "{broken"})
    res = client.get("/p/bob")
    assert res.status_code == 200
    assert "No content yet" in res.text
    assert "could not be read" in res.text


def test_editor_page(client, auth):
    assert client.get("/edit", follow_redirects=False).status_code == 303
    res = client.get("/edit", headers=auth)
    assert res.status_code == 200
    assert 'data-component-id="hello"' in res.text
    assert "background-pick" in res.text
    assert "data-action=edit" in res.text


def test_profiles_api(client, auth):
    res = client.get("/api/profiles", headers=auth)
    assert res.status_code == 200
    assert [p["id"] for p in res.json()["profiles"]] == ["default"]
    assert res.json()["activeProfileId"] == "default"

    created = client.post("/api/profiles", json={"name": "Work"}, headers=auth).json()
    assert created["isActive"] is False

    assert client.post(f"/api/profiles/{created['id']}/activate", headers=auth).status_code == 200
    assert client.get("/api/profiles", headers=auth).json()["activeProfileId"] == created["id"]

    copy = client.post(f"/api/profiles/{created['id']}/duplicate", headers=auth).json()
    assert copy["name"] == "Work (copy)"

    assert client.delete(f"/api/profiles/{copy['id']}", headers=auth).status_code == 200
    assert client.delete(f"/api/profiles/{created['id']}", headers=auth).status_code == 200
    assert client.delete("/api/profiles/default", headers=auth).status_code == 409
    assert client.post("/api/profiles/missing/activate", headers=auth).status_code == 404

    migration = client.get("/api/profiles/migration", headers=auth).json()
    assert migration["migrated"] is True
    assert migration["defaultProfileId"] == "default"


def test_reset(client, auth):
    res = client.post("/api/editor/reset", headers=auth)
    assert res.status_code == 200
    assert [c["type"] for c in res.json()["document"]["components"]] == ["profile-card"]
    assert res.json()["document"]["background"] == {"type": "solid", "color": "#F9FAFB"}


def test_reset_reports_unmigrated_storage(client, auth, monkeypatch):
    monkeypatch.setattr(client.app.state.document_service.migrations, "migrate", lambda user_id: False)
    assert client.post("/api/editor/reset", headers=auth).status_code == 503
    assert SQLRepository().get_profile("u1", "default") is None


def test_unreadable_legacy_notice_survives_migration(client):
    from profilepage.services.migration_service import MigrationService

    SQLRepository().upsert_user("u3", username="cy", embedded_profile={"editorContent": "{broken"})
    assert MigrationService().migrate("u3") is True
    res = client.get("/p/cy")
    assert res.status_code == 200
    assert "could not be read" in res.text
