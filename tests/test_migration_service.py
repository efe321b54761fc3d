"""
Migration across the three storage generations against a temporary SQLite database.
"""
from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from profilepage.domain.blocks import BlockType, ImageBackground, SolidBackground
from profilepage.repositories.sql_repository import SQLRepository
from profilepage.services.document_service import DocumentService
from profilepage.services.migration_service import DEFAULT_PROFILE_ID, MigrationService

LEGACY = {
    "components": [
        {"id": "t", "type": "text", "order": 1, "content": {"text": "<i>about</i>"}},
        {"id": "p", "type": "profile", "order": 0, "content": {"fullName": "Ann", "mobile": "090"}},
    ],
    "backgroundColor": "#112233",
    "socialLinks": [{"kind": "x", "url": "https://x.com/ann"}],
}

GRAPH = {
    "ROOT": {"type": {"resolvedName": "Container"}, "nodes": ["s", "t"]},
    "s": {"type": {"resolvedName": "AddComponentPlaceholder"}, "nodes": []},
    "t": {"type": {"resolvedName": "Text"}, "props": {"text": "from graph"}, "nodes": []},
}


def _boom(*args, **kwargs):
    raise OperationalError("stmt", {}, Exception("disk full"))


def test_needs_migration_and_missing_user(temp_db):
    svc = MigrationService()
    assert svc.needs_migration("ghost") is False
    assert svc.migrate("ghost") is False
    SQLRepository().upsert_user("u1", username="ann")
    assert svc.needs_migration("u1") is True


def test_migrate_embedded_generation(temp_db):
    repo = SQLRepository()
    repo.upsert_user("u1", username="ann", embedded_profile=LEGACY)
    svc = MigrationService()

    assert svc.migrate("u1") is True
    user = repo.get_user("u1")
    assert user.profile_migrated
    assert user.migration_date is not None
    assert user.default_profile_id == DEFAULT_PROFILE_ID

    record = repo.get_profile("u1", DEFAULT_PROFILE_ID)
    assert record.is_active and record.is_default
    assert [c["id"] for c in record.components] == ["p", "t"]
    assert record.components[0]["content"] == {"name": "Ann", "cellPhone": "090"}
    assert record.components[1]["content"] == {"text": "about"}
    assert record.background == {"type": "solid", "color": "#112233"}
    assert record.aux["socialLinks"] == LEGACY["socialLinks"]
    assert record.aux["fontSettings"]["family"] == "noto-sans-jp"


def test_migrate_is_idempotent(temp_db):
    repo = SQLRepository()
    repo.upsert_user("u1", username="ann", embedded_profile=LEGACY)
    svc = MigrationService()
    assert svc.migrate("u1") is True
    first = repo.get_profile("u1", DEFAULT_PROFILE_ID)
    assert svc.migrate("u1") is True
    second = repo.get_profile("u1", DEFAULT_PROFILE_ID)
    assert len(repo.list_profiles("u1")) == 1
    assert second.components == first.components
    assert second.background == first.background


def test_separate_subdocument_wins_over_embedded(temp_db):
    repo = SQLRepository()
    repo.upsert_user("u1", username="ann", embedded_profile={"components": []})
    repo.upsert_legacy_profile("u1", {"editorContent": GRAPH, "backgroundImage": "https://x.io/bg.jpg"})
    svc = MigrationService()
    assert svc.migrate("u1") is True
    record = repo.get_profile("u1", DEFAULT_PROFILE_ID)
    assert [(c["type"], c["content"]) for c in record.components] == [("text", {"text": "from graph"})]
    assert record.background["type"] == "image"
    assert record.aux["legacyEditorContent"] == GRAPH
    assert "legacyNotice" not in record.aux


def test_no_legacy_data_marks_migrated_immediately(temp_db):
    repo = SQLRepository()
    repo.upsert_user("u1", username="ann")
    assert MigrationService().migrate("u1") is True
    assert repo.get_user("u1").profile_migrated
    assert repo.list_profiles("u1") == []


def test_failed_content_write_leaves_marker_unset_then_retry_succeeds(temp_db, monkeypatch):
    repo = SQLRepository()
    repo.upsert_user("u1", username="ann", embedded_profile=LEGACY)
    svc = MigrationService()

    original = svc.repository.upsert_profile
    monkeypatch.setattr(svc.repository, "upsert_profile", _boom)
    assert svc.migrate("u1") is False
    assert not repo.get_user("u1").profile_migrated
    assert svc.needs_migration("u1") is True

    monkeypatch.setattr(svc.repository, "upsert_profile", original)
    assert svc.migrate("u1") is True
    assert repo.get_user("u1").profile_migrated
    assert len(repo.list_profiles("u1")) == 1


def test_failed_marker_write_is_safe_to_redo(temp_db, monkeypatch):
    repo = SQLRepository()
    repo.upsert_user("u1", username="ann", embedded_profile=LEGACY)
    svc = MigrationService()

    original = svc.repository.set_migration_marker
    monkeypatch.setattr(svc.repository, "set_migration_marker", _boom)
    assert svc.migrate("u1") is False
    assert not repo.get_user("u1").profile_migrated

    monkeypatch.setattr(svc.repository, "set_migration_marker", original)
    assert svc.migrate("u1") is True
    assert len(repo.list_profiles("u1")) == 1


@pytest.mark.parametrize("generation", ["embedded", "subdocument", "named"])
def test_every_generation_resolves_to_same_document(temp_db, generation):
    repo = SQLRepository()
    if generation == "embedded":
        repo.upsert_user("u1", username="ann", embedded_profile=LEGACY)
    elif generation == "subdocument":
        repo.upsert_user("u1", username="ann")
        repo.upsert_legacy_profile("u1", LEGACY)
    else:
        repo.upsert_user("u1", username="ann", embedded_profile=LEGACY)
        MigrationService().migrate("u1")

    doc = DocumentService().load_document("u1")
    assert [(c.id, c.type, c.order) for c in doc.components] == [
        ("p", BlockType.PROFILE_CARD, 0),
        ("t", BlockType.TEXT, 1),
    ]
    assert doc.components[1].content == {"text": "about"}
    assert doc.background == SolidBackground("#112233")


def test_get_active_profile_id_migrates_on_demand(temp_db):
    repo = SQLRepository()
    repo.upsert_user("u1", username="ann", embedded_profile={"backgroundImage": "https://x.io/a.png"})
    svc = MigrationService()
    assert svc.get_active_profile_id("u1") == DEFAULT_PROFILE_ID
    assert repo.get_user("u1").profile_migrated
    assert isinstance(DocumentService().load_document("u1").background, ImageBackground)
