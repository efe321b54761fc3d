"""
Smoke tests for the SQLRepository against a temporary SQLite database.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from profilepage.repositories.sql_repository import SQLRepository


def test_user_and_legacy_generations(temp_db):
    repo = SQLRepository()
    user = repo.upsert_user("u1", username="ann", email="ann@example.com", embedded_profile={"components": []})
    assert user.username == "ann"
    assert not user.profile_migrated
    assert repo.get_user_by_username("ann").id == "u1"
    assert repo.get_user_by_username("  ") is None
    assert repo.get_embedded_profile("u1") == {"components": []}
    assert repo.get_legacy_profile("u1") is None

    repo.upsert_legacy_profile("u1", {"backgroundColor": "#000000"})
    repo.upsert_legacy_profile("u1", {"backgroundColor": "#FFFFFF"})
    assert repo.get_legacy_profile("u1") == {"backgroundColor": "#FFFFFF"}

    # updating other fields leaves the embedded record alone
    repo.upsert_user("u1", email="new@example.com")
    assert repo.get_embedded_profile("u1") == {"components": []}

    repo.set_migration_marker("u1", "default")
    user = repo.get_user("u1")
    assert user.profile_migrated and user.default_profile_id == "default"
    assert [u.id for u in repo.list_users()] == ["u1"]


def test_named_profiles_single_active(temp_db):
    repo = SQLRepository()
    repo.upsert_user("u1", username="ann")
    repo.upsert_profile("u1", "a", activate=True, name="A", priority=0)
    repo.upsert_profile("u1", "b", activate=True, name="B", priority=1)
    assert [p.profile_id for p in repo.list_profiles("u1") if p.is_active] == ["b"]
    assert repo.get_active_profile("u1").profile_id == "b"
    assert repo.next_priority("u1") == 2
    assert repo.profile_exists("u1", "a")
    assert not repo.profile_exists("u1", "z")

    assert repo.set_active_profile("u1", "a") is True
    assert repo.set_active_profile("u1", "z") is False
    assert repo.get_active_profile("u1").profile_id == "a"

    assert repo.delete_profile("u1", "a") is True
    assert repo.get_active_profile("u1").profile_id == "b"
    assert repo.delete_profile("u1", "a") is False


def test_update_profile_content_upserts(temp_db):
    repo = SQLRepository()
    repo.upsert_user("u1", username="ann")
    record = repo.update_profile_content("u1", "p1", [{"id": "x"}], {"type": "solid", "color": "#FFFFFF"})
    assert record.is_active
    other = repo.update_profile_content("u1", "p2", [], None)
    assert not other.is_active
    assert other.priority == 1
    again = repo.update_profile_content("u1", "p1", [], None)
    assert again.components == [] and again.is_active


def test_user_sessions(temp_db):
    repo = SQLRepository()
    repo.upsert_user("u1", username="ann")
    token = repo.create_user_session("u1", datetime.now(timezone.utc) + timedelta(hours=1))
    assert repo.get_user_session(token).user_id == "u1"
    repo.delete_user_session(token)
    assert repo.get_user_session(token) is None

    repo.delete_user("u1")
    assert repo.get_user("u1") is None
