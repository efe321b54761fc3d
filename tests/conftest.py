from __future__ import annotations

import sys
from pathlib import Path

import pytest

# keep the package importable during local test runs
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from profilepage.core import config as core_config
from profilepage.db import session as db_session
from profilepage.db.create_tables import create_all


def _clear_caches() -> None:
    core_config.get_settings.cache_clear()
    db_session.get_engine.cache_clear()
    db_session._get_sessionmaker.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture()
def temp_db(tmp_path, monkeypatch):
    """Temporary SQLite database with a fresh schema; settings re-read from the environment."""
    db_file = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_file}")
    monkeypatch.setenv("APP_ENV", "dev")
    _clear_caches()

    create_all(drop_first=True)
    engine = db_session.get_engine()

    yield db_file

    try:
        engine.dispose()
    except Exception:
        pass
    _clear_caches()


@pytest.fixture()
def fresh_settings(monkeypatch):
    """Clear the settings cache around a test that changes environment variables."""
    core_config.get_settings.cache_clear()
    yield monkeypatch
    core_config.get_settings.cache_clear()
