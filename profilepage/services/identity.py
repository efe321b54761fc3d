"""Session helpers (issue tokens, resolve the current user)."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi import Request

from profilepage.core.config import get_settings
from profilepage.repositories.sql_repository import SQLRepository

SESSION_COOKIE_NAME = "session"
SESSION_HEADER_NAME = "X-Session-Token"


def issue_session(user_id: str) -> str:
    """Create a new session token for user_id and persist it."""
    settings = get_settings()
    ttl = max(60, settings.session_ttl_seconds)
    expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl)
    return SQLRepository().create_user_session(user_id, expires_at)


def _request_token(request: Request) -> str | None:
    return request.cookies.get(SESSION_COOKIE_NAME) or request.headers.get(SESSION_HEADER_NAME)


def current_user_id(request: Request) -> str | None:
    """Return the user id bound to the session cookie (or header), if any and not expired."""
    token = _request_token(request)
    if not token:
        return None
    repo = SQLRepository()
    entity = repo.get_user_session(token)
    if not entity:
        return None
    expires_at = entity.expires_at
    if expires_at is not None and expires_at.tzinfo is None:
        # sqlite hands datetimes back naive
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if expires_at and expires_at < datetime.now(timezone.utc):
        repo.delete_user_session(token)
        return None
    return entity.user_id
