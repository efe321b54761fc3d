"""High-level data access helpers backed by SQLAlchemy."""
from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update, delete, func

from profilepage.db.models import LegacyProfile, ProfileRecord, User, UserSession
from profilepage.db.session import get_session

_UNSET = object()


class SQLRepository:
    """CRUD helpers wrapping the SQLAlchemy session."""

    # -------------------------- users --------------------------
    def get_user(self, user_id: str) -> Optional[User]:
        with get_session() as session:
            return session.get(User, user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        value = (username or "").strip()
        if not value:
            return None
        with get_session() as session:
            stmt = select(User).where(User.username == value)
            return session.execute(stmt).scalar_one_or_none()

    def list_users(self) -> list[User]:
        with get_session() as session:
            return session.execute(select(User).order_by(User.id)).scalars().all()

    def upsert_user(
        self,
        user_id: str,
        *,
        username: str | None = None,
        email: str | None = None,
        embedded_profile=_UNSET,
    ) -> User:
        now = datetime.now(timezone.utc)
        with get_session() as session:
            user = session.get(User, user_id)
            if not user:
                user = User(
                    id=user_id,
                    username=username,
                    email=email,
                    embedded_profile=None if embedded_profile is _UNSET else embedded_profile,
                    profile_migrated=False,
                    created_at=now,
                    updated_at=now,
                )
                session.add(user)
            else:
                if username is not None:
                    user.username = username
                if email is not None:
                    user.email = email
                if embedded_profile is not _UNSET:
                    user.embedded_profile = embedded_profile
                user.updated_at = now
            session.commit()
            session.refresh(user)
            return user

    def set_migration_marker(self, user_id: str, default_profile_id: str | None) -> None:
        now = datetime.now(timezone.utc)
        with get_session() as session:
            stmt = (
                update(User)
                .where(User.id == user_id)
                .values(
                    profile_migrated=True,
                    migration_date=now,
                    default_profile_id=default_profile_id,
                    updated_at=now,
                )
            )
            session.execute(stmt)
            session.commit()

    def delete_user(self, user_id: str) -> None:
        with get_session() as session:
            session.execute(delete(ProfileRecord).where(ProfileRecord.user_id == user_id))
            session.execute(delete(LegacyProfile).where(LegacyProfile.user_id == user_id))
            session.execute(delete(UserSession).where(UserSession.user_id == user_id))
            session.execute(delete(User).where(User.id == user_id))
            session.commit()

    # -------------------------- legacy generations --------------------------
    def get_embedded_profile(self, user_id: str) -> Optional[dict]:
        with get_session() as session:
            user = session.get(User, user_id)
            data = user.embedded_profile if user else None
            return data if isinstance(data, dict) else None

    def get_legacy_profile(self, user_id: str) -> Optional[dict]:
        with get_session() as session:
            entity = session.get(LegacyProfile, user_id)
            data = entity.data if entity else None
            return data if isinstance(data, dict) else None

    def upsert_legacy_profile(self, user_id: str, data: dict) -> None:
        now = datetime.now(timezone.utc)
        with get_session() as session:
            entity = session.get(LegacyProfile, user_id)
            if not entity:
                entity = LegacyProfile(user_id=user_id, data=data, updated_at=now)
                session.add(entity)
            else:
                entity.data = data
                entity.updated_at = now
            session.commit()

    # -------------------------- named profiles --------------------------
    def get_profile(self, user_id: str, profile_id: str) -> Optional[ProfileRecord]:
        with get_session() as session:
            return session.get(ProfileRecord, (user_id, profile_id))

    def profile_exists(self, user_id: str, profile_id: str) -> bool:
        with get_session() as session:
            stmt = (
                select(ProfileRecord.profile_id)
                .where(ProfileRecord.user_id == user_id, ProfileRecord.profile_id == profile_id)
                .limit(1)
            )
            return session.execute(stmt).first() is not None

    def list_profiles(self, user_id: str) -> list[ProfileRecord]:
        with get_session() as session:
            stmt = (
                select(ProfileRecord)
                .where(ProfileRecord.user_id == user_id)
                .order_by(ProfileRecord.priority, ProfileRecord.created_at, ProfileRecord.profile_id)
            )
            return session.execute(stmt).scalars().all()

    def get_active_profile(self, user_id: str) -> Optional[ProfileRecord]:
        with get_session() as session:
            stmt = (
                select(ProfileRecord)
                .where(ProfileRecord.user_id == user_id, ProfileRecord.is_active.is_(True))
                .order_by(ProfileRecord.priority)
                .limit(1)
            )
            return session.execute(stmt).scalars().first()

    def next_priority(self, user_id: str) -> int:
        with get_session() as session:
            stmt = select(func.max(ProfileRecord.priority)).where(ProfileRecord.user_id == user_id)
            current = session.execute(stmt).scalar()
            return 0 if current is None else int(current) + 1

    def upsert_profile(self, user_id: str, profile_id: str, *, activate: bool = False, **fields) -> ProfileRecord:
        """Create or overwrite one named profile; activate=True deactivates every other profile in the same commit."""
        now = datetime.now(timezone.utc)
        with get_session() as session:
            if activate:
                session.execute(
                    update(ProfileRecord)
                    .where(ProfileRecord.user_id == user_id, ProfileRecord.profile_id != profile_id)
                    .values(is_active=False)
                )
            entity = session.get(ProfileRecord, (user_id, profile_id))
            if not entity:
                entity = ProfileRecord(
                    user_id=user_id,
                    profile_id=profile_id,
                    name=fields.pop("name", profile_id),
                    components=fields.pop("components", []),
                    aux=fields.pop("aux", {}),
                    is_active=activate,
                    created_at=now,
                    updated_at=now,
                )
                session.add(entity)
            for key, value in fields.items():
                setattr(entity, key, value)
            if activate:
                entity.is_active = True
            entity.updated_at = now
            session.commit()
            session.refresh(entity)
            return entity

    def update_profile_content(self, user_id: str, profile_id: str, components: list, background: dict | None) -> ProfileRecord:
        """Partial update of the document fields; creates the profile on first write."""
        now = datetime.now(timezone.utc)
        with get_session() as session:
            entity = session.get(ProfileRecord, (user_id, profile_id))
            if not entity:
                has_active = session.execute(
                    select(ProfileRecord.profile_id)
                    .where(ProfileRecord.user_id == user_id, ProfileRecord.is_active.is_(True))
                    .limit(1)
                ).first()
                priority = session.execute(
                    select(func.max(ProfileRecord.priority)).where(ProfileRecord.user_id == user_id)
                ).scalar()
                entity = ProfileRecord(
                    user_id=user_id,
                    profile_id=profile_id,
                    name=profile_id,
                    is_active=has_active is None,
                    priority=0 if priority is None else int(priority) + 1,
                    aux={},
                    created_at=now,
                )
                session.add(entity)
            entity.components = components
            entity.background = background
            entity.updated_at = now
            session.commit()
            session.refresh(entity)
            return entity

    def set_active_profile(self, user_id: str, profile_id: str) -> bool:
        now = datetime.now(timezone.utc)
        with get_session() as session:
            entity = session.get(ProfileRecord, (user_id, profile_id))
            if not entity:
                return False
            session.execute(
                update(ProfileRecord)
                .where(ProfileRecord.user_id == user_id, ProfileRecord.profile_id != profile_id)
                .values(is_active=False)
            )
            entity.is_active = True
            entity.updated_at = now
            session.commit()
            return True

    def delete_profile(self, user_id: str, profile_id: str) -> bool:
        """Delete one profile; when it was the active one the next by priority takes over."""
        with get_session() as session:
            entity = session.get(ProfileRecord, (user_id, profile_id))
            if not entity:
                return False
            was_active = bool(entity.is_active)
            session.delete(entity)
            session.flush()
            if was_active:
                successor = session.execute(
                    select(ProfileRecord)
                    .where(ProfileRecord.user_id == user_id)
                    .order_by(ProfileRecord.priority, ProfileRecord.created_at)
                    .limit(1)
                ).scalars().first()
                if successor:
                    successor.is_active = True
            session.commit()
            return True

    # -------------------------- identity sessions --------------------------
    def create_user_session(self, user_id: str, expires_at: datetime) -> str:
        token = secrets.token_urlsafe(32)
        entity = UserSession(token=token, user_id=user_id, expires_at=expires_at)
        with get_session() as session:
            session.add(entity)
            session.commit()
        return token

    def get_user_session(self, token: str) -> Optional[UserSession]:
        with get_session() as session:
            return session.get(UserSession, token)

    def delete_user_session(self, token: str) -> None:
        with get_session() as session:
            session.execute(delete(UserSession).where(UserSession.token == token))
            session.commit()
