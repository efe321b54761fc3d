"""
Document use cases: resolve the logical ProfileDocument whichever storage
generation holds it, write the canonical shape, manage named profiles.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from profilepage.core.config import get_settings
from profilepage.db.models import ProfileRecord
from profilepage.domain.blocks import (
    BlockType,
    ProfileComponent,
    ProfileDocument,
    SolidBackground,
    default_content,
)
from profilepage.domain.schema import validate, validate_document
from profilepage.repositories.sql_repository import SQLRepository
from profilepage.services.migration_service import DEFAULT_PROFILE_ID, MigrationService

log = logging.getLogger(__name__)

DOCUMENT_VERSION = "2.0.0"
RESET_BACKGROUND_COLOR = "#F9FAFB"
RESET_BIO = "Tell visitors about yourself"


class DocumentError(Exception):
    """Base exception for document workflows."""


class UserNotFoundError(DocumentError):
    pass


class ProfileNotFoundError(DocumentError):
    pass


class LastProfileError(DocumentError):
    """Raised when deleting would leave the user without any profile."""


class ResetDisabledError(DocumentError):
    pass


class MigrationPendingError(DocumentError):
    """Raised when storage could not be migrated and a write would be lost."""


@dataclass
class ProfileSummary:
    id: str
    name: str
    description: str
    is_active: bool
    is_default: bool
    priority: int
    updated_at: Optional[datetime]

    @classmethod
    def from_record(cls, record: ProfileRecord) -> "ProfileSummary":
        return cls(
            id=record.profile_id,
            name=record.name or record.profile_id,
            description=record.description or "",
            is_active=bool(record.is_active),
            is_default=bool(record.is_default),
            priority=int(record.priority or 0),
            updated_at=record.updated_at,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "isActive": self.is_active,
            "isDefault": self.is_default,
            "priority": self.priority,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


def record_to_document(record: Optional[ProfileRecord]) -> ProfileDocument:
    if record is None:
        return ProfileDocument()
    doc = validate_document(
        {
            "components": record.components or [],
            "background": record.background,
            "updatedAt": record.updated_at,
        }
    )
    doc = doc or ProfileDocument()
    if not doc.components:
        doc.notice = (record.aux or {}).get("legacyNotice")
    return doc


@dataclass
class DocumentService:
    """Reads and writes profile documents across storage generations."""

    def __post_init__(self):
        self.settings = get_settings()
        self.repository = SQLRepository()
        self.migrations = MigrationService()

    # -------------------------------------- reads --------------------------------------
    def _require_user(self, user_id: str):
        user = self.repository.get_user(user_id)
        if not user:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    def active_profile_id(self, user_id: str) -> str:
        user = self._require_user(user_id)
        active = self.repository.get_active_profile(user_id) if user.profile_migrated else None
        if active:
            return active.profile_id
        return user.default_profile_id or DEFAULT_PROFILE_ID

    def load_document(self, user_id: str, profile_id: str | None = None) -> ProfileDocument:
        """Same logical document whichever generation (a), (b) or (c) currently holds it."""
        user = self._require_user(user_id)
        if user.profile_migrated:
            target = profile_id or self.active_profile_id(user_id)
            record = self.repository.get_profile(user_id, target)
            if record is None and profile_id and profile_id != (user.default_profile_id or DEFAULT_PROFILE_ID):
                raise ProfileNotFoundError(f"Profile {profile_id} not found")
            return record_to_document(record)
        legacy = self.migrations.read_legacy(user_id)
        if legacy is None:
            return ProfileDocument()
        doc = validate_document(legacy)
        if doc is None:
            log.warning("legacy profile of user %s is not a document; showing empty page", user_id)
            return ProfileDocument()
        return doc

    def load_public(self, username: str) -> ProfileDocument:
        user = self.repository.get_user_by_username(username)
        if not user:
            raise UserNotFoundError(f"Username {username} not found")
        return self.load_document(user.id)

    # -------------------------------------- writes --------------------------------------
    def save_document(self, user_id: str, profile_id: str, document: ProfileDocument) -> Optional[datetime]:
        """Upsert the canonical document; content is re-validated so nothing unsanitized is stored."""
        checked = validate_document(document) or ProfileDocument()
        record = self.repository.update_profile_content(
            user_id,
            profile_id,
            [c.to_dict() for c in checked.components],
            checked.background.to_dict(),
        )
        log.debug("saved profile %s/%s (%d components)", user_id, profile_id, len(checked.components))
        return record.updated_at

    def reset_document(self, user_id: str, profile_id: str | None = None) -> ProfileDocument:
        """Replace a profile with a clean starter document."""
        if self.settings.app_env == "prod":
            raise ResetDisabledError("Reset is disabled in production")
        self._require_user(user_id)
        if not self.migrations.migrate(user_id):
            raise MigrationPendingError(f"Profile storage for {user_id} could not be migrated")
        target = profile_id or self.active_profile_id(user_id)
        content = validate(BlockType.PROFILE_CARD, {**default_content(BlockType.PROFILE_CARD), "bio": RESET_BIO})
        doc = ProfileDocument(
            components=[ProfileComponent(id=f"profile-{uuid.uuid4().hex[:8]}", type=BlockType.PROFILE_CARD, order=0, content=content)],
            background=SolidBackground(color=RESET_BACKGROUND_COLOR),
        )
        existing = self.repository.get_profile(user_id, target)
        aux = dict(existing.aux or {}) if existing else {}
        aux.pop("legacyEditorContent", None)
        aux.pop("legacyNotice", None)
        aux.pop("socialLinks", None)
        aux["version"] = DOCUMENT_VERSION
        record = self.repository.upsert_profile(
            user_id,
            target,
            activate=not self.repository.get_active_profile(user_id),
            components=[c.to_dict() for c in doc.components],
            background=doc.background.to_dict(),
            aux=aux,
        )
        doc.updated_at = record.updated_at
        log.info("reset profile %s/%s", user_id, target)
        return doc

    # -------------------------------------- named profiles --------------------------------------
    def list_profiles(self, user_id: str) -> list[ProfileSummary]:
        self._require_user(user_id)
        return [ProfileSummary.from_record(r) for r in self.repository.list_profiles(user_id)]

    def create_profile(self, user_id: str, name: str | None = None, description: str = "") -> ProfileSummary:
        self._require_user(user_id)
        existing = self.repository.list_profiles(user_id)
        label = (name or "").strip()[:200] or f"Profile {len(existing) + 1}"
        record = self.repository.upsert_profile(
            user_id,
            uuid.uuid4().hex[:12],
            activate=not existing,
            name=label,
            description=(description or "").strip()[:500],
            priority=self.repository.next_priority(user_id),
            components=[],
            background=SolidBackground().to_dict(),
        )
        return ProfileSummary.from_record(record)

    def set_active_profile(self, user_id: str, profile_id: str) -> None:
        if not self.repository.set_active_profile(user_id, profile_id):
            raise ProfileNotFoundError(f"Profile {profile_id} not found")

    def duplicate_profile(self, user_id: str, profile_id: str) -> ProfileSummary:
        original = self.repository.get_profile(user_id, profile_id)
        if not original:
            raise ProfileNotFoundError(f"Profile {profile_id} not found")
        record = self.repository.upsert_profile(
            user_id,
            uuid.uuid4().hex[:12],
            name=f"{original.name or original.profile_id} (copy)"[:200],
            description=original.description,
            context=original.context,
            is_default=False,
            priority=self.repository.next_priority(user_id),
            components=list(original.components or []),
            background=original.background,
            aux=dict(original.aux or {}),
        )
        return ProfileSummary.from_record(record)

    def delete_profile(self, user_id: str, profile_id: str) -> None:
        profiles = self.repository.list_profiles(user_id)
        if not any(p.profile_id == profile_id for p in profiles):
            raise ProfileNotFoundError(f"Profile {profile_id} not found")
        if len(profiles) <= 1:
            raise LastProfileError("At least one profile is required")
        self.repository.delete_profile(user_id, profile_id)
