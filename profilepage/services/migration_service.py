"""
One-time migration of a user's profile from the single-document generations
(embedded in the user record, or a separate sub-document) to the named
profile collection.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from profilepage.domain.legacy_graph import normalize, notice_for, to_components
from profilepage.domain.schema import background_from_legacy_fields, validate_components
from profilepage.repositories.sql_repository import SQLRepository

log = logging.getLogger(__name__)

DEFAULT_PROFILE_ID = "default"
DEFAULT_PROFILE_NAME = "Default profile"
DEFAULT_PROFILE_DESCRIPTION = "Default business profile"
DEFAULT_PROFILE_CONTEXT = "business"
DEFAULT_FONT_SETTINGS = {"family": "noto-sans-jp", "size": "medium", "color": "#000000"}


@dataclass
class MigrationService:
    """Detects the storage generation of a user and migrates it forward once."""

    def __post_init__(self):
        self.repository = SQLRepository()

    def needs_migration(self, user_id: str) -> bool:
        user = self.repository.get_user(user_id)
        if not user:
            return False
        return not bool(user.profile_migrated)

    def read_legacy(self, user_id: str) -> Optional[dict]:
        """Separate sub-document first, then the record embedded in the user."""
        return self.repository.get_legacy_profile(user_id) or self.repository.get_embedded_profile(user_id)

    def build_profile_fields(self, legacy: dict) -> dict:
        """Per-field copy of a legacy record into named-profile columns, with fallbacks."""
        editor_content = legacy.get("editorContent")
        notice = None
        if isinstance(legacy.get("components"), list):
            components = validate_components(legacy["components"])
        elif editor_content not in (None, ""):
            tree = normalize(editor_content)
            notice = notice_for(editor_content, tree)
            components = validate_components(to_components(tree))
        else:
            components = []
        social_links = legacy.get("socialLinks")
        custom_fields = legacy.get("customFields")
        font_settings = legacy.get("fontSettings")
        aux = {
            "socialLinks": social_links if isinstance(social_links, list) else [],
            "customFields": custom_fields if isinstance(custom_fields, dict) else {},
            "fontSettings": font_settings if isinstance(font_settings, dict) else dict(DEFAULT_FONT_SETTINGS),
            "analytics": {"views": 0, "clicks": 0, "lastViewed": None},
        }
        if editor_content not in (None, ""):
            aux["legacyEditorContent"] = editor_content
        if notice:
            # shown on the page until the profile gets content
            aux["legacyNotice"] = notice
        return {
            "name": DEFAULT_PROFILE_NAME,
            "description": DEFAULT_PROFILE_DESCRIPTION,
            "context": DEFAULT_PROFILE_CONTEXT,
            "is_default": True,
            "priority": 0,
            "components": [c.to_dict() for c in components],
            "background": background_from_legacy_fields(legacy).to_dict(),
            "aux": aux,
        }

    def migrate(self, user_id: str) -> bool:
        """
        True when the user is (now or already) migrated. The profile is written
        before the marker, so a failure in between leaves the marker unset and
        the next call redoes the whole thing against the same fixed id.
        """
        try:
            user = self.repository.get_user(user_id)
            if not user:
                log.info("migration skipped: user %s not found", user_id)
                return False
            if user.profile_migrated:
                return True
            legacy = self.read_legacy(user_id)
            if legacy is None:
                self.repository.set_migration_marker(user_id, DEFAULT_PROFILE_ID)
                log.info("user %s had no legacy profile; marked migrated", user_id)
                return True
            fields = self.build_profile_fields(legacy)
            self.repository.upsert_profile(user_id, DEFAULT_PROFILE_ID, activate=True, **fields)
            self.repository.set_migration_marker(user_id, DEFAULT_PROFILE_ID)
        except SQLAlchemyError:
            log.exception("profile migration failed for user %s", user_id)
            return False
        log.info("migrated profile for user %s (%d components)", user_id, len(fields["components"]))
        return True

    def get_active_profile_id(self, user_id: str) -> str:
        """Migrate on demand, then return the active (or default) profile id."""
        if self.needs_migration(user_id) and not self.migrate(user_id):
            log.warning("falling back to default profile id for user %s", user_id)
            return DEFAULT_PROFILE_ID
        active = self.repository.get_active_profile(user_id)
        if active:
            return active.profile_id
        user = self.repository.get_user(user_id)
        return (user.default_profile_id if user else None) or DEFAULT_PROFILE_ID
