"""
Interfaces of the external capability providers the core talks to, and the
small adapters that keep their inputs/outputs inside the content schema.
Implementations (object storage, OCR, vCard generation) live elsewhere.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol

from profilepage.domain.blocks import BlockType
from profilepage.domain.sanitize import valid_url
from profilepage.domain.schema import validate

log = logging.getLogger(__name__)


class ObjectStore(Protocol):
    def upload(self, data: bytes, content_type: str) -> str:
        """Store a blob and return a stable retrievable URL."""


class ContactExtractor(Protocol):
    def extract(self, image: bytes) -> dict:
        """Best-effort structured contact record read from a business card image."""


class ContactCardExporter(Protocol):
    def export(self, card: dict) -> bytes:
        """Downloadable contact file for a profile-card content record."""


def attach_uploaded_image(store: ObjectStore, data: bytes, content_type: str) -> Optional[str]:
    """Upload data and return the URL only when it is well formed (image.src, photoURL, background url)."""
    url = store.upload(data, content_type)
    checked = valid_url(url)
    if not checked:
        log.warning("object store returned an unusable url: %r", url)
    return checked


def ingest_contact_record(extractor: ContactExtractor, image: bytes) -> dict:
    """Run the extractor and reduce its output to profile-card content."""
    return validate(BlockType.PROFILE_CARD, extractor.extract(image)) or {}


def export_contact_card(exporter: ContactCardExporter, content) -> bytes:
    """The exporter only ever sees schema-conforming profile-card content."""
    return exporter.export(validate(BlockType.PROFILE_CARD, content) or {})
