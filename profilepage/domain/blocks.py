"""Canonical content model: block types, components, documents and backgrounds."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union


class BlockType(str, Enum):
    """Closed set of block types.

    SCAFFOLD is the "add content here" marker of the legacy editor. It is
    reserved: never persisted, never counted as content and absent from both
    renderer registries.
    """

    TEXT = "text"
    IMAGE = "image"
    LINK = "link"
    PROFILE_CARD = "profile-card"
    SCAFFOLD = "scaffold"

    @classmethod
    def parse(cls, value: Any) -> Optional["BlockType"]:
        if isinstance(value, BlockType):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        key = BLOCK_TYPE_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            return None


BLOCK_TYPE_ALIASES = {
    "profile": "profile-card",
    "profilecard": "profile-card",
    "profile_card": "profile-card",
}

CONTENT_BLOCK_TYPES: tuple[BlockType, ...] = (
    BlockType.TEXT,
    BlockType.IMAGE,
    BlockType.LINK,
    BlockType.PROFILE_CARD,
)


def is_content_type(block_type: Optional[BlockType]) -> bool:
    return block_type in CONTENT_BLOCK_TYPES


@dataclass
class ProfileComponent:
    id: str
    type: BlockType
    order: int
    content: dict
    style: Optional[dict] = None

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "type": self.type.value,
            "order": self.order,
            "content": dict(self.content),
        }
        if self.style:
            data["style"] = dict(self.style)
        return data


# -------------------------- backgrounds --------------------------
DEFAULT_BACKGROUND_COLOR = "#FFFFFF"
DEFAULT_GRADIENT_FROM = "#667EEA"
DEFAULT_GRADIENT_TO = "#764BA2"
DEFAULT_GRADIENT_DIRECTION = "135deg"
DEFAULT_PATTERN_COLOR = "#E5E7EB"
IMAGE_SIZES = ("cover", "contain", "custom")


@dataclass(frozen=True)
class SolidBackground:
    color: str = DEFAULT_BACKGROUND_COLOR
    alpha: float = 1.0

    def to_dict(self) -> dict:
        data: dict = {"type": "solid", "color": self.color}
        if self.alpha != 1.0:
            data["opacity"] = self.alpha
        return data


@dataclass(frozen=True)
class GradientBackground:
    from_color: str = DEFAULT_GRADIENT_FROM
    to_color: str = DEFAULT_GRADIENT_TO
    direction: str = DEFAULT_GRADIENT_DIRECTION

    def to_dict(self) -> dict:
        return {"type": "gradient", "from": self.from_color, "to": self.to_color, "direction": self.direction}


@dataclass(frozen=True)
class ImageBackground:
    url: str
    opacity: Optional[float] = None
    size: str = "cover"
    position_x: float = 50.0
    position_y: float = 50.0
    scale: float = 100.0
    blur: float = 0.0

    def to_dict(self) -> dict:
        data: dict = {
            "type": "image",
            "url": self.url,
            "size": self.size,
            "positionX": self.position_x,
            "positionY": self.position_y,
        }
        if self.opacity is not None:
            data["opacity"] = self.opacity
        if self.size == "custom":
            data["scale"] = self.scale
        if self.blur:
            data["blur"] = self.blur
        return data


@dataclass(frozen=True)
class PatternBackground:
    pattern_id: str
    color: str = DEFAULT_PATTERN_COLOR

    def to_dict(self) -> dict:
        return {"type": "pattern", "patternId": self.pattern_id, "color": self.color}


BackgroundSpec = Union[SolidBackground, GradientBackground, ImageBackground, PatternBackground]
BACKGROUND_VARIANTS = (SolidBackground, GradientBackground, ImageBackground, PatternBackground)


def default_background() -> SolidBackground:
    return SolidBackground()


@dataclass
class ProfileDocument:
    """One shareable page: ordered blocks plus a background.

    legacy_content carries an untouched recursive-graph document when the
    record predates the flat list; it is only ever decoded for display or
    converted by the migrator.
    """

    components: list[ProfileComponent] = field(default_factory=list)
    background: BackgroundSpec = field(default_factory=default_background)
    updated_at: Optional[datetime] = None
    legacy_content: Any = None
    notice: Optional[str] = None

    def sorted_components(self) -> list[ProfileComponent]:
        # sorted() is stable: ties keep list position
        return sorted(self.components, key=lambda c: c.order)

    def is_empty(self) -> bool:
        return not self.components and self.legacy_content is None

    def to_dict(self) -> dict:
        return {
            "components": [c.to_dict() for c in self.components],
            "background": self.background.to_dict(),
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


def default_content(block_type: BlockType) -> dict:
    """Starting content for a freshly added block."""
    if block_type is BlockType.TEXT:
        return {"text": "New text"}
    if block_type is BlockType.IMAGE:
        return {"src": "", "alt": ""}
    if block_type is BlockType.LINK:
        return {"url": "", "label": "New link"}
    if block_type is BlockType.PROFILE_CARD:
        return {
            "firstName": "",
            "lastName": "",
            "phoneticFirstName": "",
            "phoneticLastName": "",
            "name": "",
            "email": "",
            "phone": "",
            "cellPhone": "",
            "company": "",
            "department": "",
            "position": "",
            "address": "",
            "city": "",
            "postalCode": "",
            "website": "",
            "bio": "",
            "photoURL": "",
            "cardBackgroundColor": "#FFFFFF",
            "cardBackgroundOpacity": 95,
        }
    raise ValueError(f"No default content for block type {block_type!r}")
