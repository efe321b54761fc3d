"""
Content schema and validators.

Every validator here is pure and total: malformed input never raises, it is
reduced to the best-effort sanitized record. Unknown fields are dropped, text
is stripped of markup and capped, URL / e-mail fields that fail their format
check are treated as absent.
"""
from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from .blocks import (
    BACKGROUND_VARIANTS,
    BackgroundSpec,
    BlockType,
    DEFAULT_BACKGROUND_COLOR,
    DEFAULT_GRADIENT_DIRECTION,
    DEFAULT_GRADIENT_FROM,
    DEFAULT_GRADIENT_TO,
    DEFAULT_PATTERN_COLOR,
    GradientBackground,
    IMAGE_SIZES,
    ImageBackground,
    PatternBackground,
    ProfileComponent,
    ProfileDocument,
    SolidBackground,
    is_content_type,
)
from .sanitize import (
    LINK_SCHEMES,
    clamp_number,
    clean_text,
    valid_email,
    valid_hex_color,
    valid_url,
)

log = logging.getLogger(__name__)

TEXT_MAX = 5000
ALT_MAX = 200
LABEL_MAX = 200
BIO_MAX = 1000
STYLE_KEY_MAX = 64
STYLE_VALUE_MAX = 200
STYLE_MAX_ENTRIES = 32
ID_MAX = 128

# field -> length cap
PROFILE_CARD_TEXT_FIELDS = {
    "firstName": 100,
    "lastName": 100,
    "phoneticFirstName": 100,
    "phoneticLastName": 100,
    "name": 200,
    "phone": 50,
    "cellPhone": 50,
    "company": 200,
    "department": 200,
    "position": 200,
    "address": 500,
    "city": 200,
    "postalCode": 20,
    "bio": BIO_MAX,
}
PROFILE_CARD_URL_FIELDS = ("website", "photoURL")

# alias -> canonical field; the canonical key wins when both are present
PROFILE_CARD_ALIASES = {
    "mobile": "cellPhone",
    "cellphone": "cellPhone",
    "mobilePhone": "cellPhone",
    "title": "position",
    "jobTitle": "position",
    "description": "bio",
    "avatarUrl": "photoURL",
    "photoUrl": "photoURL",
    "organization": "company",
    "zip": "postalCode",
    "zipCode": "postalCode",
    "fullName": "name",
    "url": "website",
}


_DIRECTION_RE = re.compile(r"^(?:-?\d{1,3}(?:\.\d+)?deg|to (?:top|bottom|left|right)(?: (?:left|right))?)$")


def _gradient_direction(value) -> str:
    direction = " ".join(clean_text(value, 40).lower().split())
    return direction if _DIRECTION_RE.match(direction) else DEFAULT_GRADIENT_DIRECTION


def _mapping(raw: Any) -> Mapping:
    return raw if isinstance(raw, Mapping) else {}


def _resolve_aliases(raw: Mapping, aliases: Mapping[str, str]) -> dict:
    data = dict(raw)
    for alias, canonical in aliases.items():
        if alias in data and canonical not in data:
            data[canonical] = data[alias]
    return data


def _validate_text(raw: Mapping) -> dict:
    return {"text": clean_text(raw.get("text"), TEXT_MAX)}


def _validate_image(raw: Mapping) -> dict:
    out: dict = {}
    src = valid_url(raw.get("src"))
    if src:
        out["src"] = src
    if "alt" in raw:
        out["alt"] = clean_text(raw.get("alt"), ALT_MAX)
    return out


def _validate_link(raw: Mapping) -> dict:
    raw = _resolve_aliases(raw, {"href": "url", "text": "label", "title": "label"})
    out: dict = {}
    url = valid_url(raw.get("url"), LINK_SCHEMES)
    if url:
        out["url"] = url
    if "label" in raw:
        out["label"] = clean_text(raw.get("label"), LABEL_MAX)
    return out


def _validate_profile_card(raw: Mapping) -> dict:
    raw = _resolve_aliases(raw, PROFILE_CARD_ALIASES)
    out: dict = {}
    for key, cap in PROFILE_CARD_TEXT_FIELDS.items():
        if key in raw:
            out[key] = clean_text(raw.get(key), cap)
    email = valid_email(raw.get("email"))
    if email:
        out["email"] = email
    for key in PROFILE_CARD_URL_FIELDS:
        url = valid_url(raw.get(key))
        if url:
            out[key] = url
    color = valid_hex_color(raw.get("cardBackgroundColor"))
    if color:
        out["cardBackgroundColor"] = color
    opacity = clamp_number(raw.get("cardBackgroundOpacity"), 0, 100)
    if opacity is not None:
        out["cardBackgroundOpacity"] = int(opacity) if opacity.is_integer() else opacity
    return out


CONTENT_VALIDATORS = {
    BlockType.TEXT: _validate_text,
    BlockType.IMAGE: _validate_image,
    BlockType.LINK: _validate_link,
    BlockType.PROFILE_CARD: _validate_profile_card,
}


def validate(block_type, raw_content) -> Optional[dict]:
    """Sanitize raw_content for block_type. Returns None (rejected) only for non-content types."""
    bt = BlockType.parse(block_type)
    if not is_content_type(bt):
        return None
    return CONTENT_VALIDATORS[bt](_mapping(raw_content))


def validate_style(raw) -> Optional[dict]:
    """Free-form style map: string keys, string/number values, tag-free and capped."""
    if not isinstance(raw, Mapping):
        return None
    out: dict = {}
    for key, value in raw.items():
        if len(out) >= STYLE_MAX_ENTRIES:
            break
        if not isinstance(key, str):
            continue
        k = clean_text(key, STYLE_KEY_MAX)
        if not k:
            continue
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            if value == value:
                out[k] = value
        elif isinstance(value, str):
            out[k] = clean_text(value, STYLE_VALUE_MAX)
    return out or None


def _component_id(raw, seen: set[str]) -> str:
    cid = raw if isinstance(raw, str) else (str(raw) if isinstance(raw, int) and not isinstance(raw, bool) else "")
    cid = clean_text(cid, ID_MAX)
    if not cid or cid in seen:
        cid = uuid.uuid4().hex
    return cid


def _order_key(raw) -> float:
    n = clamp_number(raw, 0, float("inf"))
    return n if n is not None else float("inf")


def validate_component(raw, *, seen_ids: Optional[set[str]] = None, order: int = 0) -> Optional[ProfileComponent]:
    """Build one canonical component or None when the type is unknown / reserved."""
    if not isinstance(raw, Mapping):
        return None
    bt = BlockType.parse(raw.get("type"))
    if not is_content_type(bt):
        log.debug("dropping component with type %r", raw.get("type"))
        return None
    seen = seen_ids if seen_ids is not None else set()
    cid = _component_id(raw.get("id"), seen)
    seen.add(cid)
    content = validate(bt, raw.get("content"))
    return ProfileComponent(id=cid, type=bt, order=order, content=content or {}, style=validate_style(raw.get("style")))


def validate_components(raw_list) -> list[ProfileComponent]:
    """
    Validate a component list: drops non-content entries, makes ids unique and
    re-indexes order to 0..N-1 following (declared order, original position).
    """
    if not isinstance(raw_list, (list, tuple)):
        return []
    ranked = []
    for position, raw in enumerate(raw_list):
        if isinstance(raw, Mapping):
            ranked.append((_order_key(raw.get("order")), position, raw))
    ranked.sort(key=lambda item: (item[0], item[1]))
    seen: set[str] = set()
    components: list[ProfileComponent] = []
    for _, _, raw in ranked:
        component = validate_component(raw, seen_ids=seen, order=len(components))
        if component is not None:
            components.append(component)
    return components


# -------------------------- background --------------------------
def _pick(raw: Mapping, *keys):
    for key in keys:
        if key in raw and raw[key] not in (None, ""):
            return raw[key]
    return None


def validate_background(raw, *, check_urls: bool = True) -> BackgroundSpec:
    """
    Map any stored background shape to exactly one variant; falls back to white.
    check_urls=False keeps an image reference that is not an absolute URL
    (relative upload paths in previews); markup is still stripped.
    """
    if isinstance(raw, BACKGROUND_VARIANTS):
        return raw
    if not isinstance(raw, Mapping):
        return SolidBackground()
    kind = str(raw.get("type") or "").strip().lower()
    if kind in ("solid", "color"):
        alpha = clamp_number(raw.get("opacity"), 0, 1)
        return SolidBackground(
            color=valid_hex_color(raw.get("color")) or DEFAULT_BACKGROUND_COLOR,
            alpha=1.0 if alpha is None else alpha,
        )
    if kind == "gradient":
        nested = _mapping(raw.get("gradient"))
        source = nested or raw
        direction = _gradient_direction(source.get("direction"))
        return GradientBackground(
            from_color=valid_hex_color(source.get("from")) or DEFAULT_GRADIENT_FROM,
            to_color=valid_hex_color(source.get("to")) or DEFAULT_GRADIENT_TO,
            direction=direction,
        )
    if kind == "image":
        nested = _mapping(raw.get("image"))
        source = {**raw, **nested}
        raw_url = _pick(source, "url", "imageUrl")
        if check_urls:
            url = valid_url(raw_url)
        else:
            url = clean_text(raw_url, 2048) if isinstance(raw_url, str) else ""
        if not url:
            return SolidBackground()
        size = str(_pick(source, "size", "backgroundSize") or "cover").strip().lower()
        if size not in IMAGE_SIZES:
            size = "cover"
        pos_x = clamp_number(source.get("positionX"), 0, 100)
        pos_y = clamp_number(source.get("positionY"), 0, 100)
        scale = clamp_number(source.get("scale"), 10, 500)
        blur = clamp_number(source.get("blur"), 0, 20)
        return ImageBackground(
            url=url,
            opacity=clamp_number(source.get("opacity"), 0, 1),
            size=size,
            position_x=50.0 if pos_x is None else pos_x,
            position_y=50.0 if pos_y is None else pos_y,
            scale=100.0 if scale is None else scale,
            blur=0.0 if blur is None else blur,
        )
    if kind == "pattern":
        pattern_id = clean_text(_pick(raw, "patternId", "pattern") or "", 40).lower()
        color = valid_hex_color(raw.get("color")) or DEFAULT_PATTERN_COLOR
        if not pattern_id:
            return SolidBackground(color=color)
        return PatternBackground(pattern_id=pattern_id, color=color)
    return SolidBackground()


def background_from_legacy_fields(record: Mapping) -> BackgroundSpec:
    """Older records kept loose backgroundColor / backgroundImage / backgroundGradient fields."""
    if isinstance(record.get("background"), Mapping):
        return validate_background(record["background"])
    opacity = clamp_number(record.get("backgroundOpacity"), 0, 1)
    image = record.get("backgroundImage")
    if isinstance(image, Mapping):
        return validate_background({"type": "image", "opacity": opacity, **image})
    if isinstance(image, str) and image.strip():
        spec = validate_background({"type": "image", "url": image, "opacity": opacity})
        if isinstance(spec, ImageBackground):
            return spec
    gradient = record.get("backgroundGradient")
    if isinstance(gradient, Mapping):
        return validate_background({"type": "gradient", "gradient": gradient})
    return validate_background({"type": "solid", "color": record.get("backgroundColor"), "opacity": opacity})


# -------------------------- documents --------------------------
def _coerce_datetime(value) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    return None


def validate_document(raw) -> Optional[ProfileDocument]:
    """
    Structural validation of a stored document. Returns None when the record
    is not a document at all (not a mapping, or components present but not a
    list); otherwise a ProfileDocument with unique ids and a total order.
    """
    if isinstance(raw, ProfileDocument):
        raw = {**raw.to_dict(), "updatedAt": raw.updated_at, "editorContent": raw.legacy_content}
    if not isinstance(raw, Mapping):
        return None
    components_raw = raw.get("components")
    if components_raw is not None and not isinstance(components_raw, (list, tuple)):
        return None
    legacy = raw.get("editorContent")
    return ProfileDocument(
        components=validate_components(components_raw or []),
        background=background_from_legacy_fields(raw),
        updated_at=_coerce_datetime(raw.get("updatedAt") or raw.get("updated_at")),
        legacy_content=legacy if (legacy not in (None, "") and components_raw is None) else None,
    )
