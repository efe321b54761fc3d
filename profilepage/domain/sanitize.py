"""Low-level sanitizers: markup stripping and URL / e-mail / colour checks."""
from __future__ import annotations

import re
import urllib.parse as urlparse
from html.parser import HTMLParser

_TAG_RE = re.compile(r"<[^>]*>")
_TAG_LIKE_RE = re.compile(r"<\s*[/!?a-zA-Z]")
_CTRL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
EMAIL_RE = re.compile(r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)+$")
HEX_COLOR_RE = re.compile(r"#?([0-9a-fA-F]{6})")
_SCHEME_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.-]*):")

WEB_SCHEMES = ("http", "https")
LINK_SCHEMES = ("http", "https", "mailto", "tel")
MAX_URL_LENGTH = 2048


class _TextCollector(HTMLParser):
    """Keeps character data, drops every tag, attribute and comment."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.parts: list[str] = []

    def handle_data(self, data: str) -> None:
        self.parts.append(data)


def _strip_once(value: str) -> str:
    parser = _TextCollector()
    parser.feed(value)
    parser.close()
    return "".join(parser.parts)


def strip_tags(value) -> str:
    """
    Remove all markup from value, keeping text content.
    "<b>hi</b><script>x</script>" -> "hix". Entities are decoded, so the loop
    runs again until no tag-like sequence is left ("&lt;b&gt;" must not come
    back out as "<b>").
    """
    if value is None:
        return ""
    text = value if isinstance(value, str) else str(value)
    text = _CTRL_RE.sub("", text)
    for _ in range(5):
        if "<" not in text and "&" not in text:
            break
        stripped = _strip_once(text)
        if stripped == text:
            break
        text = stripped
    if _TAG_LIKE_RE.search(text):
        text = _TAG_RE.sub("", text)
        text = _TAG_LIKE_RE.sub("", text)
    return text


def clean_text(value, maxlen: int) -> str:
    """Strip markup, trim whitespace, cap length."""
    return strip_tags(value).strip()[:maxlen]


def normalize_external_url(value: str) -> str:
    """
    Ensure external links carry a scheme when the user left it out (https://).
    mailto: and tel: are kept untouched.
    """
    v = (value or "").strip()
    if not v:
        return ""
    m = _SCHEME_RE.match(v)
    # host:port is not a scheme
    if m and (m.group(1).lower() in ("mailto", "tel") or not v[m.end():m.end() + 1].isdigit()):
        return v
    return "https://" + v.lstrip("/")


def valid_url(value, schemes: tuple[str, ...] = WEB_SCHEMES) -> str | None:
    """Return the normalized URL when well formed, otherwise None."""
    if not isinstance(value, str):
        return None
    v = normalize_external_url(value)
    if not v or len(v) > MAX_URL_LENGTH or any(ch.isspace() for ch in v) or "<" in v or ">" in v:
        return None
    try:
        parsed = urlparse.urlparse(v)
    except ValueError:
        return None
    scheme = (parsed.scheme or "").lower()
    if scheme not in schemes:
        return None
    if scheme in WEB_SCHEMES:
        host = parsed.hostname or ""
        if not host:
            return None
        if host != "localhost" and "." not in host:
            return None
        try:
            parsed.port
        except ValueError:
            return None
        return v
    if scheme == "mailto":
        return v if valid_email(v[len("mailto:"):].split("?", 1)[0]) else None
    if scheme == "tel":
        digits = re.sub(r"[^\d]", "", v[len("tel:"):])
        return v if 3 <= len(digits) <= 20 else None
    return None


def valid_email(value) -> str | None:
    if not isinstance(value, str):
        return None
    v = value.strip()
    if not v or len(v) > 254:
        return None
    return v if EMAIL_RE.match(v) else None


def valid_hex_color(value) -> str | None:
    if not isinstance(value, str):
        return None
    m = HEX_COLOR_RE.fullmatch(value.strip())
    if not m:
        return None
    return ("#" + m.group(1)).upper()


def clamp_number(value, low: float, high: float) -> float | None:
    """Coerce to float inside [low, high]; None when not numeric."""
    if isinstance(value, bool):
        return None
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    if v != v:  # NaN
        return None
    return float(min(max(v, low), high))
