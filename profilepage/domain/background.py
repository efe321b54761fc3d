"""Background resolver: BackgroundSpec -> visual parameters (pure)."""
from __future__ import annotations

import urllib.parse as urlparse
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .blocks import (
    DEFAULT_BACKGROUND_COLOR,
    GradientBackground,
    ImageBackground,
    PatternBackground,
    SolidBackground,
)
from .sanitize import valid_hex_color
from .schema import validate_background

# Render-time default; the editor gives fresh image backgrounds IMAGE_OPACITY_UPLOAD_DEFAULT.
IMAGE_OPACITY_DEFAULT = 0.5
IMAGE_OPACITY_UPLOAD_DEFAULT = 0.7
PATTERN_TILE_SIZE = 20

# patternId -> SVG body drawn in a PATTERN_TILE_SIZE square; {c} is the colour
PATTERN_TILES = {
    "dots": "<circle cx='10' cy='10' r='2' fill='{c}'/>",
    "grid": "<path d='M20 0H0V20' fill='none' stroke='{c}' stroke-width='1'/>",
    "stripes": "<rect x='0' y='0' width='20' height='6' fill='{c}'/>",
    "diagonal": "<path d='M-5 5L5 -5M0 20L20 0M15 25L25 15' stroke='{c}' stroke-width='2'/>",
    "cross": "<path d='M10 6V14M6 10H14' stroke='{c}' stroke-width='2'/>",
}


@dataclass(frozen=True)
class BackgroundStyle:
    """Resolved visual parameters of a page background."""

    kind: str
    color: Optional[str] = None
    gradient: Optional[str] = None
    image_url: Optional[str] = None
    overlay_alpha: Optional[float] = None
    size: Optional[str] = None
    position: Optional[str] = None
    repeat: Optional[str] = None
    blur: float = 0.0
    tile: Optional[str] = None
    css: dict = field(default_factory=dict)

    @property
    def has_overlay(self) -> bool:
        return self.overlay_alpha is not None

    def style_attr(self) -> str:
        return "; ".join(f"{k}: {v}" for k, v in self.css.items())


def _hex_to_rgb_tuple(value: str) -> tuple[int, int, int]:
    v = value.lstrip("#")
    return int(v[0:2], 16), int(v[2:4], 16), int(v[4:6], 16)


def _fmt(value: float) -> str:
    text = f"{round(value, 4):.4f}".rstrip("0").rstrip(".")
    return text or "0"


def _css_url(url: str) -> str:
    return "url(\"" + url.replace("\\", "%5C").replace("\"", "%22") + "\")"


def _rgba(color: str, alpha: float) -> str:
    r, g, b = _hex_to_rgb_tuple(color)
    return f"rgba({r}, {g}, {b}, {_fmt(alpha)})"


def _resolve_solid(spec: SolidBackground) -> BackgroundStyle:
    color = valid_hex_color(spec.color) or DEFAULT_BACKGROUND_COLOR
    alpha = min(max(spec.alpha, 0.0), 1.0)
    value = color if alpha >= 1.0 else _rgba(color, alpha)
    return BackgroundStyle(kind="solid", color=value, css={"background-color": value})


def _resolve_gradient(spec: GradientBackground) -> BackgroundStyle:
    gradient = f"linear-gradient({spec.direction}, {spec.from_color}, {spec.to_color})"
    return BackgroundStyle(kind="gradient", gradient=gradient, css={"background": gradient})


def _resolve_image(spec: ImageBackground, default_opacity: float) -> BackgroundStyle:
    opacity = spec.opacity if spec.opacity is not None else default_opacity
    opacity = min(max(opacity, 0.0), 1.0)
    # opacity p is a white veil of alpha (1 - p) painted over the image
    overlay = round(1.0 - opacity, 4)
    veil = f"rgba(255, 255, 255, {_fmt(overlay)})"
    size = f"{_fmt(spec.scale)}%" if spec.size == "custom" else spec.size
    position = f"{_fmt(spec.position_x)}% {_fmt(spec.position_y)}%"
    css = {
        "background-image": f"linear-gradient({veil}, {veil}), {_css_url(spec.url)}",
        "background-size": size,
        "background-position": position,
        "background-repeat": "no-repeat",
    }
    if spec.blur:
        css["backdrop-filter"] = f"blur({_fmt(spec.blur)}px)"
    return BackgroundStyle(
        kind="image",
        image_url=spec.url,
        overlay_alpha=overlay,
        size=size,
        position=position,
        repeat="no-repeat",
        blur=spec.blur,
        css=css,
    )


def pattern_tile(pattern_id: str, color: str) -> Optional[str]:
    """Data URI of the repeating SVG tile for pattern_id, or None when unknown."""
    body = PATTERN_TILES.get(pattern_id)
    if body is None:
        return None
    svg = (
        f"<svg xmlns='http://www.w3.org/2000/svg' width='{PATTERN_TILE_SIZE}' height='{PATTERN_TILE_SIZE}'>"
        + body.format(c=color)
        + "</svg>"
    )
    return "data:image/svg+xml," + urlparse.quote(svg, safe="")


def _resolve_pattern(spec: PatternBackground) -> BackgroundStyle:
    color = valid_hex_color(spec.color) or DEFAULT_BACKGROUND_COLOR
    tile = pattern_tile(spec.pattern_id, color)
    if tile is None:
        return BackgroundStyle(kind="solid", color=color, css={"background-color": color})
    size = f"{PATTERN_TILE_SIZE}px {PATTERN_TILE_SIZE}px"
    return BackgroundStyle(
        kind="pattern",
        color=DEFAULT_BACKGROUND_COLOR,
        tile=tile,
        size=size,
        repeat="repeat",
        css={
            "background-color": DEFAULT_BACKGROUND_COLOR,
            "background-image": _css_url(tile),
            "background-size": size,
            "background-repeat": "repeat",
        },
    )


def resolve(spec, *, default_image_opacity: float = IMAGE_OPACITY_DEFAULT) -> BackgroundStyle:
    """
    Resolve a background spec into style parameters. A raw mapping is coerced
    to a spec first; anything unrecognised resolves to a white fill.
    """
    if isinstance(spec, Mapping):
        spec = validate_background(spec, check_urls=False)
    if isinstance(spec, SolidBackground):
        return _resolve_solid(spec)
    if isinstance(spec, GradientBackground):
        return _resolve_gradient(spec)
    if isinstance(spec, ImageBackground):
        return _resolve_image(spec, default_image_opacity)
    if isinstance(spec, PatternBackground):
        return _resolve_pattern(spec)
    return _resolve_solid(SolidBackground())
