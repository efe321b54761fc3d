"""
Dual-mode renderer: maps each block type to one HTML presentation per mode.

Both registries are checked against CONTENT_BLOCK_TYPES at import time, so a
new block type fails loudly until it has an editable and a public renderer.
"""
from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from profilepage.core.config import get_settings
from profilepage.domain.background import BackgroundStyle, resolve
from profilepage.domain.blocks import (
    CONTENT_BLOCK_TYPES,
    BlockType,
    ProfileDocument,
    default_background,
)
from profilepage.domain.legacy_graph import (
    ROOT_KEY,
    EmptyDocument,
    RenderableTree,
    node_content,
    node_style,
    normalize,
    notice_for,
)
from profilepage.domain.schema import validate_document

log = logging.getLogger(__name__)

PLACEHOLDER_TEXT = "No content yet"
PLACEHOLDER_HTML = f'<div class="profile-empty">{PLACEHOLDER_TEXT}</div>'


class RenderMode(str, Enum):
    EDITABLE = "editable"
    PUBLIC = "public"


BlockRenderer = Callable[[str, dict, Optional[dict]], str]


def _e(value: Any) -> str:
    return html.escape(str(value or ""), quote=True)


def _style_attr(style: Optional[dict]) -> str:
    if not style:
        return ""
    rules = "; ".join(f"{k}: {v}" for k, v in style.items())
    return f' style="{_e(rules)}"'


# -------------------------- shared bodies --------------------------
def _text_body(content: dict) -> str:
    return _e(content.get("text")).replace("\n", "<br>")


def _image_body(content: dict) -> str:
    src = content.get("src")
    if not src:
        return '<div class="image-block__empty">No image</div>'
    return f'<img src="{_e(src)}" alt="{_e(content.get("alt"))}" loading="lazy">'


def _card_name(content: dict) -> str:
    name = content.get("name")
    if name:
        return name
    return " ".join(p for p in (content.get("firstName"), content.get("lastName")) if p)


def _card_body(content: dict) -> str:
    parts = []
    photo = content.get("photoURL")
    if photo:
        parts.append(f'<img class="profile-card__photo" src="{_e(photo)}" alt="{_e(_card_name(content))}">')
    name = _card_name(content)
    if name:
        parts.append(f'<h1 class="profile-card__name">{_e(name)}</h1>')
    role = " / ".join(content[k] for k in ("position", "department", "company") if content.get(k))
    if role:
        parts.append(f'<p class="profile-card__role">{_e(role)}</p>')
    if content.get("bio"):
        parts.append(f'<p class="profile-card__bio">{_e(content["bio"])}</p>')
    contacts = []
    if content.get("email"):
        contacts.append(f'<li><a href="mailto:{_e(content["email"])}">{_e(content["email"])}</a></li>')
    for key in ("phone", "cellPhone"):
        if content.get(key):
            contacts.append(f'<li><a href="tel:{_e(content[key])}">{_e(content[key])}</a></li>')
    if content.get("website"):
        contacts.append(
            f'<li><a href="{_e(content["website"])}" target="_blank" rel="noopener noreferrer">'
            f'{_e(content["website"])}</a></li>'
        )
    address = " ".join(content[k] for k in ("postalCode", "city", "address") if content.get(k))
    if address:
        contacts.append(f'<li class="profile-card__address">{_e(address)}</li>')
    if contacts:
        parts.append(f'<ul class="profile-card__contacts">{"".join(contacts)}</ul>')
    return "".join(parts)


def _card_style(content: dict, style: Optional[dict]) -> Optional[dict]:
    color = content.get("cardBackgroundColor")
    if not color:
        return style
    r, g, b = int(color[1:3], 16), int(color[3:5], 16), int(color[5:7], 16)
    alpha = float(content.get("cardBackgroundOpacity", 100)) / 100
    merged = {"background-color": f"rgba({r}, {g}, {b}, {alpha:g})"}
    merged.update(style or {})
    return merged


# -------------------------- public mode --------------------------
def _public_text(component_id: str, content: dict, style: Optional[dict]) -> str:
    return f'<div class="block text-block"{_style_attr(style)}><p>{_text_body(content)}</p></div>'


def _public_image(component_id: str, content: dict, style: Optional[dict]) -> str:
    return f'<figure class="block image-block"{_style_attr(style)}>{_image_body(content)}</figure>'


def _public_link(component_id: str, content: dict, style: Optional[dict]) -> str:
    label = _e(content.get("label") or content.get("url"))
    url = content.get("url")
    if not url:
        return f'<div class="block link-block"{_style_attr(style)}><span class="link-block__label">{label}</span></div>'
    return (
        f'<div class="block link-block"{_style_attr(style)}>'
        f'<a class="link-block__anchor" href="{_e(url)}" target="_blank" rel="noopener noreferrer">{label}</a>'
        "</div>"
    )


def _public_profile_card(component_id: str, content: dict, style: Optional[dict]) -> str:
    return f'<section class="block profile-card"{_style_attr(_card_style(content, style))}>{_card_body(content)}</section>'


# -------------------------- editable mode --------------------------
def _editable(component_id: str, block_type: BlockType, inner: str, style: Optional[dict]) -> str:
    cid = _e(component_id)
    return (
        f'<div class="block block--editable {block_type.value}-block" data-component-id="{cid}" '
        f'data-block-type="{block_type.value}" draggable="true"{_style_attr(style)}>'
        '<span class="block__handle" aria-label="Drag to reorder">&#8942;</span>'
        f'<div class="block__body">{inner}</div>'
        '<div class="block__controls">'
        f'<button type="button" class="block__edit" data-action="edit" data-component-id="{cid}">Edit</button>'
        f'<button type="button" class="block__delete" data-action="delete" data-component-id="{cid}">Delete</button>'
        "</div></div>"
    )


def _editable_text(component_id: str, content: dict, style: Optional[dict]) -> str:
    return _editable(component_id, BlockType.TEXT, f"<p>{_text_body(content)}</p>", style)


def _editable_image(component_id: str, content: dict, style: Optional[dict]) -> str:
    return _editable(component_id, BlockType.IMAGE, _image_body(content), style)


def _editable_link(component_id: str, content: dict, style: Optional[dict]) -> str:
    # no navigation while editing; the target is shown instead
    inner = f'<span class="link-block__label">{_e(content.get("label") or content.get("url"))}</span>'
    if content.get("url"):
        inner += f'<span class="link-block__url">{_e(content["url"])}</span>'
    return _editable(component_id, BlockType.LINK, inner, style)


def _editable_profile_card(component_id: str, content: dict, style: Optional[dict]) -> str:
    return _editable(component_id, BlockType.PROFILE_CARD, _card_body(content), _card_style(content, style))


RENDERERS: dict[RenderMode, dict[BlockType, BlockRenderer]] = {
    RenderMode.PUBLIC: {
        BlockType.TEXT: _public_text,
        BlockType.IMAGE: _public_image,
        BlockType.LINK: _public_link,
        BlockType.PROFILE_CARD: _public_profile_card,
    },
    RenderMode.EDITABLE: {
        BlockType.TEXT: _editable_text,
        BlockType.IMAGE: _editable_image,
        BlockType.LINK: _editable_link,
        BlockType.PROFILE_CARD: _editable_profile_card,
    },
}


def _check_registries() -> None:
    expected = set(CONTENT_BLOCK_TYPES)
    for mode in RenderMode:
        table = set(RENDERERS.get(mode, {}))
        if table != expected:
            raise RuntimeError(
                f"{mode.value} renderers out of sync: missing {sorted(t.value for t in expected - table)}, "
                f"unexpected {sorted(t.value for t in table - expected)}"
            )


_check_registries()


@dataclass(frozen=True)
class RenderedBlock:
    id: str
    block_type: BlockType
    html: str


@dataclass(frozen=True)
class RenderedPage:
    mode: RenderMode
    background: BackgroundStyle
    blocks: tuple[RenderedBlock, ...]
    placeholder: bool = False
    notice: Optional[str] = None

    @property
    def body_html(self) -> str:
        if self.placeholder:
            return PLACEHOLDER_HTML
        return "".join(b.html for b in self.blocks)

    @property
    def html(self) -> str:
        return (
            f'<div class="profile-page profile-page--{self.mode.value}" style="{_e(self.background.style_attr())}">'
            f'{self.body_html}</div>'
        )


def _render_components(document: ProfileDocument, table: Mapping[BlockType, BlockRenderer]) -> list[RenderedBlock]:
    blocks = []
    for component in document.sorted_components():
        renderer = table.get(component.type)
        if renderer is None:
            log.debug("skipping component %s of unrenderable type %r", component.id, component.type)
            continue
        blocks.append(RenderedBlock(component.id, component.type, renderer(component.id, component.content, component.style)))
    return blocks


def _render_tree(tree: RenderableTree, table: Mapping[BlockType, BlockRenderer]) -> list[RenderedBlock]:
    blocks = []
    for node in tree.iter_content():
        renderer = table.get(node.block_type)
        if renderer is None:
            log.debug("skipping legacy node %s of type %r", node.id, node.type_name)
            continue
        blocks.append(RenderedBlock(node.id, node.block_type, renderer(node.id, node_content(node) or {}, node_style(node))))
    return blocks


def render(source: Any, mode: RenderMode | str = RenderMode.PUBLIC, *, default_image_opacity: float | None = None) -> RenderedPage:
    """
    Render a document (canonical, legacy tree, or raw stored record) in the
    given mode. Never raises on content: anything unreadable or empty yields
    the "no content yet" placeholder, and unknown block types are skipped.
    """
    mode = RenderMode(mode)
    table = RENDERERS[mode]
    opacity = get_settings().image_opacity_default if default_image_opacity is None else default_image_opacity
    notice: Optional[str] = None
    document: Optional[ProfileDocument] = None
    tree: Any = None

    if isinstance(source, ProfileDocument):
        document = source
        notice = source.notice
    elif isinstance(source, (RenderableTree, EmptyDocument)):
        tree = source
    elif isinstance(source, Mapping) and ROOT_KEY in source:
        tree = normalize(source)
        notice = notice_for(source, tree)
    elif isinstance(source, Mapping):
        document = validate_document(source)
        if document is None:
            log.info("document failed structural validation; rendering placeholder")
    elif isinstance(source, (str, bytes, bytearray)):
        tree = normalize(source)
        notice = notice_for(source, tree)

    if document is not None and not document.components and document.legacy_content is not None:
        tree = normalize(document.legacy_content)
        notice = notice_for(document.legacy_content, tree)

    background_spec = document.background if document is not None else default_background()
    background = resolve(background_spec, default_image_opacity=opacity)

    if isinstance(tree, RenderableTree):
        blocks = _render_tree(tree, table)
    elif document is not None and tree is None:
        blocks = _render_components(document, table)
    else:
        blocks = []
    return RenderedPage(mode=mode, background=background, blocks=tuple(blocks), placeholder=not blocks, notice=notice)
