"""
Decoder for the older recursive node-graph documents.

Shape: a keyed map with a reserved "ROOT" entry; every entry is
{"type": <name or {"resolvedName": name}>, "props": {...}, "nodes": [child ids]}.
normalize() never raises. Anything malformed, or a graph holding nothing but
scaffolding, comes back as the EMPTY_DOCUMENT constant.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Optional, Union

from .blocks import BlockType, is_content_type
from .schema import validate, validate_style

log = logging.getLogger(__name__)

ROOT_KEY = "ROOT"
ROOT_CONTAINER_TYPE = "Container"
SCAFFOLD_TYPE = "AddComponentPlaceholder"
MAX_DEPTH = 32
MAX_NODES = 2000

LEGACY_TYPE_MAP = {
    "Text": BlockType.TEXT,
    "ImageUpload": BlockType.IMAGE,
    "LinkButton": BlockType.LINK,
    "ProfileInfo": BlockType.PROFILE_CARD,
    SCAFFOLD_TYPE: BlockType.SCAFFOLD,
}

LEGACY_STYLE_PROPS = (
    "fontSize",
    "fontWeight",
    "fontFamily",
    "color",
    "textAlign",
    "backgroundColor",
    "textColor",
    "borderRadius",
    "width",
    "height",
    "padding",
)

NOTICE_UNREADABLE = "Your saved design could not be read, so an empty page is shown. Your data has not been changed."
NOTICE_NO_CONTENT = "No content has been added yet."


@dataclass(frozen=True)
class RenderableNode:
    id: str
    type_name: str
    block_type: Optional[BlockType]
    props: dict
    children: tuple["RenderableNode", ...] = ()


@dataclass(frozen=True)
class RenderableTree:
    nodes: tuple[RenderableNode, ...]

    def iter_content(self) -> Iterator[RenderableNode]:
        """Depth-first walk yielding only real content nodes."""
        stack = list(reversed(self.nodes))
        while stack:
            node = stack.pop()
            if is_content_type(node.block_type):
                yield node
            stack.extend(reversed(node.children))


class EmptyDocument:
    """Marker for "nothing renderable". Use the EMPTY_DOCUMENT instance."""

    _instance: Optional["EmptyDocument"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "EMPTY_DOCUMENT"


EMPTY_DOCUMENT = EmptyDocument()

NormalizedGraph = Union[RenderableTree, EmptyDocument]


class _Unreadable(Exception):
    pass


def resolved_type(node: Any) -> Optional[str]:
    if not isinstance(node, Mapping):
        return None
    value = node.get("type")
    if isinstance(value, Mapping):
        value = value.get("resolvedName")
    return value if isinstance(value, str) and value else None


def _parse(raw: Any) -> Mapping:
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise _Unreadable("not utf-8") from exc
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise _Unreadable("invalid json") from exc
    if not isinstance(raw, Mapping):
        raise _Unreadable("not a keyed map")
    if not isinstance(raw.get(ROOT_KEY), Mapping):
        raise _Unreadable("missing root")
    return raw


def _is_real_content(name: Optional[str]) -> bool:
    return bool(name) and name not in (ROOT_CONTAINER_TYPE, SCAFFOLD_TYPE)


def _child_ids(node: Mapping) -> list[str]:
    ids = node.get("nodes")
    if not isinstance(ids, (list, tuple)):
        return []
    return [i for i in ids if isinstance(i, str)]


def _build(graph: Mapping, node_id: str, depth: int, visited: set[str]) -> Optional[RenderableNode]:
    if node_id in visited or depth > MAX_DEPTH or len(visited) >= MAX_NODES:
        return None
    node = graph.get(node_id)
    name = resolved_type(node)
    if not name or name == SCAFFOLD_TYPE:
        return None
    visited.add(node_id)
    props = node.get("props") if isinstance(node.get("props"), Mapping) else {}
    children = tuple(
        child
        for child in (_build(graph, cid, depth + 1, visited) for cid in _child_ids(node))
        if child is not None
    )
    return RenderableNode(
        id=node_id,
        type_name=name,
        block_type=LEGACY_TYPE_MAP.get(name),
        props=dict(props),
        children=children,
    )


def normalize(raw_graph: Any) -> NormalizedGraph:
    """Interpret a legacy graph (map or serialized string) as a renderable tree."""
    try:
        graph = _parse(raw_graph)
        real = sum(
            1
            for key, node in graph.items()
            if key != ROOT_KEY and _is_real_content(resolved_type(node))
        )
        if real == 0:
            return EMPTY_DOCUMENT
        visited: set[str] = {ROOT_KEY}
        nodes = tuple(
            node
            for node in (_build(graph, cid, 1, visited) for cid in _child_ids(graph[ROOT_KEY]))
            if node is not None
        )
        tree = RenderableTree(nodes=nodes)
        if next(tree.iter_content(), None) is None:
            return EMPTY_DOCUMENT
        return tree
    except _Unreadable as exc:
        log.warning("legacy graph unreadable (%s); using empty document", exc)
        return EMPTY_DOCUMENT
    except Exception:  # adversarial input must degrade, never propagate
        log.warning("legacy graph could not be normalized; using empty document", exc_info=True)
        return EMPTY_DOCUMENT


def notice_for(raw_graph: Any, result: NormalizedGraph) -> Optional[str]:
    """User-facing, non-fatal notice to show next to a degraded legacy document."""
    if not isinstance(result, EmptyDocument):
        return None
    try:
        _parse(raw_graph)
    except _Unreadable:
        return NOTICE_UNREADABLE
    except Exception:
        return NOTICE_UNREADABLE
    return NOTICE_NO_CONTENT


def node_content(node: RenderableNode) -> Optional[dict]:
    """Map legacy node props onto canonical content for the node's block type."""
    props = node.props
    bt = node.block_type
    if bt is BlockType.TEXT:
        raw = {"text": props.get("text")}
    elif bt is BlockType.IMAGE:
        raw = {"src": props.get("src"), "alt": props.get("alt", "")}
    elif bt is BlockType.LINK:
        raw = {"url": props.get("url") or props.get("href"), "label": props.get("text") or props.get("label") or ""}
    elif bt is BlockType.PROFILE_CARD:
        raw = props
    else:
        return None
    return validate(bt, raw)


def node_style(node: RenderableNode) -> Optional[dict]:
    return validate_style({k: node.props[k] for k in LEGACY_STYLE_PROPS if k in node.props})


def to_components(result: NormalizedGraph) -> list[dict]:
    """Flatten a normalized tree into raw canonical component records (migration only)."""
    if not isinstance(result, RenderableTree):
        return []
    components = []
    for node in result.iter_content():
        record = {
            "id": node.id,
            "type": node.block_type.value,
            "order": len(components),
            "content": node_content(node) or {},
        }
        style = node_style(node)
        if style:
            record["style"] = style
        components.append(record)
    return components
