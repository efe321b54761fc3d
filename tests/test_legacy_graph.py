from __future__ import annotations

import json

import pytest

from profilepage.domain.blocks import BlockType
from profilepage.domain.legacy_graph import (
    EMPTY_DOCUMENT,
    NOTICE_NO_CONTENT,
    NOTICE_UNREADABLE,
    RenderableTree,
    normalize,
    notice_for,
    to_components,
)


def _graph(*children):
    graph = {"ROOT": {"type": {"resolvedName": "Container"}, "nodes": [c[0] for c in children], "props": {}}}
    for node_id, node in children:
        graph[node_id] = node
    return graph


SCAFFOLD = ("add", {"type": {"resolvedName": "AddComponentPlaceholder"}, "props": {}, "nodes": []})
TEXT = ("t1", {"type": {"resolvedName": "Text"}, "props": {"text": "<b>Hello</b>", "fontSize": "18px"}, "nodes": []})


def test_root_and_scaffold_only_is_empty():
    assert normalize(_graph(SCAFFOLD)) is EMPTY_DOCUMENT


def test_scaffold_plus_text_keeps_only_text():
    tree = normalize(_graph(SCAFFOLD, TEXT))
    assert isinstance(tree, RenderableTree)
    nodes = list(tree.iter_content())
    assert [n.id for n in nodes] == ["t1"]
    assert nodes[0].block_type is BlockType.TEXT


def test_serialized_string_is_parsed():
    tree = normalize(json.dumps(_graph(TEXT)))
    assert isinstance(tree, RenderableTree)


@pytest.mark.parametrize(
    "raw",
    [None, "", "{not json", b"\xff\xfe", 42, [], {"no": "root"}, {"ROOT": "x"}, {"ROOT": {"nodes": "t1"}, "t1": 5}],
)
def test_malformed_input_degrades_to_empty(raw):
    assert normalize(raw) is EMPTY_DOCUMENT


def test_cycles_and_missing_children_do_not_loop():
    graph = json.loads(json.dumps(_graph(TEXT)))
    graph["t1"]["nodes"] = ["t1", "ROOT", "missing"]
    tree = normalize(graph)
    assert [n.id for n in tree.iter_content()] == ["t1"]


def test_notice_for_degraded_documents():
    assert notice_for("{broken", normalize("{broken")) == NOTICE_UNREADABLE
    graph = _graph(SCAFFOLD)
    assert notice_for(graph, normalize(graph)) == NOTICE_NO_CONTENT
    graph = _graph(TEXT)
    assert notice_for(graph, normalize(graph)) is None


def test_to_components_depth_first_with_legacy_mapping():
    container = ("box", {"type": {"resolvedName": "Container"}, "props": {}, "nodes": ["img", "link"]})
    image = ("img", {"type": {"resolvedName": "ImageUpload"}, "props": {"src": "https://x.io/a.png", "alt": "A"}, "nodes": []})
    link = ("link", {"type": "LinkButton", "props": {"url": "example.com", "text": "Visit"}, "nodes": []})
    card = ("card", {"type": {"resolvedName": "ProfileInfo"}, "props": {"name": "Ann", "title": "CTO", "avatarUrl": "https://x.io/p.png"}, "nodes": []})
    graph = _graph(TEXT, container, card)
    graph.update({"img": image[1], "link": link[1]})

    comps = to_components(normalize(graph))
    assert [c["type"] for c in comps] == ["text", "image", "link", "profile-card"]
    assert [c["order"] for c in comps] == [0, 1, 2, 3]
    assert comps[0]["content"] == {"text": "Hello"}
    assert comps[0]["style"] == {"fontSize": "18px"}
    assert comps[2]["content"] == {"url": "https://example.com", "label": "Visit"}
    assert comps[3]["content"]["position"] == "CTO"
    assert comps[3]["content"]["photoURL"] == "https://x.io/p.png"


def test_to_components_of_empty_is_empty():
    assert to_components(EMPTY_DOCUMENT) == []
