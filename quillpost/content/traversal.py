"""
Tree Traversal — Pure visitors over the content tree.

All visitors:
- never mutate their input (nodes are frozen anyway)
- preserve document order
- descend into every node that has ``content``, whatever its type, so an
  image inside a list item inside a blockquote is still found
- run in O(number of nodes)

Per-type behaviour is table-driven; each table must cover every node type,
checked at import time.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterator, List, Mapping, Optional

from .tree import CONTAINER_TYPES, NODE_TYPES, Node


def _none(node: Node) -> Optional[str]:
    return None


def _leaf_text(node: Node) -> Optional[str]:
    return node.text


def _image_src(node: Node) -> Optional[str]:
    return node.attrs.get("src")


def _require_exhaustive(name: str, table: Dict[str, Callable]) -> Dict[str, Callable]:
    missing = NODE_TYPES - set(table)
    if missing:
        raise RuntimeError(f"{name} does not handle node types: {sorted(missing)}")
    return table


_TEXT_OF = _require_exhaustive("text visitor", {
    **{t: _none for t in CONTAINER_TYPES},
    "text": _leaf_text,
    "image": _none,
    "youtube": _none,
})

_MEDIA_REF_OF = _require_exhaustive("media visitor", {
    **{t: _none for t in CONTAINER_TYPES},
    "text": _none,
    "image": _image_src,
    "youtube": _none,
})


def iter_nodes(tree: Node) -> Iterator[Node]:
    """Yield every node in document (pre-)order without recursion."""
    stack = [tree]
    while stack:
        node = stack.pop()
        yield node
        if node.content:
            stack.extend(reversed(node.content))


def extract_text(tree: Node) -> List[str]:
    """All text leaf values, in document order."""
    values = []
    for node in iter_nodes(tree):
        value = _TEXT_OF[node.type](node)
        if value is not None:
            values.append(value)
    return values


def extract_media_refs(tree: Node) -> List[str]:
    """All image ``src`` values (staged or resolved), in document order."""
    refs = []
    for node in iter_nodes(tree):
        ref = _MEDIA_REF_OF[node.type](node)
        if ref:
            refs.append(ref)
    return refs


def rewrite_media_refs(tree: Node, mapping: Mapping[str, str]) -> Node:
    """
    Return a new tree with image sources replaced through ``mapping``.

    Image nodes whose ``src`` is not a key of ``mapping`` are returned as-is,
    as are subtrees containing no rewritten image.
    """
    if not mapping:
        return tree
    return _rewrite(tree, mapping)


def _rewrite(node: Node, mapping: Mapping[str, str]) -> Node:
    if node.type == "image":
        src = node.attrs.get("src")
        if src in mapping:
            return node.with_attrs(src=mapping[src])
        return node

    if not node.content:
        return node

    children = tuple(_rewrite(child, mapping) for child in node.content)
    if all(new is old for new, old in zip(children, node.content)):
        return node
    return node.with_content(children)


def has_meaningful_content(tree: Optional[Node]) -> bool:
    """
    True if the tree has at least one non-empty content node.

    Non-empty means a text leaf with non-whitespace text, or an image or
    embedded video with a source.
    """
    if tree is None:
        return False
    for node in iter_nodes(tree):
        if node.type == "text" and node.text and node.text.strip():
            return True
        if node.type in ("image", "youtube") and node.attrs.get("src"):
            return True
    return False
