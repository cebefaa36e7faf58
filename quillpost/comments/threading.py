"""
Comment Threading — Rebuild reply trees from flat comment rows.

Ordering:
- top-level comments newest first
- replies (at every depth) oldest first, so a conversation reads down

A comment whose ``parent_id`` is not among the input rows (deleted parent,
or a page boundary) is shown at the top level rather than dropped.
Comments whose parents form a loop are shown at the top level too.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Set

from ..models.comment import Comment, CommentId, CommentNode

logger = logging.getLogger(__name__)

_ON_PATH, _DONE = 1, 2


def build_comment_forest(
    comments: Iterable[Comment],
    owner_id: Optional[str] = None,
) -> List[CommentNode]:
    """
    Thread comments into a forest.

    Args:
        comments: Flat comment rows, in any order
        owner_id: Author id of the page owner; their replies are flagged

    Returns:
        Top-level ``CommentNode`` list with replies attached
    """
    nodes: Dict[CommentId, CommentNode] = {}
    for comment in comments:
        nodes[comment.id] = CommentNode(comment=comment)

    cyclic = _cyclic_ids(nodes)
    roots: List[CommentNode] = []
    for node in nodes.values():
        parent_id = node.comment.parent_id
        parent = nodes.get(parent_id) if parent_id is not None else None
        if parent is None or node.id in cyclic:
            if parent_id is not None:
                logger.debug(f"Comment {node.id} has unusable parent {parent_id}; shown top-level")
            roots.append(node)
        else:
            node.is_owner_reply = owner_id is not None and node.comment.author_id == owner_id
            parent.replies.append(node)

    roots.sort(key=lambda n: n.comment.created_at, reverse=True)
    _sort_replies(roots)
    return roots


def _sort_replies(level: List[CommentNode]) -> None:
    stack = list(level)
    while stack:
        node = stack.pop()
        node.replies.sort(key=lambda n: n.comment.created_at)
        stack.extend(node.replies)


def _cyclic_ids(nodes: Dict[CommentId, CommentNode]) -> Set[CommentId]:
    """
    Ids of comments whose parent chain loops back on itself.

    Every comment is visited once. A walk that reaches a comment already on
    its own path has closed a loop.
    """
    state: Dict[CommentId, int] = {}
    cyclic: Set[CommentId] = set()
    for start in nodes:
        path: List[CommentId] = []
        current: Optional[CommentId] = start
        while current is not None and current in nodes and current not in state:
            state[current] = _ON_PATH
            path.append(current)
            current = nodes[current].comment.parent_id
        if current is not None and state.get(current) == _ON_PATH:
            cyclic.update(path[path.index(current):])
        for comment_id in path:
            state[comment_id] = _DONE
    return cyclic
