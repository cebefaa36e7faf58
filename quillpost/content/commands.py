"""
Editor Commands — Pure edits over the content tree.

Every edit is a value; applying it is a pure function
``apply_command(tree, command) -> tree'``. The "current document" held by an
authoring session is simply the fold of all commands over the starting tree,
so undo is just dropping the last command and re-folding.

Nodes are addressed by a *path*: the child indices from the root, e.g.
``(2, 0)`` is the first child of the root's third child.

## Usage

    from quillpost.content.commands import InsertNode, SetText, fold_commands

    tree = fold_commands(empty_doc(), [
        SetText(path=(0,), text="Hello"),
        InsertNode(path=(1,), node=paragraph(text("World"))),
    ])
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import reduce
from typing import Callable, Dict, Iterable, Optional, Tuple, Type, Union

from ..errors import ContentError
from .tree import Node, image, paragraph, text

Path = Tuple[int, ...]


@dataclass(frozen=True)
class SetContent:
    """Replace the whole document (e.g. loading a saved post)."""

    tree: Node


@dataclass(frozen=True)
class InsertNode:
    """Insert ``node`` so that it ends up at ``path``."""

    path: Path
    node: Node


@dataclass(frozen=True)
class RemoveNode:
    path: Path


@dataclass(frozen=True)
class ReplaceNode:
    path: Path
    node: Node


@dataclass(frozen=True)
class SetText:
    """Replace the text of the block at ``path`` with a single plain run."""

    path: Path
    text: str


@dataclass(frozen=True)
class InsertImage:
    """
    Insert an image block.

    ``src`` is normally a staged data URI from the upload button, or an
    existing storage URL picked from the gallery. Appended at the end of the
    document when ``index`` is None.
    """

    src: str
    alt: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    index: Optional[int] = None


@dataclass(frozen=True)
class SetImageAttrs:
    """Resize or re-caption the image at ``path``."""

    path: Path
    alt: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


Command = Union[
    SetContent, InsertNode, RemoveNode, ReplaceNode, SetText, InsertImage, SetImageAttrs
]


# ── Path helpers ─────────────────────────────────────────────


def _check_path(path: Path) -> None:
    if not path:
        raise ContentError("Path must address a node below the root", field="path")


def get_node(tree: Node, path: Path) -> Node:
    """Return the node at ``path``."""
    node = tree
    for depth, index in enumerate(path):
        children = node.children
        if not 0 <= index < len(children):
            raise ContentError(
                f"No node at {path!r}",
                field="path",
                details={"depth": depth, "index": index},
            )
        node = children[index]
    return node


def _update_at(tree: Node, parent_path: Path, change: Callable[[list], None]) -> Node:
    """Rebuild the spine from the root to ``parent_path`` with its children changed."""
    if not parent_path:
        if not tree.is_container:
            raise ContentError(f"'{tree.type}' nodes cannot have children", field="path")
        children = list(tree.children)
        change(children)
        return tree.with_content(children)

    head, rest = parent_path[0], parent_path[1:]
    children = list(tree.children)
    if not 0 <= head < len(children):
        raise ContentError(f"No node at index {head}", field="path")
    children[head] = _update_at(children[head], rest, change)
    return tree.with_content(children)


# ── Command handlers ─────────────────────────────────────────


def _set_content(tree: Node, cmd: SetContent) -> Node:
    return cmd.tree


def _insert_node(tree: Node, cmd: InsertNode) -> Node:
    _check_path(cmd.path)
    index = cmd.path[-1]

    def change(children: list) -> None:
        if not 0 <= index <= len(children):
            raise ContentError(f"Cannot insert at {cmd.path!r}", field="path")
        children.insert(index, cmd.node)

    return _update_at(tree, cmd.path[:-1], change)


def _remove_node(tree: Node, cmd: RemoveNode) -> Node:
    _check_path(cmd.path)
    get_node(tree, cmd.path)
    return _update_at(tree, cmd.path[:-1], lambda children: children.pop(cmd.path[-1]))


def _replace_node(tree: Node, cmd: ReplaceNode) -> Node:
    _check_path(cmd.path)
    get_node(tree, cmd.path)

    def change(children: list) -> None:
        children[cmd.path[-1]] = cmd.node

    return _update_at(tree, cmd.path[:-1], change)


def _set_text(tree: Node, cmd: SetText) -> Node:
    target = get_node(tree, cmd.path)
    if not target.is_container:
        raise ContentError(f"Cannot set text on '{target.type}'", field="path")
    runs = (text(cmd.text),) if cmd.text else ()
    return _replace_node(tree, ReplaceNode(path=cmd.path, node=target.with_content(runs)))


def _insert_image(tree: Node, cmd: InsertImage) -> Node:
    index = len(tree.children) if cmd.index is None else cmd.index
    node = image(cmd.src, alt=cmd.alt, width=cmd.width, height=cmd.height)
    tree = _insert_node(tree, InsertNode(path=(index,), node=node))
    # Keep a trailing paragraph so the cursor has somewhere to go
    if index == len(tree.children) - 1:
        tree = tree.with_content(tree.children + (paragraph(),))
    return tree


def _set_image_attrs(tree: Node, cmd: SetImageAttrs) -> Node:
    target = get_node(tree, cmd.path)
    if target.type != "image":
        raise ContentError(f"Node at {cmd.path!r} is not an image", field="path")
    changes = {
        key: value
        for key, value in (("alt", cmd.alt), ("width", cmd.width), ("height", cmd.height))
        if value is not None
    }
    return _replace_node(tree, ReplaceNode(path=cmd.path, node=target.with_attrs(**changes)))


_HANDLERS: Dict[Type, Callable[[Node, Command], Node]] = {
    SetContent: _set_content,
    InsertNode: _insert_node,
    RemoveNode: _remove_node,
    ReplaceNode: _replace_node,
    SetText: _set_text,
    InsertImage: _insert_image,
    SetImageAttrs: _set_image_attrs,
}


def apply_command(tree: Node, command: Command) -> Node:
    """Apply one edit, returning a new tree."""
    handler = _HANDLERS.get(type(command))
    if handler is None:
        raise TypeError(f"Unknown editor command: {type(command).__name__}")
    return handler(tree, command)


def fold_commands(tree: Node, commands: Iterable[Command]) -> Node:
    """Apply a sequence of edits in order."""
    return reduce(apply_command, commands, tree)
