"""
Content Tree — Recursive rich-text document model.

The editor produces (and the database stores) a TipTap/ProseMirror style JSON
tree. Every node is a tagged variant keyed by ``type``:

    {
        "type": "doc",
        "content": [
            {"type": "heading", "attrs": {"level": 2},
             "content": [{"type": "text", "text": "Hello"}]},
            {"type": "paragraph", "content": [
                {"type": "text", "text": "Read ", "marks": [{"type": "bold"}]},
                {"type": "text", "text": "this",
                 "marks": [{"type": "link", "attrs": {"href": "https://x.dev"}}]}
            ]},
            {"type": "image", "attrs": {"src": "data:image/png;base64,iVBO...",
                                        "alt": "Diagram", "width": 640, "height": 480}}
        ]
    }

Rules enforced on parse:
- ``content`` only on container types
- ``text`` / ``marks`` only on ``text`` leaves
- ``image.attrs.src`` is either a staged (``data:image/``) or resolved
  (``http(s)://``) reference
- ``heading.attrs.level`` is 1..3

Nodes are frozen. Edits build new trees (see ``commands.py``).

## Usage

    from quillpost.content.tree import parse_tree, doc, paragraph, text

    tree = parse_tree(json.loads(raw))
    tree = doc(paragraph(text("Hello world")))
    payload = tree.to_dict()
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Literal, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from ..errors import ContentError
from ..media.staging import is_resolved, is_staged

NodeType = Literal[
    "doc",
    "paragraph",
    "heading",
    "bulletList",
    "orderedList",
    "listItem",
    "blockquote",
    "codeBlock",
    "image",
    "text",
    "youtube",
]

MarkType = Literal["bold", "italic", "underline", "link"]

CONTAINER_TYPES = frozenset({
    "doc",
    "paragraph",
    "heading",
    "bulletList",
    "orderedList",
    "listItem",
    "blockquote",
    "codeBlock",
})
LEAF_TYPES = frozenset({"image", "text", "youtube"})
NODE_TYPES = CONTAINER_TYPES | LEAF_TYPES

HEADING_LEVELS = (1, 2, 3)


class Mark(BaseModel):
    """Inline formatting on a text leaf."""

    model_config = ConfigDict(frozen=True)

    type: MarkType
    attrs: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def _check_link(self) -> "Mark":
        if self.type == "link":
            href = (self.attrs or {}).get("href")
            if not isinstance(href, str) or not href:
                raise ValueError("link mark requires attrs.href")
        return self

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type}
        if self.attrs:
            data["attrs"] = dict(self.attrs)
        return data


class Node(BaseModel):
    """A single content tree node (container or leaf)."""

    model_config = ConfigDict(frozen=True)

    type: NodeType
    attrs: Dict[str, Any] = Field(default_factory=dict)
    content: Optional[Tuple["Node", ...]] = None
    text: Optional[str] = None
    marks: Optional[Tuple[Mark, ...]] = None

    @field_validator("attrs", mode="before")
    @classmethod
    def _attrs_default(cls, value: Any) -> Any:
        # TipTap emits "attrs": null on some nodes
        return {} if value is None else value

    @field_validator("attrs")
    @classmethod
    def _attrs_are_scalars(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        for key, item in value.items():
            if item is not None and not isinstance(item, (str, int, float, bool)):
                raise ValueError(f"attrs.{key} must be a scalar")
        return value

    @field_validator("marks")
    @classmethod
    def _marks_are_a_set(cls, value: Optional[Tuple[Mark, ...]]) -> Optional[Tuple[Mark, ...]]:
        if value is None:
            return value
        seen = set()
        unique = []
        for mark in value:
            if mark.type not in seen:
                seen.add(mark.type)
                unique.append(mark)
        return tuple(unique)

    @model_validator(mode="after")
    def _check_shape(self) -> "Node":
        if self.type not in CONTAINER_TYPES and self.content is not None:
            raise ValueError(f"'{self.type}' nodes cannot have content")
        if self.type != "text" and (self.text is not None or self.marks is not None):
            raise ValueError(f"'{self.type}' nodes cannot have text or marks")
        if self.type == "text" and self.text is None:
            raise ValueError("text nodes require text")

        if self.type == "heading":
            level = self.attrs.get("level", 1)
            if level not in HEADING_LEVELS:
                raise ValueError(f"heading level must be 1..3, got {level!r}")
        elif self.type == "image":
            src = self.attrs.get("src")
            if not isinstance(src, str) or not (is_staged(src) or is_resolved(src)):
                raise ValueError("image src must be a staged data URI or an absolute URL")
        elif self.type == "youtube":
            if not isinstance(self.attrs.get("src"), str):
                raise ValueError("youtube nodes require attrs.src")
        return self

    @property
    def is_container(self) -> bool:
        return self.type in CONTAINER_TYPES

    @property
    def children(self) -> Tuple["Node", ...]:
        return self.content or ()

    def with_content(self, content: Iterable["Node"]) -> "Node":
        """Return a copy of this container with new children."""
        return self.model_copy(update={"content": tuple(content)})

    def with_attrs(self, **changes: Any) -> "Node":
        """Return a copy of this node with some attrs replaced."""
        return self.model_copy(update={"attrs": {**self.attrs, **changes}})

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the persisted JSON shape."""
        data: Dict[str, Any] = {"type": self.type}
        if self.attrs:
            data["attrs"] = dict(self.attrs)
        if self.content is not None:
            data["content"] = [child.to_dict() for child in self.content]
        if self.text is not None:
            data["text"] = self.text
        if self.marks:
            data["marks"] = [mark.to_dict() for mark in self.marks]
        return data


Node.model_rebuild()


def parse_tree(data: Any) -> Node:
    """
    Validate raw JSON into a content tree.

    Args:
        data: Parsed JSON (dict) or an existing Node

    Returns:
        The root Node

    Raises:
        ContentError: If the JSON violates the content tree rules
    """
    if isinstance(data, Node):
        return data
    if not isinstance(data, Mapping):
        raise ContentError(
            "Content must be a JSON object",
            field="content",
            details={"received": type(data).__name__},
        )
    try:
        return Node.model_validate(data)
    except PydanticValidationError as e:
        raise ContentError(
            "Invalid content tree",
            field="content",
            details={"errors": [
                {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
                for err in e.errors()
            ]},
        ) from e


# ── Constructors ─────────────────────────────────────────────


def doc(*children: Node) -> Node:
    return Node(type="doc", content=children)


def paragraph(*children: Node) -> Node:
    return Node(type="paragraph", content=children)


def heading(level: int, *children: Node) -> Node:
    return Node(type="heading", attrs={"level": level}, content=children)


def bullet_list(*items: Node) -> Node:
    return Node(type="bulletList", content=items)


def ordered_list(*items: Node) -> Node:
    return Node(type="orderedList", attrs={"start": 1}, content=items)


def list_item(*children: Node) -> Node:
    return Node(type="listItem", content=children)


def blockquote(*children: Node) -> Node:
    return Node(type="blockquote", content=children)


def code_block(code: str, language: Optional[str] = None) -> Node:
    children = (text(code),) if code else ()
    return Node(type="codeBlock", attrs={"language": language}, content=children)


def text(value: str, *marks: str, href: Optional[str] = None) -> Node:
    """Build a text leaf; pass mark names, and ``href`` for a link mark."""
    built = [Mark(type=m) for m in marks if m != "link"]
    if href is not None:
        built.append(Mark(type="link", attrs={"href": href}))
    return Node(type="text", text=value, marks=tuple(built) or None)


def image(
    src: str,
    alt: Optional[str] = None,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> Node:
    return Node(
        type="image",
        attrs={"src": src, "alt": alt, "width": width, "height": height},
    )


def youtube(src: str) -> Node:
    return Node(type="youtube", attrs={"src": src})


def empty_doc() -> Node:
    """The document the editor starts from: one empty paragraph."""
    return doc(paragraph())
