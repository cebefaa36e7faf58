"""
Comment Models — Flat comment rows and the threaded view built from them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel

CommentId = Union[int, str]


class Comment(BaseModel):
    """A comment row as stored (replies point at their parent by id)."""

    id: CommentId
    parent_id: Optional[CommentId] = None
    author_id: Optional[str] = None
    author_name: str = ""
    body: str = ""
    created_at: datetime


@dataclass
class CommentNode:
    """A comment with its replies, ready for rendering."""

    comment: Comment
    replies: List["CommentNode"] = field(default_factory=list)
    is_owner_reply: bool = False

    @property
    def id(self) -> CommentId:
        return self.comment.id
