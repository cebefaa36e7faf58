"""
Post Models — Pydantic schemas for blog posts and their taxonomy.

``PostDraft`` is what the authoring side submits on save; ``BlogPost`` is the
persisted record read back from the database. ``reading_time`` exists only
on ``BlogPost``: it is derived from content, never submitted.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..content.tree import Node, empty_doc, parse_tree
from ..errors import ValidationError

PostStatus = Literal["draft", "published", "archived"]
POST_STATUSES = ("draft", "published", "archived")

MediaKind = Literal["featured", "inline"]

SortField = Literal["published_at", "views_count", "created_at"]


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class PostDraft(BaseModel):
    """Post fields as submitted by the editor."""

    title: str = ""
    slug: str = ""
    excerpt: Optional[str] = None
    content: Node = Field(default_factory=empty_doc)
    featured_image_url: Optional[str] = None
    featured_image_alt: Optional[str] = None
    status: PostStatus = "draft"
    category_id: Optional[str] = None
    tag_ids: List[str] = Field(default_factory=list)
    published_at: Optional[datetime] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    meta_keywords: Optional[List[str]] = None
    og_image_url: Optional[str] = None

    @field_validator("title", "slug", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator(
        "excerpt",
        "featured_image_url",
        "featured_image_alt",
        "category_id",
        "meta_title",
        "meta_description",
        "og_image_url",
        "published_at",
        mode="before",
    )
    @classmethod
    def _optional(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("content", mode="before")
    @classmethod
    def _content(cls, value: Any) -> Any:
        if value is None:
            return empty_doc()
        return parse_tree(value)

    @field_validator("meta_keywords", mode="before")
    @classmethod
    def _keywords(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.split(",")
        if value is None:
            return None
        keywords = [k.strip() for k in value if isinstance(k, str) and k.strip()]
        return keywords or None

    @field_serializer("content")
    def _dump_content(self, content: Node) -> Dict[str, Any]:
        return content.to_dict()

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "PostDraft":
        """
        Build a draft from request JSON.

        Raises:
            ValidationError: With the first offending field named
        """
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            errors = e.errors()
            first = errors[0] if errors else {"loc": (), "msg": "invalid"}
            field = ".".join(str(p) for p in first["loc"]) or None
            raise ValidationError(
                first["msg"],
                field=field,
                details={"errors": [
                    {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
                    for err in errors
                ]},
            ) from e


class BlogPost(BaseModel):
    """A persisted blog post."""

    id: str
    title: str
    slug: str
    excerpt: Optional[str] = None
    content: Node = Field(default_factory=empty_doc)
    featured_image_url: Optional[str] = None
    featured_image_alt: Optional[str] = None
    status: PostStatus = "draft"
    author_id: Optional[str] = None
    category_id: Optional[str] = None
    tag_ids: List[str] = Field(default_factory=list)
    published_at: Optional[datetime] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    meta_keywords: Optional[List[str]] = None
    og_image_url: Optional[str] = None
    reading_time: int = 1
    views_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("content", mode="before")
    @classmethod
    def _content(cls, value: Any) -> Any:
        if value is None:
            return empty_doc()
        return parse_tree(value)

    @field_serializer("content")
    def _dump_content(self, content: Node) -> Dict[str, Any]:
        return content.to_dict()

    @classmethod
    def from_row(cls, row: Dict[str, Any], tag_ids: Optional[List[str]] = None) -> "BlogPost":
        """Build from a ``blog_posts`` row (plus its tag ids from the join table)."""
        data = dict(row)
        data["id"] = str(data["id"])
        if tag_ids is not None:
            data["tag_ids"] = [str(t) for t in tag_ids]
        return cls.model_validate(data)


class Category(BaseModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Tag(BaseModel):
    id: str
    name: str
    slug: str
    created_at: Optional[datetime] = None


class ListFilters(BaseModel):
    """Filters for listing posts; defaults match the public blog index."""

    status: Optional[PostStatus] = "published"
    category_id: Optional[str] = None
    tag_id: Optional[str] = None
    search: Optional[str] = None
    limit: int = Field(default=10, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
    sort_by: SortField = "published_at"
    sort_order: Literal["asc", "desc"] = "desc"


class PostPage(BaseModel):
    """One page of a post listing."""

    posts: List[BlogPost]
    total: int
    limit: int
    offset: int
