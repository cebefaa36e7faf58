"""
Memory Repository — In-process tables for local runs and tests.

Mirrors the database's behaviour where callers depend on it:
- case-insensitive unique slugs (``ConflictError`` on violation)
- join rows removed with their post
- published listings hide posts scheduled in the future
"""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import uuid4

from ..errors import ConflictError, NotFoundError
from ..models.post import ListFilters
from .base import PostRepository, Row

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class MemoryRepository(PostRepository):
    """Dict-backed repository."""

    def __init__(self):
        self.posts: Dict[str, Row] = {}
        self.post_tags: List[Tuple[str, str]] = []
        self.categories: Dict[str, Row] = {}
        self.tags: Dict[str, Row] = {}

    # ── Helpers ──────────────────────────────────────────────

    @staticmethod
    def _find_by_slug(
        table: Dict[str, Row], slug: str, exclude_id: Optional[str] = None,
    ) -> Optional[str]:
        wanted = slug.lower()
        for row_id, row in table.items():
            if row_id != exclude_id and str(row.get("slug", "")).lower() == wanted:
                return row_id
        return None

    def _check_unique(self, table: Dict[str, Row], name: str, slug: str, row_id: Optional[str]) -> None:
        if self._find_by_slug(table, slug, exclude_id=row_id) is not None:
            raise ConflictError(
                f'duplicate key value violates unique constraint "{name}_slug_key"',
                details={"slug": slug, "code": "23505"},
            )

    def _with_tags(self, row: Row) -> Row:
        out = copy.deepcopy(row)
        out["tag_ids"] = [tag for post, tag in self.post_tags if post == row["id"]]
        return out

    @staticmethod
    def _is_live(row: Row, now: datetime) -> bool:
        published_at = _as_datetime(row.get("published_at"))
        return (
            row.get("status") == "published"
            and published_at is not None
            and published_at <= now
        )

    # ── Posts ────────────────────────────────────────────────

    async def find_post_id_by_slug(
        self, slug: str, exclude_id: Optional[str] = None,
    ) -> Optional[str]:
        return self._find_by_slug(self.posts, slug, exclude_id)

    async def insert_post(self, row: Row) -> Row:
        self._check_unique(self.posts, "blog_posts", row["slug"], None)
        now = _now_iso()
        stored = {
            "views_count": 0,
            **copy.deepcopy(row),
            "id": str(uuid4()),
            "created_at": now,
            "updated_at": now,
        }
        self.posts[stored["id"]] = stored
        logger.debug(f"[memory] inserted post {stored['id']}")
        return self._with_tags(stored)

    async def update_post(self, post_id: str, row: Row) -> Row:
        if post_id not in self.posts:
            raise NotFoundError(f"Post {post_id} not found", details={"id": post_id})
        if "slug" in row:
            self._check_unique(self.posts, "blog_posts", row["slug"], post_id)
        stored = self.posts[post_id]
        stored.update(copy.deepcopy(row))
        stored["updated_at"] = _now_iso()
        return self._with_tags(stored)

    async def delete_post(self, post_id: str) -> None:
        if self.posts.pop(post_id, None) is None:
            raise NotFoundError(f"Post {post_id} not found", details={"id": post_id})
        self.post_tags = [(p, t) for p, t in self.post_tags if p != post_id]

    async def get_post(self, post_id: str, include_drafts: bool = True) -> Optional[Row]:
        row = self.posts.get(post_id)
        if row is None:
            return None
        if not include_drafts and row.get("status") != "published":
            return None
        return self._with_tags(row)

    async def get_post_by_slug(self, slug: str) -> Optional[Row]:
        now = datetime.now(timezone.utc)
        post_id = self._find_by_slug(self.posts, slug)
        if post_id is None or not self._is_live(self.posts[post_id], now):
            return None
        return self._with_tags(self.posts[post_id])

    async def list_posts(self, filters: ListFilters) -> Tuple[List[Row], int]:
        now = datetime.now(timezone.utc)
        rows = list(self.posts.values())

        if filters.status:
            rows = [r for r in rows if r.get("status") == filters.status]
        if filters.status == "published":
            rows = [r for r in rows if self._is_live(r, now)]
        if filters.category_id:
            rows = [r for r in rows if r.get("category_id") == filters.category_id]
        if filters.tag_id:
            tagged = {p for p, t in self.post_tags if t == filters.tag_id}
            rows = [r for r in rows if r["id"] in tagged]
        if filters.search:
            term = filters.search.lower()
            rows = [
                r for r in rows
                if term in (r.get("title") or "").lower()
                or term in (r.get("excerpt") or "").lower()
            ]

        def sort_key(row: Row):
            value = row.get(filters.sort_by)
            if filters.sort_by != "views_count":
                value = _as_datetime(value)
            return value

        # Nulls last in either direction
        present = [r for r in rows if r.get(filters.sort_by) is not None]
        missing = [r for r in rows if r.get(filters.sort_by) is None]
        present.sort(key=sort_key, reverse=filters.sort_order == "desc")
        rows = present + missing

        total = len(rows)
        page = rows[filters.offset:filters.offset + filters.limit]
        return [self._with_tags(r) for r in page], total

    async def replace_post_tags(self, post_id: str, tag_ids: Sequence[str]) -> None:
        self.post_tags = [(p, t) for p, t in self.post_tags if p != post_id]
        for tag_id in dict.fromkeys(tag_ids):
            self.post_tags.append((post_id, tag_id))

    async def increment_views(self, post_id: str) -> None:
        if post_id in self.posts:
            self.posts[post_id]["views_count"] = self.posts[post_id].get("views_count", 0) + 1

    # ── Categories ───────────────────────────────────────────

    async def find_category_id_by_slug(
        self, slug: str, exclude_id: Optional[str] = None,
    ) -> Optional[str]:
        return self._find_by_slug(self.categories, slug, exclude_id)

    async def insert_category(self, row: Row) -> Row:
        self._check_unique(self.categories, "blog_categories", row["slug"], None)
        now = _now_iso()
        stored = {**copy.deepcopy(row), "id": str(uuid4()), "created_at": now, "updated_at": now}
        self.categories[stored["id"]] = stored
        return copy.deepcopy(stored)

    async def update_category(self, category_id: str, row: Row) -> Row:
        if category_id not in self.categories:
            raise NotFoundError(f"Category {category_id} not found", details={"id": category_id})
        if "slug" in row:
            self._check_unique(self.categories, "blog_categories", row["slug"], category_id)
        stored = self.categories[category_id]
        stored.update(copy.deepcopy(row))
        stored["updated_at"] = _now_iso()
        return copy.deepcopy(stored)

    async def list_categories(self) -> List[Row]:
        return sorted((copy.deepcopy(r) for r in self.categories.values()), key=lambda r: r["name"])

    async def delete_category(self, category_id: str) -> None:
        if self.categories.pop(category_id, None) is None:
            raise NotFoundError(f"Category {category_id} not found", details={"id": category_id})
        for post in self.posts.values():
            if post.get("category_id") == category_id:
                post["category_id"] = None

    # ── Tags ─────────────────────────────────────────────────

    async def get_tags_by_slugs(self, slugs: Sequence[str]) -> List[Row]:
        wanted = {s.lower() for s in slugs}
        return [copy.deepcopy(r) for r in self.tags.values() if r["slug"].lower() in wanted]

    async def insert_tags(self, rows: Sequence[Row]) -> List[Row]:
        for row in rows:
            self._check_unique(self.tags, "blog_tags", row["slug"], None)
        stored_rows = []
        for row in rows:
            stored = {**copy.deepcopy(row), "id": str(uuid4()), "created_at": _now_iso()}
            self.tags[stored["id"]] = stored
            stored_rows.append(copy.deepcopy(stored))
        return stored_rows

    async def find_tag_id_by_slug(
        self, slug: str, exclude_id: Optional[str] = None,
    ) -> Optional[str]:
        return self._find_by_slug(self.tags, slug, exclude_id)

    async def update_tag(self, tag_id: str, row: Row) -> Row:
        if tag_id not in self.tags:
            raise NotFoundError(f"Tag {tag_id} not found", details={"id": tag_id})
        if "slug" in row:
            self._check_unique(self.tags, "blog_tags", row["slug"], tag_id)
        self.tags[tag_id].update(copy.deepcopy(row))
        return copy.deepcopy(self.tags[tag_id])

    async def delete_tag(self, tag_id: str) -> None:
        if self.tags.pop(tag_id, None) is None:
            raise NotFoundError(f"Tag {tag_id} not found", details={"id": tag_id})
        self.post_tags = [(p, t) for p, t in self.post_tags if t != tag_id]

    async def search_tags(self, query: str, limit: int = 10) -> List[Row]:
        term = query.lower()
        matches = [r for r in self.tags.values() if term in r["name"].lower()]
        matches.sort(key=lambda r: r["name"])
        return [copy.deepcopy(r) for r in matches[:limit]]

    async def list_tags(self) -> List[Row]:
        return sorted((copy.deepcopy(r) for r in self.tags.values()), key=lambda r: r["name"])
