"""
Repository Base Class — Interface for the blog's row storage.

Repositories move plain rows (dicts shaped like the database tables) in
and out. Validation, slug checks and reading time live in the services
above them.

Tables:
- ``blog_posts`` (post rows; ``tag_ids`` is added on read)
- ``blog_post_tags`` (post ↔ tag join rows)
- ``blog_categories``
- ``blog_tags``

Every implementation must enforce case-insensitive unique slugs per table
and report a violation as ``ConflictError``. Other failures are
``PersistenceError``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..models.post import ListFilters

Row = Dict[str, Any]


class PostRepository(ABC):
    """Abstract storage for posts, their tags, and the taxonomy tables."""

    # ── Posts ────────────────────────────────────────────────

    @abstractmethod
    async def find_post_id_by_slug(
        self, slug: str, exclude_id: Optional[str] = None,
    ) -> Optional[str]:
        """Id of the post using ``slug`` (case-insensitive), ignoring ``exclude_id``."""
        pass

    @abstractmethod
    async def insert_post(self, row: Row) -> Row:
        """Insert a post and return the stored row (with id and timestamps)."""
        pass

    @abstractmethod
    async def update_post(self, post_id: str, row: Row) -> Row:
        """
        Update a post and return the stored row.

        Raises:
            NotFoundError: If no post has ``post_id``
        """
        pass

    @abstractmethod
    async def delete_post(self, post_id: str) -> None:
        """
        Hard-delete a post and its tag join rows.

        Raises:
            NotFoundError: If no post has ``post_id``
        """
        pass

    @abstractmethod
    async def get_post(self, post_id: str, include_drafts: bool = True) -> Optional[Row]:
        """Fetch one post; without ``include_drafts`` only a published post matches."""
        pass

    @abstractmethod
    async def get_post_by_slug(self, slug: str) -> Optional[Row]:
        """Fetch a published, already-live post by slug."""
        pass

    @abstractmethod
    async def list_posts(self, filters: ListFilters) -> Tuple[List[Row], int]:
        """One page of posts plus the total matching count."""
        pass

    @abstractmethod
    async def replace_post_tags(self, post_id: str, tag_ids: Sequence[str]) -> None:
        """Delete the post's join rows, then insert one per tag id."""
        pass

    @abstractmethod
    async def increment_views(self, post_id: str) -> None:
        """Bump ``views_count`` by one."""
        pass

    # ── Categories ───────────────────────────────────────────

    @abstractmethod
    async def find_category_id_by_slug(
        self, slug: str, exclude_id: Optional[str] = None,
    ) -> Optional[str]:
        pass

    @abstractmethod
    async def insert_category(self, row: Row) -> Row:
        pass

    @abstractmethod
    async def update_category(self, category_id: str, row: Row) -> Row:
        pass

    @abstractmethod
    async def list_categories(self) -> List[Row]:
        pass

    @abstractmethod
    async def delete_category(self, category_id: str) -> None:
        """Delete a category; its posts keep existing with no category."""
        pass

    # ── Tags ─────────────────────────────────────────────────

    @abstractmethod
    async def get_tags_by_slugs(self, slugs: Sequence[str]) -> List[Row]:
        pass

    @abstractmethod
    async def insert_tags(self, rows: Sequence[Row]) -> List[Row]:
        pass

    @abstractmethod
    async def find_tag_id_by_slug(
        self, slug: str, exclude_id: Optional[str] = None,
    ) -> Optional[str]:
        pass

    @abstractmethod
    async def update_tag(self, tag_id: str, row: Row) -> Row:
        pass

    @abstractmethod
    async def delete_tag(self, tag_id: str) -> None:
        """Delete a tag and its post links."""
        pass

    @abstractmethod
    async def search_tags(self, query: str, limit: int = 10) -> List[Row]:
        """Tags whose name contains ``query`` (case-insensitive), by name."""
        pass

    @abstractmethod
    async def list_tags(self) -> List[Row]:
        pass
