"""
Slug Allocator — Derive URL slugs from titles and enforce uniqueness.

Slugs are lowercase ASCII, hyphen-separated:

    generate_slug("My Cool Post!!")   → "my-cool-post"
    generate_slug("  Déjà Vu  ")      → "dj-vu"     (non-ASCII is dropped)

Uniqueness is case-insensitive across all posts. A taken slug is a
``ConflictError``; the allocator never appends a disambiguating suffix.
There is no lock between the check and the insert, so the database's unique
index on ``lower(slug)`` is what finally rejects a racing duplicate.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Optional

from ..errors import ConflictError, ValidationError

if TYPE_CHECKING:
    from ..persistence.base import PostRepository

logger = logging.getLogger(__name__)

_DISALLOWED = re.compile(r"[^a-z0-9_\s-]")
_SEPARATORS = re.compile(r"[\s_-]+")
_EDGE_HYPHENS = re.compile(r"^-+|-+$")


def generate_slug(title: str) -> str:
    """Lowercase, strip non ``[a-z0-9_\\s-]``, collapse separators to ``-``."""
    slug = (title or "").lower().strip()
    slug = _DISALLOWED.sub("", slug)
    slug = _SEPARATORS.sub("-", slug)
    return _EDGE_HYPHENS.sub("", slug)


class SlugAllocator:
    """Checks candidate slugs against existing posts."""

    def __init__(self, repository: "PostRepository"):
        self.repository = repository

    async def ensure_available(self, slug: str, exclude_id: Optional[str] = None) -> str:
        """
        Verify no other post uses ``slug`` (case-insensitive).

        Args:
            slug: Candidate slug
            exclude_id: The post being updated, which may keep its own slug

        Returns:
            The slug, unchanged

        Raises:
            ValidationError: If the slug is empty
            ConflictError: If another post already has it
        """
        if not slug:
            raise ValidationError("URL slug is required", field="slug")

        existing_id = await self.repository.find_post_id_by_slug(slug, exclude_id=exclude_id)
        if existing_id is not None:
            logger.info(f"Slug conflict: '{slug}' is used by post {existing_id}")
            raise ConflictError(
                f'A post with the slug "{slug}" already exists',
                details={"slug": slug, "existing_id": existing_id},
            )
        return slug
