"""
Taxonomy Service — Categories and tags.

Both are slugged from their names with the same rules as posts, and slugs
are unique per table. Creating a category with a taken slug is a conflict;
tags are create-or-get, so a taken tag slug just returns the existing tag.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from ..errors import ConflictError, ValidationError
from ..models.post import Category, Tag
from ..persistence.base import PostRepository
from .slug import generate_slug

logger = logging.getLogger(__name__)

_KEEP = object()


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


class TaxonomyService:
    """Category and tag management on top of a repository."""

    def __init__(self, repository: PostRepository):
        self.repository = repository

    # ── Categories ───────────────────────────────────────────

    async def _category_slug(self, name: str, exclude_id: Optional[str] = None) -> str:
        slug = generate_slug(name)
        if not slug:
            raise ValidationError("Category name must contain letters or digits", field="name")
        existing = await self.repository.find_category_id_by_slug(slug, exclude_id=exclude_id)
        if existing is not None:
            raise ConflictError(
                f'A category with the slug "{slug}" already exists',
                details={"slug": slug, "existing_id": existing},
            )
        return slug

    async def create_category(self, name: str, description: Optional[str] = None) -> Category:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Category name is required", field="name")

        slug = await self._category_slug(name)
        row = await self.repository.insert_category({
            "name": name,
            "slug": slug,
            "description": _clean(description),
        })
        logger.info(f"Created category '{name}' ({slug})")
        return Category.model_validate({**row, "id": str(row["id"])})

    async def update_category(
        self,
        category_id: str,
        name: Optional[str] = None,
        description=_KEEP,
    ) -> Category:
        """
        Rename and/or re-describe a category.

        A rename regenerates the slug. Passing ``description=None`` clears it;
        omitting it leaves it unchanged.
        """
        changes: Dict[str, Optional[str]] = {}
        if name and name.strip():
            changes["name"] = name.strip()
            changes["slug"] = await self._category_slug(name, exclude_id=category_id)
        if description is not _KEEP:
            changes["description"] = _clean(description)

        row = await self.repository.update_category(category_id, changes)
        return Category.model_validate({**row, "id": str(row["id"])})

    async def list_categories(self) -> List[Category]:
        rows = await self.repository.list_categories()
        return [Category.model_validate({**r, "id": str(r["id"])}) for r in rows]

    async def delete_category(self, category_id: str) -> None:
        """Delete a category. Posts in it are kept and become uncategorised."""
        await self.repository.delete_category(category_id)
        logger.info(f"Deleted category {category_id}")

    # ── Tags ─────────────────────────────────────────────────

    async def create_or_get_tags(self, names: Iterable[str]) -> List[Tag]:
        """
        Resolve tag names to tags, creating the ones that do not exist.

        Blank names are skipped; names that slug the same collapse to the
        first. Order follows ``names``.
        """
        wanted: Dict[str, str] = {}
        for name in names:
            name = (name or "").strip()
            slug = generate_slug(name)
            if slug and slug not in wanted:
                wanted[slug] = name

        if not wanted:
            return []

        existing = {
            row["slug"].lower(): row
            for row in await self.repository.get_tags_by_slugs(list(wanted))
        }
        missing = [
            {"name": name, "slug": slug}
            for slug, name in wanted.items()
            if slug not in existing
        ]
        if missing:
            created = await self.repository.insert_tags(missing)
            existing.update({row["slug"].lower(): row for row in created})
            logger.info(f"Created {len(created)} tag(s): {', '.join(r['slug'] for r in created)}")

        return [
            Tag.model_validate({**existing[slug], "id": str(existing[slug]["id"])})
            for slug in wanted
        ]

    async def update_tag(self, tag_id: str, name: str) -> Tag:
        """Rename a tag; the slug is regenerated and must stay unique."""
        name = (name or "").strip()
        slug = generate_slug(name)
        if not slug:
            raise ValidationError("Tag name must contain letters or digits", field="name")
        existing = await self.repository.find_tag_id_by_slug(slug, exclude_id=tag_id)
        if existing is not None:
            raise ConflictError(
                f'A tag with the slug "{slug}" already exists',
                details={"slug": slug, "existing_id": existing},
            )
        row = await self.repository.update_tag(tag_id, {"name": name, "slug": slug})
        return Tag.model_validate({**row, "id": str(row["id"])})

    async def delete_tag(self, tag_id: str) -> None:
        await self.repository.delete_tag(tag_id)
        logger.info(f"Deleted tag {tag_id}")

    async def search_tags(self, query: str, limit: int = 10) -> List[Tag]:
        """Tags whose name contains ``query``, for autocomplete. Blank queries match nothing."""
        query = (query or "").strip()
        if not query:
            return []
        rows = await self.repository.search_tags(query, limit=limit)
        return [Tag.model_validate({**r, "id": str(r["id"])}) for r in rows]

    async def list_tags(self) -> List[Tag]:
        rows = await self.repository.list_tags()
        return [Tag.model_validate({**r, "id": str(r["id"])}) for r in rows]
