"""
Post Service — The save pipeline and post reads.

Save runs these steps in order, and nothing is written until the last:

    validate title / slug / publish guard
      → commit staged images (concurrent, per-image failure isolation)
      → recompute reading time
      → check slug uniqueness
      → insert or update the post row
      → replace the post's tag join rows

Local validation runs before any upload so an invalid draft costs nothing
in storage. Uploaded objects are not removed if the final write fails.

## Usage

    service = PostService(repository, UploadService(storage))
    post = await service.save(session.to_draft())
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ..content.reading_time import estimate_reading_time
from ..errors import NotFoundError, QuillpostError, UploadError, ValidationError
from ..media.upload import UploadService
from ..models.post import BlogPost, ListFilters, PostDraft, PostPage
from ..persistence.base import PostRepository
from .commit import CommitProtocol, CommitResult
from .slug import SlugAllocator, generate_slug
from .state import resolve_transition

logger = logging.getLogger(__name__)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class SaveOutcome:
    """A saved post and the images that could not be uploaded."""

    post: BlogPost
    commit: CommitResult
    failures: List[UploadError] = field(default_factory=list)


class PostService:
    """Creates, updates, reads and deletes posts."""

    def __init__(
        self,
        repository: PostRepository,
        uploader: UploadService,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self.uploader = uploader
        self.commit_protocol = CommitProtocol(uploader)
        self.slugs = SlugAllocator(repository)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # ── Save ─────────────────────────────────────────────────

    async def save(self, draft: PostDraft, post_id: Optional[str] = None) -> BlogPost:
        """
        Save a draft as a new post, or over ``post_id``.

        Images that fail to upload stay staged in the saved content; use
        ``save_outcome`` to see which.

        Raises:
            ValidationError: Missing title/slug, or publishing empty content
            ConflictError: Slug already used by another post
            NotFoundError: ``post_id`` does not exist
            PersistenceError: The database write failed
        """
        return (await self.save_outcome(draft, post_id)).post

    async def save_outcome(self, draft: PostDraft, post_id: Optional[str] = None) -> SaveOutcome:
        """Same as ``save`` but also reports the commit result."""
        title = draft.title.strip()
        if not title:
            raise ValidationError("Please enter a title", field="title")

        # A submitted slug goes through the same rules as a derived one; it
        # also names the storage folder for the post's images
        slug = generate_slug(draft.slug) if draft.slug.strip() else generate_slug(title)
        if not slug:
            raise ValidationError("Please enter a URL slug", field="slug")

        current_status = None
        published_at = _utc(draft.published_at)
        if post_id is not None:
            existing = await self.repository.get_post(post_id, include_drafts=True)
            if existing is None:
                raise NotFoundError(f"Post {post_id} not found", details={"id": post_id})
            current_status = existing.get("status")
            if published_at is None and existing.get("published_at"):
                published_at = _utc(BlogPost.from_row(existing).published_at)

        published_at = resolve_transition(
            current_status, draft.status, draft.content, published_at, now=self.clock(),
        )

        log_extra = {"post_id": post_id, "slug": slug}
        logger.info(f"Saving post '{title}' as {draft.status}", extra=log_extra)

        commit = await self.commit_protocol.commit(draft.content, draft.featured_image_url, slug)
        if commit.failures:
            logger.warning(
                f"{len(commit.failures)} image(s) left staged after commit",
                extra=log_extra,
            )

        reading_time = estimate_reading_time(commit.content)

        await self.slugs.ensure_available(slug, exclude_id=post_id)

        row = self._build_row(draft, title, slug, commit, published_at, reading_time)
        if post_id is None:
            stored = await self.repository.insert_post(row)
            post_id = str(stored["id"])
            if draft.tag_ids:
                await self.repository.replace_post_tags(post_id, draft.tag_ids)
        else:
            stored = await self.repository.update_post(post_id, row)
            await self.repository.replace_post_tags(post_id, draft.tag_ids)

        post = BlogPost.from_row(stored, tag_ids=list(dict.fromkeys(draft.tag_ids)))
        logger.info(
            f"Saved post {post.id} ({post.status}, {post.reading_time} min read)",
            extra={"post_id": post.id, "slug": post.slug},
        )
        return SaveOutcome(post=post, commit=commit, failures=list(commit.failures))

    @staticmethod
    def _build_row(
        draft: PostDraft,
        title: str,
        slug: str,
        commit: CommitResult,
        published_at: Optional[datetime],
        reading_time: int,
    ) -> Dict[str, Any]:
        return {
            "title": title,
            "slug": slug,
            "excerpt": draft.excerpt,
            "content": commit.content.to_dict(),
            "featured_image_url": commit.featured_image_url,
            "featured_image_alt": draft.featured_image_alt,
            "status": draft.status,
            "category_id": draft.category_id,
            "published_at": _iso(published_at),
            "meta_title": draft.meta_title,
            "meta_description": draft.meta_description,
            "meta_keywords": draft.meta_keywords,
            "og_image_url": draft.og_image_url,
            "reading_time": reading_time,
        }

    # ── Reads / delete ───────────────────────────────────────

    async def get(self, post_id: str, include_drafts: bool = True) -> Optional[BlogPost]:
        row = await self.repository.get_post(post_id, include_drafts=include_drafts)
        return BlogPost.from_row(row) if row else None

    async def get_by_slug(self, slug: str, count_view: bool = True) -> Optional[BlogPost]:
        """Fetch a live published post; optionally count the view."""
        row = await self.repository.get_post_by_slug(slug)
        if row is None:
            return None
        post = BlogPost.from_row(row)
        if count_view:
            try:
                await self.repository.increment_views(post.id)
            except QuillpostError as e:
                # A lost view count never fails the read
                logger.warning(f"Failed to increment views: {e}", extra={"post_id": post.id})
        return post

    async def list(self, filters: Optional[ListFilters] = None) -> PostPage:
        filters = filters or ListFilters()
        rows, total = await self.repository.list_posts(filters)
        return PostPage(
            posts=[BlogPost.from_row(r) for r in rows],
            total=total,
            limit=filters.limit,
            offset=filters.offset,
        )

    async def related(self, post_id: str, limit: int = 3) -> List[BlogPost]:
        """
        Live published posts in the same category, newest first.

        Related posts are decoration: a failed lookup is logged and yields
        an empty list rather than failing the page.

        Raises:
            NotFoundError: ``post_id`` does not exist
        """
        if limit < 1:
            raise ValidationError("limit must be at least 1", field="limit")

        row = await self.repository.get_post(post_id, include_drafts=True)
        if row is None:
            raise NotFoundError(f"Post {post_id} not found", details={"id": post_id})
        if not row.get("category_id"):
            return []

        # One extra row in case the post itself is among the results
        filters = ListFilters(category_id=row["category_id"], limit=min(limit + 1, 100))
        try:
            rows, _ = await self.repository.list_posts(filters)
        except QuillpostError as e:
            logger.warning(f"Failed to load related posts: {e}", extra={"post_id": post_id})
            return []
        return [BlogPost.from_row(r) for r in rows if str(r["id"]) != post_id][:limit]

    async def delete(self, post_id: str) -> None:
        """Hard-delete a post. Its stored images are left in the bucket."""
        await self.repository.delete_post(post_id)
        logger.info(f"Deleted post {post_id}", extra={"post_id": post_id})
