"""
Authoring Session — In-memory editor state for one post.

Holds the post's fields while an author edits them. The document is the
fold of the session's command history over its starting tree; nothing here
touches the network. Images the author adds are staged as data URIs, so an
abandoned session leaves nothing behind in storage.

Slug auto-derivation: until the author edits the slug directly, it follows
the title. After ``set_slug`` it stays as typed for the rest of the session.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from ..media.staging import alt_text_from_filename, encode_file_as_staged_reference
from ..models.post import BlogPost, PostDraft, PostStatus
from ..publishing.slug import generate_slug
from .commands import Command, InsertImage, SetContent, fold_commands
from .tree import Node, empty_doc


class AuthoringSession:
    """Editor state for creating a new post or editing an existing one."""

    def __init__(self, post: Optional[BlogPost] = None):
        self.post_id: Optional[str] = post.id if post else None
        self.title = post.title if post else ""
        self.slug = post.slug if post else ""
        # An existing post keeps its published slug unless edited explicitly
        self.slug_manually_edited = post is not None
        self.excerpt = (post.excerpt or "") if post else ""
        self.status: PostStatus = post.status if post else "draft"
        self.category_id = post.category_id if post else None
        self.tag_ids: List[str] = list(post.tag_ids) if post else []
        self.featured_image_url = post.featured_image_url if post else None
        self.featured_image_alt = post.featured_image_alt if post else None
        self.published_at: Optional[datetime] = post.published_at if post else None

        self._base: Node = post.content if post else empty_doc()
        self._history: List[Command] = []
        self._tree = self._base

    # ── Title / slug ─────────────────────────────────────────

    def set_title(self, title: str) -> None:
        self.title = title
        if not self.slug_manually_edited:
            self.slug = generate_slug(title)

    def set_slug(self, slug: str) -> None:
        """Edit the slug directly; stops auto-derivation for this session."""
        self.slug = generate_slug(slug)
        self.slug_manually_edited = True

    # ── Document ─────────────────────────────────────────────

    @property
    def tree(self) -> Node:
        return self._tree

    def apply(self, command: Command) -> Node:
        """Apply an edit and return the new document."""
        self._tree = fold_commands(self._tree, [command])
        self._history.append(command)
        return self._tree

    def undo(self) -> Node:
        """Drop the last edit and rebuild the document from history."""
        if self._history:
            self._history.pop()
            self._tree = fold_commands(self._base, self._history)
        return self._tree

    def load(self, tree: Node) -> Node:
        return self.apply(SetContent(tree=tree))

    # ── Images ───────────────────────────────────────────────

    def insert_image(
        self,
        source: Union[Path, str, bytes],
        filename: Optional[str] = None,
        mime_type: Optional[str] = None,
        index: Optional[int] = None,
    ) -> str:
        """
        Stage an image and insert it into the document.

        Returns:
            The staged reference placed in the image node
        """
        ref = encode_file_as_staged_reference(source, mime_type)
        name = filename or (Path(source).name if not isinstance(source, bytes) else "")
        self.apply(InsertImage(src=ref, alt=alt_text_from_filename(name) or None, index=index))
        return ref

    def set_featured_image(
        self,
        source: Union[Path, str, bytes],
        filename: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> str:
        """Stage an image as the featured image; alt text comes from the filename."""
        ref = encode_file_as_staged_reference(source, mime_type)
        name = filename or (Path(source).name if not isinstance(source, bytes) else "")
        self.featured_image_url = ref
        self.featured_image_alt = alt_text_from_filename(name) or None
        return ref

    def clear_featured_image(self) -> None:
        self.featured_image_url = None
        self.featured_image_alt = None

    # ── Output ───────────────────────────────────────────────

    def to_draft(self) -> PostDraft:
        """Snapshot the session as a draft ready for ``PostService.save``."""
        return PostDraft(
            title=self.title,
            slug=self.slug,
            excerpt=self.excerpt,
            content=self._tree,
            featured_image_url=self.featured_image_url,
            featured_image_alt=self.featured_image_alt,
            status=self.status,
            category_id=self.category_id,
            tag_ids=self.tag_ids,
            published_at=self.published_at,
        )
