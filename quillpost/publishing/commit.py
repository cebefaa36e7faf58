"""
Commit Protocol — Upload staged images and rewrite the post to point at them.

Runs once per save, before anything is written to the database:

1. Collect staged references from the content tree and the featured image
   field (duplicates collapse to one upload). A reference used as the
   featured image is compressed with the featured policy.
2. Upload all of them concurrently. Each upload is independent: one
   failing does not cancel the others.
3. Map staged → resolved for the uploads that succeeded.
4. Rewrite image nodes and the featured field through that map. Failed
   references stay staged in the document so the author can retry.
5. Return only once every upload has settled.

A tree with no staged references performs zero uploads, so committing the
output of a previous commit is a no-op.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..content.traversal import extract_media_refs, rewrite_media_refs
from ..content.tree import Node
from ..errors import UploadError
from ..media.staging import is_staged
from ..media.upload import UploadService

logger = logging.getLogger(__name__)


@dataclass
class CommitResult:
    """Outcome of a commit: the rewritten post fields and what failed."""

    content: Node
    featured_image_url: Optional[str]
    resolved: Dict[str, str] = field(default_factory=dict)
    failures: List[UploadError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def uploaded_count(self) -> int:
        return len(self.resolved)


def collect_staged(content: Node, featured_image_url: Optional[str]) -> List[Tuple[str, str]]:
    """
    Distinct staged references with their media kind, in discovery order.

    The featured image comes first; inline references follow in document
    order.
    """
    pending: Dict[str, str] = {}
    if is_staged(featured_image_url):
        pending[featured_image_url] = "featured"
    for ref in extract_media_refs(content):
        if is_staged(ref) and ref not in pending:
            pending[ref] = "inline"
    return list(pending.items())


class CommitProtocol:
    """Fans staged uploads out and joins them before persistence."""

    def __init__(self, uploader: UploadService):
        self.uploader = uploader

    async def commit(
        self,
        content: Node,
        featured_image_url: Optional[str],
        slug: str,
    ) -> CommitResult:
        """
        Resolve every staged reference for a post.

        Args:
            content: Content tree as edited
            featured_image_url: Featured image (staged, resolved, or None)
            slug: Post slug, used in the storage paths

        Returns:
            CommitResult with the rewritten tree and featured URL
        """
        pending = collect_staged(content, featured_image_url)
        if not pending:
            return CommitResult(content=content, featured_image_url=featured_image_url)

        logger.info(f"Committing {len(pending)} staged image(s)", extra={"slug": slug})

        outcomes = await asyncio.gather(
            *(self.uploader.upload_staged(ref, slug, kind) for ref, kind in pending),
            return_exceptions=True,
        )

        resolved: Dict[str, str] = {}
        failures: List[UploadError] = []
        for (ref, kind), outcome in zip(pending, outcomes):
            if isinstance(outcome, UploadError):
                failures.append(outcome)
                logger.warning(f"{outcome} (left staged)", extra={"slug": slug, "media_kind": kind})
            elif isinstance(outcome, Exception):
                logger.exception(
                    f"Unexpected error uploading {kind} image",
                    exc_info=outcome,
                    extra={"slug": slug, "media_kind": kind},
                )
                failures.append(UploadError(kind, str(outcome)))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                resolved[ref] = outcome

        new_content = rewrite_media_refs(content, resolved) if resolved else content
        new_featured = resolved.get(featured_image_url, featured_image_url) if featured_image_url else None

        logger.info(
            f"Commit finished: {len(resolved)} uploaded, {len(failures)} failed",
            extra={"slug": slug},
        )
        return CommitResult(
            content=new_content,
            featured_image_url=new_featured,
            resolved=resolved,
            failures=failures,
        )
