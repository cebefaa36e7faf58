"""
Publish State Machine — draft / published / archived.

Any state may move to any other. Only *entering* (or remaining in)
``published`` is guarded:

- the content must have at least one non-empty node
- a ``published_at`` must be resolvable (explicit, kept from before, or
  defaulted to the commit time)

Leaving ``published`` has no guard.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from ..content.traversal import has_meaningful_content
from ..content.tree import Node
from ..errors import ValidationError
from ..models.post import POST_STATUSES, PostStatus

logger = logging.getLogger(__name__)


def resolve_transition(
    current: Optional[PostStatus],
    target: PostStatus,
    content: Node,
    published_at: Optional[datetime],
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """
    Validate a status change and decide the ``published_at`` to store.

    Args:
        current: Existing status, or None for a new post
        target: Requested status
        content: The content tree being saved
        published_at: Requested (or previously stored) publish time
        now: Commit time (defaults to the current UTC time)

    Returns:
        The ``published_at`` to persist

    Raises:
        ValidationError: If ``target`` is unknown, or publishing empty content
    """
    if target not in POST_STATUSES:
        raise ValidationError(
            f"Unknown status: {target}",
            field="status",
            details={"valid_statuses": list(POST_STATUSES)},
        )

    if target != "published":
        return published_at

    if not has_meaningful_content(content):
        raise ValidationError(
            "Published posts must have content. Please add some content "
            "before publishing, or save as draft first.",
            field="content",
        )

    if published_at is None:
        published_at = now or datetime.now(timezone.utc)
        logger.debug(f"Defaulting published_at to commit time {published_at.isoformat()}")

    if current != "published":
        logger.info(f"Status transition: {current or 'new'} → published")
    return published_at
