"""
Reading Time — Word-count based duration estimate for a post.

The value is derived, never authored: it is recomputed from the content
tree on every save.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from ..errors import ContentError
from .traversal import extract_text
from .tree import Node, parse_tree

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 200


def count_words(tree: Node) -> int:
    """Count whitespace-separated words across all text leaves."""
    # Join with a space so words in adjacent leaves never merge
    joined = " ".join(extract_text(tree))
    return len([word for word in joined.split() if word])


def estimate_reading_time(tree: Any) -> int:
    """
    Estimate reading time in whole minutes (never less than 1).

    Args:
        tree: A Node, or raw JSON for one. ``None``, empty, or malformed
            content is treated as empty.

    Returns:
        ceil(words / 200), with a floor of 1
    """
    if tree is None:
        return 1

    try:
        node = parse_tree(tree)
    except ContentError as e:
        logger.warning(f"Reading time: malformed content, defaulting to 1 minute ({e})")
        return 1

    words = count_words(node)
    return max(1, math.ceil(words / WORDS_PER_MINUTE))
