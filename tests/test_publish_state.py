"""Tests for the publish state machine."""

from datetime import datetime, timezone

import pytest

from quillpost.content.tree import doc, empty_doc, image, paragraph, text
from quillpost.errors import ValidationError
from quillpost.publishing.state import resolve_transition

NOW = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)
EARLIER = datetime(2026, 5, 1, tzinfo=timezone.utc)
BODY = doc(paragraph(text("Words")))


class TestResolveTransition:

    @pytest.mark.parametrize("current", [None, "draft", "published", "archived"])
    @pytest.mark.parametrize("target", ["draft", "archived"])
    def test_non_published_targets_unguarded(self, current, target):
        assert resolve_transition(current, target, empty_doc(), None, now=NOW) is None

    def test_non_published_keeps_published_at(self):
        assert resolve_transition("published", "draft", empty_doc(), EARLIER, now=NOW) == EARLIER

    def test_publish_empty_content_rejected(self):
        with pytest.raises(ValidationError) as exc:
            resolve_transition("draft", "published", empty_doc(), None, now=NOW)
        assert exc.value.field == "content"

    def test_publish_whitespace_only_rejected(self):
        with pytest.raises(ValidationError):
            resolve_transition(None, "published", doc(paragraph(text("  "))), None, now=NOW)

    def test_same_content_as_draft_is_fine(self):
        assert resolve_transition(None, "draft", empty_doc(), None, now=NOW) is None

    def test_publish_defaults_published_at(self):
        assert resolve_transition("draft", "published", BODY, None, now=NOW) == NOW

    def test_publish_keeps_explicit_published_at(self):
        assert resolve_transition("draft", "published", BODY, EARLIER, now=NOW) == EARLIER

    def test_publish_image_only_post(self):
        tree = doc(image("https://cdn.example.com/blog-images/a.webp"))
        assert resolve_transition(None, "published", tree, None, now=NOW) == NOW

    def test_staying_published_still_guarded(self):
        with pytest.raises(ValidationError):
            resolve_transition("published", "published", empty_doc(), EARLIER, now=NOW)

    def test_unknown_status(self):
        with pytest.raises(ValidationError) as exc:
            resolve_transition("draft", "scheduled", BODY, None, now=NOW)
        assert exc.value.field == "status"

    def test_now_defaults_to_utc(self):
        published_at = resolve_transition(None, "published", BODY, None)
        assert published_at.tzinfo is not None
