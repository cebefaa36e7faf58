"""Tests for comment threading."""

from datetime import datetime, timedelta, timezone

from quillpost.comments import build_comment_forest
from quillpost.models.comment import Comment

T0 = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _comment(cid, parent=None, minutes=0, author=None) -> Comment:
    return Comment(
        id=cid,
        parent_id=parent,
        author_id=author,
        body=f"comment {cid}",
        created_at=T0 + timedelta(minutes=minutes),
    )


def _ids(nodes):
    return [n.id for n in nodes]


class TestBuildCommentForest:

    def test_orphan_promoted_and_ordering(self):
        comments = [
            _comment(1, None, 1),
            _comment(2, 1, 2),
            _comment(3, 1, 3),
            _comment(4, 99, 4),
        ]
        forest = build_comment_forest(comments)

        assert _ids(forest) == [4, 1]
        assert _ids(forest[1].replies) == [2, 3]
        assert forest[0].replies == []

    def test_input_order_irrelevant(self):
        comments = [_comment(3, 1, 3), _comment(2, 1, 2), _comment(1, None, 1)]
        forest = build_comment_forest(comments)
        assert _ids(forest) == [1]
        assert _ids(forest[0].replies) == [2, 3]

    def test_nested_replies_oldest_first(self):
        comments = [
            _comment("a", None, 0),
            _comment("b", "a", 1),
            _comment("d", "b", 5),
            _comment("c", "b", 2),
        ]
        forest = build_comment_forest(comments)
        assert _ids(forest[0].replies[0].replies) == ["c", "d"]

    def test_owner_replies_flagged(self):
        comments = [
            _comment(1, None, 0, author="owner"),
            _comment(2, 1, 1, author="owner"),
            _comment(3, 1, 2, author="reader"),
        ]
        forest = build_comment_forest(comments, owner_id="owner")

        assert forest[0].is_owner_reply is False
        assert [r.is_owner_reply for r in forest[0].replies] == [True, False]

    def test_no_owner_no_flags(self):
        forest = build_comment_forest([_comment(1), _comment(2, 1, 1, author="x")])
        assert forest[0].replies[0].is_owner_reply is False

    def test_cycle_does_not_lose_comments(self):
        comments = [_comment(1, 2, 0), _comment(2, 1, 1), _comment(3, None, 2)]
        forest = build_comment_forest(comments)

        assert _ids(forest) == [3, 2, 1]

    def test_chain_into_cycle_keeps_its_parent(self):
        comments = [_comment(1, 2, 0), _comment(2, 1, 1), _comment(4, 1, 3), _comment(5, 4, 4)]
        forest = build_comment_forest(comments)

        assert _ids(forest) == [2, 1]
        assert _ids(forest[1].replies) == [4]
        assert _ids(forest[1].replies[0].replies) == [5]

    def test_self_parent(self):
        forest = build_comment_forest([_comment(1, 1, 0)])
        assert _ids(forest) == [1]
        assert forest[0].replies == []

    def test_deep_chain(self):
        depth = 5000
        comments = [_comment(i, i - 1 if i else None, i) for i in range(depth)]
        forest = build_comment_forest(reversed(comments))

        assert _ids(forest) == [0]
        node, seen = forest[0], 1
        while node.replies:
            node = node.replies[0]
            seen += 1
        assert seen == depth

    def test_empty(self):
        assert build_comment_forest([]) == []
