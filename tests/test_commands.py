"""
Tests for editor commands.

Tests cover:
- Each command as a pure (tree, command) -> tree function
- Path addressing and errors
- Folding a command history
"""

import pytest

from quillpost.content.commands import (
    InsertImage,
    InsertNode,
    RemoveNode,
    ReplaceNode,
    SetContent,
    SetImageAttrs,
    SetText,
    apply_command,
    fold_commands,
    get_node,
)
from quillpost.content.traversal import extract_media_refs, extract_text
from quillpost.content.tree import doc, empty_doc, heading, image, paragraph, text
from quillpost.errors import ContentError

URL = "https://cdn.example.com/blog-images/2026/01/p/inline-1.webp"
STAGED = "data:image/png;base64,QUFB"


class TestCommands:

    def test_set_text_on_first_paragraph(self):
        tree = apply_command(empty_doc(), SetText(path=(0,), text="Hello"))
        assert extract_text(tree) == ["Hello"]

    def test_set_text_to_empty_clears_runs(self):
        tree = doc(paragraph(text("old")))
        tree = apply_command(tree, SetText(path=(0,), text=""))
        assert tree.children[0].children == ()

    def test_set_text_on_leaf_rejected(self):
        tree = doc(paragraph(text("x")))
        with pytest.raises(ContentError):
            apply_command(tree, SetText(path=(0, 0), text="y"))

    def test_insert_node(self):
        tree = apply_command(empty_doc(), InsertNode(path=(0,), node=heading(1, text("T"))))
        assert [c.type for c in tree.children] == ["heading", "paragraph"]

    def test_insert_nested(self):
        tree = doc(paragraph(text("a")))
        tree = apply_command(tree, InsertNode(path=(0, 1), node=text("b")))
        assert extract_text(tree) == ["a", "b"]

    def test_insert_out_of_range(self):
        with pytest.raises(ContentError):
            apply_command(empty_doc(), InsertNode(path=(5,), node=paragraph()))

    def test_insert_at_root_path_rejected(self):
        with pytest.raises(ContentError):
            apply_command(empty_doc(), InsertNode(path=(), node=paragraph()))

    def test_remove_node(self):
        tree = doc(paragraph(text("a")), paragraph(text("b")))
        tree = apply_command(tree, RemoveNode(path=(0,)))
        assert extract_text(tree) == ["b"]

    def test_remove_missing_node(self):
        with pytest.raises(ContentError):
            apply_command(empty_doc(), RemoveNode(path=(3,)))

    def test_replace_node(self):
        tree = doc(paragraph(text("a")))
        tree = apply_command(tree, ReplaceNode(path=(0,), node=heading(2, text("H"))))
        assert tree.children[0].type == "heading"

    def test_set_content(self):
        new = doc(paragraph(text("loaded")))
        assert apply_command(empty_doc(), SetContent(tree=new)) is new

    def test_insert_image_appends_trailing_paragraph(self):
        tree = apply_command(empty_doc(), InsertImage(src=STAGED, alt="pic"))
        assert [c.type for c in tree.children] == ["paragraph", "image", "paragraph"]
        assert tree.children[1].attrs["alt"] == "pic"

    def test_insert_image_at_index(self):
        tree = doc(paragraph(text("a")), paragraph(text("b")))
        tree = apply_command(tree, InsertImage(src=URL, index=1))
        assert [c.type for c in tree.children] == ["paragraph", "image", "paragraph"]
        assert extract_text(tree) == ["a", "b"]

    def test_set_image_attrs(self):
        tree = doc(image(URL, alt="a", width=100))
        tree = apply_command(tree, SetImageAttrs(path=(0,), width=300, height=200))
        assert tree.children[0].attrs == {"src": URL, "alt": "a", "width": 300, "height": 200}

    def test_set_image_attrs_on_paragraph_rejected(self):
        with pytest.raises(ContentError):
            apply_command(empty_doc(), SetImageAttrs(path=(0,), alt="x"))

    def test_unknown_command(self):
        with pytest.raises(TypeError):
            apply_command(empty_doc(), object())

    def test_commands_do_not_mutate_input(self):
        original = empty_doc()
        apply_command(original, SetText(path=(0,), text="changed"))
        assert original == empty_doc()


class TestFold:

    def test_fold_applies_in_order(self):
        tree = fold_commands(empty_doc(), [
            SetText(path=(0,), text="Hello"),
            InsertNode(path=(1,), node=paragraph(text("World"))),
            InsertImage(src=STAGED),
        ])
        assert extract_text(tree) == ["Hello", "World"]
        assert extract_media_refs(tree) == [STAGED]

    def test_fold_empty_history(self):
        tree = empty_doc()
        assert fold_commands(tree, []) is tree

    def test_get_node(self):
        tree = doc(paragraph(text("a"), text("b")))
        assert get_node(tree, (0, 1)).text == "b"
