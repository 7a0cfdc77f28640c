"""Tests for Tree and Blob views."""

from __future__ import annotations

import io
from typing import BinaryIO

import pytest

from dataset_tree._errors import NotFound, ReadOnlyViolation
from dataset_tree._path import AbsPath, RelPath
from dataset_tree._tree import Blob, Tree, as_node, copy_tree, open_as, show_tree
from dataset_tree.drivers._embedded import EmbeddedRoot
from dataset_tree.drivers._filesystem import FileSystemRoot


def _sample_tree(writable: bool = False) -> Tree:
    return Tree(EmbeddedRoot({"a": {"b": {"c": b"hi"}, "x.txt": b"xx"}, "top.bin": b"\x00\x01"}, writable=writable))


class _VanishingRoot(EmbeddedRoot):
    """Lists a child that no longer exists by the time it is looked up."""

    def list_children(self, path: RelPath) -> list[str]:
        return [*super().list_children(path), "ghost"]


class TestIndexing:
    """tree[path] returns only things that exist."""

    def test_directory_is_tree(self) -> None:
        node = _sample_tree()["a"]
        assert isinstance(node, Tree)
        assert node.path == RelPath("a")

    def test_file_is_blob(self) -> None:
        node = _sample_tree()["a/b/c"]
        assert isinstance(node, Blob)

    def test_nested_indexing_matches_path_indexing(self) -> None:
        tree = _sample_tree()
        assert tree["a"]["b"]["c"] == tree["a/b/c"]

    def test_blob_name_is_last_component(self) -> None:
        tree = _sample_tree()
        for path in ["a/b/c", "a/x.txt", "top.bin"]:
            assert tree[path].name == RelPath(path).basename()

    def test_missing_raises_not_found(self) -> None:
        with pytest.raises(NotFound) as exc_info:
            _sample_tree()["a/nope"]
        assert exc_info.value.path == "a/nope"
        assert exc_info.value.driver == "embedded"

    def test_get_returns_default(self) -> None:
        assert _sample_tree().get("nope") is None
        assert _sample_tree().get("nope", 42) == 42

    def test_contains(self) -> None:
        tree = _sample_tree()
        assert "a/b" in tree
        assert "a/q" not in tree
        assert 3 not in tree

    @pytest.mark.parametrize("key", ["a//b", "/a", "../a", "a/.", "a\0"])
    def test_contains_malformed_key_is_false(self, key: str) -> None:
        assert key not in _sample_tree()

    def test_joinpath_is_only_a_key(self) -> None:
        p = _sample_tree().joinpath("does", "not", "exist")
        assert isinstance(p, AbsPath)
        assert p.exists() is False

    def test_truediv(self) -> None:
        tree = _sample_tree()
        assert tree / "a" == AbsPath(tree.root, "a")


class TestIteration:
    """Children are listed lazily and re-queried on each pass."""

    def test_names(self) -> None:
        assert sorted(_sample_tree().names()) == ["a", "top.bin"]

    def test_iter_yields_nodes(self) -> None:
        kinds = {node.name: type(node) for node in _sample_tree()}
        assert kinds == {"a": Tree, "top.bin": Blob}

    def test_children_is_restartable(self) -> None:
        tree = _sample_tree(writable=True)
        children = tree.children()
        first = sorted(n.name for n in children)
        tree.new_file("later.txt", b"!")
        second = sorted(n.name for n in children)
        assert first == ["a", "top.bin"]
        assert second == ["a", "later.txt", "top.bin"]

    def test_vanished_children_are_skipped(self) -> None:
        tree = Tree(_VanishingRoot({"f": b"1"}))
        assert [n.name for n in tree] == ["f"]


class TestBlobOpen:
    """A blob can be presented as a stream, bytes, str or itself."""

    def test_open_stream(self) -> None:
        blob = _sample_tree()["a/b/c"]
        with blob.open(BinaryIO) as stream:
            assert stream.read() == b"hi"

    def test_open_bytes_and_str(self) -> None:
        blob = _sample_tree()["a/b/c"]
        with blob.open(bytes) as data:
            assert data == b"hi"
        with blob.open(str) as text:
            assert text == "hi"

    def test_open_as_itself(self) -> None:
        blob = _sample_tree()["a/b/c"]
        with blob.open(Blob) as same:
            assert same is blob

    def test_read_helpers(self) -> None:
        blob = _sample_tree()["a/x.txt"]
        assert blob.read() == b"xx"
        assert blob.read_text() == "xx"
        assert blob.size == 2

    def test_unsupported_kind(self) -> None:
        with pytest.raises(TypeError), _sample_tree()["a/b/c"].open(int):
            pass

    def test_write_needs_stream_kind(self) -> None:
        with pytest.raises(TypeError), _sample_tree(writable=True)["a/b/c"].open(bytes, write=True):
            pass

    def test_write_on_read_only_root(self) -> None:
        with pytest.raises(ReadOnlyViolation):
            _sample_tree()["a/b/c"].write(b"new")

    def test_write(self) -> None:
        tree = _sample_tree(writable=True)
        tree["a/b/c"].write(b"new")
        assert tree["a/b/c"].read() == b"new"


class TestTreeMutation:
    def test_new_file_creates_parents(self) -> None:
        tree = Tree(EmbeddedRoot({}, writable=True))
        blob = tree.new_file("a/b/c", b"hi")
        assert blob.read() == b"hi"
        assert isinstance(tree["a/b"], Tree)

    def test_new_file_with_writer(self) -> None:
        tree = Tree(EmbeddedRoot({}, writable=True))
        tree.new_file("f", lambda stream: stream.write(b"from writer"))
        assert tree["f"].read() == b"from writer"

    def test_new_dir_overwrite(self) -> None:
        tree = Tree(EmbeddedRoot({"d": {"old": b"1"}}, writable=True))
        tree.new_dir("d", overwrite=True)
        assert tree["d"].names() == []

    def test_new_dir_keeps_content_without_overwrite(self) -> None:
        tree = Tree(EmbeddedRoot({"d": {"old": b"1"}}, writable=True))
        tree.new_dir("d")
        assert tree["d"].names() == ["old"]

    def test_mkdir_and_delete(self) -> None:
        tree = Tree(EmbeddedRoot({}, writable=True))
        tree.mkdir("d")
        assert "d" in tree
        tree.delete("d")
        assert "d" not in tree

    def test_mutation_on_read_only_root(self) -> None:
        with pytest.raises(ReadOnlyViolation):
            _sample_tree().mkdir("new")


class TestOpenAs:
    def test_none_passes_storage_through(self) -> None:
        root = EmbeddedRoot({})
        with open_as(root) as value:
            assert value is root

    def test_root_becomes_tree_or_blob(self) -> None:
        assert isinstance(as_node(EmbeddedRoot({})), Tree)
        assert isinstance(as_node(EmbeddedRoot(b"x")), Blob)

    def test_tree_as_tree(self) -> None:
        tree = _sample_tree()
        with open_as(tree, Tree) as value:
            assert value is tree

    def test_tree_as_bytes_is_an_error(self) -> None:
        with pytest.raises(TypeError), open_as(_sample_tree(), bytes):
            pass

    def test_blob_as_str(self) -> None:
        with open_as(EmbeddedRoot(b"text"), str) as value:
            assert value == "text"


class TestCopyTree:
    def test_copy_between_backends(self, tmp_path: object) -> None:
        src = _sample_tree()
        dst = Tree(FileSystemRoot(str(tmp_path), writable=True))
        copy_tree(dst, src)
        assert dst["a/b/c"].read() == b"hi"
        assert dst["top.bin"].read() == b"\x00\x01"

    def test_streams_large_blobs(self) -> None:
        payload = bytes(range(256)) * 4096
        src = Tree(EmbeddedRoot({"big": payload}))
        dst = Tree(EmbeddedRoot({}, writable=True))
        copy_tree(dst, src)
        assert dst["big"].read() == payload

    def test_partial_copy_left_in_place(self) -> None:
        class _FailingRoot(EmbeddedRoot):
            def open_read(self, path: RelPath) -> io.BytesIO:
                if path.name == "top.bin":
                    raise OSError("unreadable")
                return super().open_read(path)  # type: ignore[return-value]

        src = Tree(_FailingRoot({"a": {"f": b"1"}, "top.bin": b"2"}))
        dst = Tree(EmbeddedRoot({}, writable=True))
        with pytest.raises(OSError, match="unreadable"):
            copy_tree(dst, src)
        assert dst["a/f"].read() == b"1"


class TestShowTree:
    def test_renders_sorted_listing(self) -> None:
        text = show_tree(_sample_tree())
        lines = text.splitlines()
        assert lines[1] == "├──📂 a"
        assert "└── top.bin" in lines
        assert any(line.endswith(" c") for line in lines)

    def test_depth_limit(self) -> None:
        text = show_tree(_sample_tree(), max_depth=1)
        assert "⋮" in text
        assert "x.txt" not in text
