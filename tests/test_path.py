"""Tests for RelPath and AbsPath."""

from __future__ import annotations

import pytest

from dataset_tree._errors import InvalidPath
from dataset_tree._path import AbsPath, RelPath, as_relpath
from dataset_tree.drivers._embedded import EmbeddedRoot


class TestRelPathConstruction:
    """Literals are split on separators; explicit components are checked."""

    def test_split_literal(self) -> None:
        assert RelPath("a/b/c").parts == ("a", "b", "c")

    def test_backslash_is_a_separator(self) -> None:
        assert RelPath("a\\b").parts == ("a", "b")

    def test_empty_literal_is_empty_path(self) -> None:
        assert RelPath("").parts == ()
        assert RelPath().is_empty()

    def test_explicit_components(self) -> None:
        assert RelPath(["a", "b"]).parts == ("a", "b")

    def test_copy_constructor(self) -> None:
        p = RelPath("a/b")
        assert RelPath(p) == p

    @pytest.mark.parametrize("raw", ["a//b", "/a", "a/"])
    def test_empty_component_in_literal_rejected(self, raw: str) -> None:
        with pytest.raises(InvalidPath):
            RelPath(raw)

    @pytest.mark.parametrize("component", ["a/b", "a\\b", ""])
    def test_bad_explicit_component_rejected(self, component: str) -> None:
        with pytest.raises(InvalidPath):
            RelPath(["x", component])

    @pytest.mark.parametrize("raw", ["..", "../x", "a/../b", "a/..", ".", "./a", "a/./b", "a\0b", "a/b\0"])
    def test_dot_and_null_segments_in_literal_rejected(self, raw: str) -> None:
        with pytest.raises(InvalidPath):
            RelPath(raw)

    @pytest.mark.parametrize("component", ["..", ".", "a\0"])
    def test_dot_and_null_explicit_components_rejected(self, component: str) -> None:
        with pytest.raises(InvalidPath):
            RelPath(["x", component])

    def test_joinpath_rejects_parent_segment(self) -> None:
        with pytest.raises(InvalidPath):
            RelPath("a").joinpath("..")
        with pytest.raises(InvalidPath):
            RelPath("a") / "."

    def test_dots_inside_names_allowed(self) -> None:
        assert RelPath("a/..b/.hidden/c..").parts == ("a", "..b", ".hidden", "c..")

    def test_non_string_component_rejected(self) -> None:
        with pytest.raises(InvalidPath):
            RelPath(["x", 1])  # type: ignore[list-item]

    def test_as_relpath(self) -> None:
        p = RelPath("a")
        assert as_relpath(p) is p
        assert as_relpath("a/b") == RelPath(["a", "b"])


class TestRelPathOperations:
    """Pure operations over component sequences."""

    def test_basename_and_dirname(self) -> None:
        p = RelPath("a/b/c")
        assert p.basename() == "c"
        assert p.dirname() == RelPath("a/b")

    def test_parent_of_empty_is_empty(self) -> None:
        assert RelPath().parent == RelPath()
        assert RelPath().name == ""

    def test_joinpath_strings_are_single_components(self) -> None:
        assert RelPath("a").joinpath("b", "c") == RelPath("a/b/c")

    def test_joinpath_rejects_separator_in_string(self) -> None:
        with pytest.raises(InvalidPath):
            RelPath("a").joinpath("b/c")

    def test_joinpath_relpath_appends_components(self) -> None:
        assert RelPath("a").joinpath(RelPath("b/c")) == RelPath("a/b/c")

    def test_joinpath_is_associative(self) -> None:
        a, b, c = RelPath("a"), RelPath("b/x"), RelPath("c")
        assert a.joinpath(b).joinpath(c) == a.joinpath(b.joinpath(c))

    def test_truediv(self) -> None:
        assert RelPath("a") / "b" == RelPath("a/b")

    def test_startswith(self) -> None:
        assert RelPath("a/b/c").startswith(RelPath("a/b"))
        assert RelPath("a/b").startswith(RelPath())
        assert not RelPath("a/bc").startswith(RelPath("a/b"))

    def test_ordering_is_component_wise(self) -> None:
        paths = [RelPath("b"), RelPath("a/b"), RelPath("a"), RelPath("a/a")]
        assert sorted(paths) == [RelPath("a"), RelPath("a/a"), RelPath("a/b"), RelPath("b")]

    def test_component_order_differs_from_string_order(self) -> None:
        # "a-b" < "a/b" as strings, but ("a", "b") < ("a-b",) as components
        assert RelPath("a/b") < RelPath("a-b")

    def test_equality_and_hash(self) -> None:
        assert RelPath("a/b") == RelPath(["a", "b"])
        assert hash(RelPath("a/b")) == hash(RelPath(["a", "b"]))
        assert RelPath("a") != "a"

    def test_len_iter_bool_str(self) -> None:
        p = RelPath("a/b")
        assert len(p) == 2
        assert list(p) == ["a", "b"]
        assert bool(p)
        assert not RelPath()
        assert str(p) == "a/b"
        assert repr(p) == "RelPath('a/b')"

    def test_immutable(self) -> None:
        p = RelPath("a")
        with pytest.raises(AttributeError, match="immutable"):
            p.x = 1  # type: ignore[attr-defined]


class TestAbsPath:
    """AbsPath qualifies a RelPath with its root."""

    def test_existence_is_not_implied(self) -> None:
        root = EmbeddedRoot({})
        p = AbsPath(root, "missing")
        assert p.exists() is False
        assert p.is_dir() is False

    def test_queries_go_to_root(self) -> None:
        root = EmbeddedRoot({"d": {"f": b"x"}})
        assert AbsPath(root, "d").is_dir()
        assert AbsPath(root, "d/f").is_file()

    def test_joinpath(self) -> None:
        root = EmbeddedRoot({})
        assert AbsPath(root, "a") / "b" == AbsPath(root, "a/b")

    def test_equality_requires_same_root(self) -> None:
        assert AbsPath(EmbeddedRoot({}), "a") != AbsPath(EmbeddedRoot({}), "a")

    def test_open_reads(self) -> None:
        root = EmbeddedRoot({"f": b"hello"})
        with AbsPath(root, "f").open() as stream:
            assert stream.read() == b"hello"

    def test_mkdir_and_write(self) -> None:
        root = EmbeddedRoot({}, writable=True)
        tree = AbsPath(root, "d").mkdir()
        with tree.joinpath("f").open(write=True) as stream:
            stream.write(b"data")
        assert root.data == {"d": {"f": b"data"}}

    def test_immutable(self) -> None:
        p = AbsPath(EmbeddedRoot({}), "a")
        with pytest.raises(AttributeError, match="immutable"):
            p.x = 1  # type: ignore[attr-defined]
