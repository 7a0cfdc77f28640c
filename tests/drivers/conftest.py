"""Driver test fixtures -- parameterized for conformance testing."""

from __future__ import annotations

import zipfile
from typing import TYPE_CHECKING, Any

import pytest

from dataset_tree._tree import Tree
from dataset_tree.drivers._archive import ArchiveRoot
from dataset_tree.drivers._embedded import EmbeddedRoot
from dataset_tree.drivers._filesystem import FileSystemRoot

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

SAMPLE: dict[str, Any] = {
    "a": {"b": {"c": b"hi"}, "d.csv": b"x,y\n1,2\n"},
    "empty": {},
    "top.txt": b"top level",
}


def _populate_dir(path: Path, content: dict[str, Any]) -> None:
    for name, child in content.items():
        if isinstance(child, dict):
            (path / name).mkdir()
            _populate_dir(path / name, child)
        else:
            (path / name).write_bytes(child)


def _populate_zip(archive: zipfile.ZipFile, content: dict[str, Any], prefix: str = "") -> None:
    for name, child in content.items():
        if isinstance(child, dict):
            if not child:
                archive.writestr(f"{prefix}{name}/", b"")
            _populate_zip(archive, child, f"{prefix}{name}/")
        else:
            archive.writestr(f"{prefix}{name}", child)


def _copy(content: dict[str, Any]) -> dict[str, Any]:
    return {k: _copy(v) if isinstance(v, dict) else v for k, v in content.items()}


@pytest.fixture
def sample() -> dict[str, Any]:
    """The nested content every ``tree`` fixture holds."""
    return _copy(SAMPLE)


@pytest.fixture
def sample_zip(tmp_path: Path) -> Path:
    """A zip archive holding SAMPLE; only the empty directory has its own entry."""
    path = tmp_path / "sample.zip"
    with zipfile.ZipFile(path, "w") as archive:
        _populate_zip(archive, SAMPLE)
    return path


@pytest.fixture
def sample_dir(tmp_path: Path) -> Path:
    path = tmp_path / "sample"
    path.mkdir()
    _populate_dir(path, SAMPLE)
    return path


@pytest.fixture(params=["filesystem", "embedded", "archive"])
def tree(request: pytest.FixtureRequest, tmp_path: Path) -> Iterator[Tree]:
    """A read-only tree holding SAMPLE, on each built-in driver. Add new drivers here."""
    if request.param == "filesystem":
        path = tmp_path / "fs"
        path.mkdir()
        _populate_dir(path, SAMPLE)
        yield Tree(FileSystemRoot(path))
    elif request.param == "embedded":
        yield Tree(EmbeddedRoot(_copy(SAMPLE)))
    elif request.param == "archive":
        path = tmp_path / "sample.zip"
        with zipfile.ZipFile(path, "w") as archive:
            _populate_zip(archive, SAMPLE)
        with ArchiveRoot(path) as root:
            yield Tree(root)


@pytest.fixture(params=["filesystem", "embedded"])
def writable_tree(request: pytest.FixtureRequest, tmp_path: Path) -> Tree:
    """An empty writable tree on each driver that supports mutation."""
    if request.param == "filesystem":
        return Tree(FileSystemRoot(tmp_path, writable=True))
    return Tree(EmbeddedRoot({}, writable=True))
