"""Archive driver — read-only trees over zip files."""

from __future__ import annotations

import logging
import os
import zipfile
from contextlib import contextmanager
from dataclasses import dataclass
from typing import IO, TYPE_CHECKING, Any, BinaryIO, Optional, Union

from dataset_tree._capabilities import READ_ONLY_CAPABILITIES, Capability, CapabilitySet
from dataset_tree._errors import InvalidConfiguration, NotFound
from dataset_tree._path import RelPath
from dataset_tree._root import Root
from dataset_tree._tree import Blob, Tree
from dataset_tree.drivers._common import TREE_TYPES, select_fragment, storage_string, storage_type

if TYPE_CHECKING:
    from collections.abc import Iterator

    from dataset_tree._dataset import DataSet

log = logging.getLogger(__name__)

_READ_ONLY = CapabilitySet(READ_ONLY_CAPABILITIES)


@dataclass(frozen=True)
class ArchiveEntry:
    """One entry of the archive index.

    Directories that only exist implicitly, as the parent of some member,
    have no ``member``.
    """

    is_dir: bool
    path: RelPath
    member: Optional[str] = None


def build_index(archive: zipfile.ZipFile) -> dict[RelPath, ArchiveEntry]:
    """Flat index of every file and directory in ``archive``, implied parents included."""
    index: dict[RelPath, ArchiveEntry] = {}
    for info in archive.infolist():
        name = info.filename.strip("/")
        if not name:
            continue
        path = RelPath(name)
        for i in range(1, len(path)):
            parent = RelPath(path.parts[:i])
            if parent not in index:
                index[parent] = ArchiveEntry(True, parent)
        if info.is_dir():
            index[path] = ArchiveEntry(True, path, info.filename)
        else:
            index[path] = ArchiveEntry(False, path, info.filename)
    return index


class ArchiveRoot(Root):
    """A read-only root over the members of a zip archive.

    The index is built once when the archive is opened. Every read opens a
    fresh member stream positioned at the start of the entry.

    :param source: Path of the zip file, or a seekable binary stream.
    """

    def __init__(self, source: Union[str, os.PathLike[str], IO[bytes]]) -> None:
        try:
            self._zip = zipfile.ZipFile(source)
        except zipfile.BadZipFile as exc:
            raise InvalidConfiguration(f"Not a zip archive: {exc}", driver=self.name) from None
        self._index = build_index(self._zip)
        log.debug("Indexed %d archive entries", len(self._index))

    @property
    def name(self) -> str:
        return "archive"

    @property
    def capabilities(self) -> CapabilitySet:
        return _READ_ONLY

    @property
    def entries(self) -> list[ArchiveEntry]:
        return sorted(self._index.values(), key=lambda e: e.path)

    def _entry(self, path: RelPath) -> ArchiveEntry | None:
        if not path:
            return ArchiveEntry(True, path)
        return self._index.get(path)

    def exists(self, path: RelPath) -> bool:
        return self._entry(path) is not None

    def is_dir(self, path: RelPath) -> bool:
        entry = self._entry(path)
        return entry is not None and entry.is_dir

    def is_file(self, path: RelPath) -> bool:
        entry = self._entry(path)
        return entry is not None and not entry.is_dir

    def _file_member(self, path: RelPath) -> str:
        entry = self._entry(path)
        if entry is None or entry.is_dir or entry.member is None:
            raise NotFound(f"File not found: {path}", path=str(path), driver=self.name)
        return entry.member

    def size(self, path: RelPath) -> int:
        return self._zip.getinfo(self._file_member(path)).file_size

    def list_children(self, path: RelPath) -> list[str]:
        if not self.is_dir(path):
            raise NotFound(f"Directory not found: {path}", path=str(path), driver=self.name)
        return sorted(p.name for p in self._index if p.parent == path)

    def open_read(self, path: RelPath) -> BinaryIO:
        return self._zip.open(self._file_member(path))  # type: ignore[return-value]

    def close(self) -> None:
        self._zip.close()

    def __repr__(self) -> str:
        return f"ArchiveRoot({self._zip.filename!r})"

    def __str__(self) -> str:
        return f"zip archive {self._zip.filename}"


@contextmanager
def open_zip_archive(storage: dict[str, Any], dataset: DataSet, *, write: bool = False) -> Iterator[Union[Tree, Blob]]:
    """Opener for the ``ZipArchive`` driver: ``storage.path`` names a zip file."""
    if write:
        _READ_ONLY.require(Capability.WRITE, driver="ZipArchive")
    path = storage_string(storage, "path", dataset)
    storage_type(storage, dataset, TREE_TYPES)
    if not os.path.isfile(path):
        raise NotFound(f"Zip archive not found: {path}", path=path, driver="ZipArchive")
    with ArchiveRoot(path) as root:
        yield select_fragment(Tree(root), dataset)
