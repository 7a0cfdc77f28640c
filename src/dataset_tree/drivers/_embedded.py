"""Embedded driver — small datasets stored base64-encoded in the data document."""

from __future__ import annotations

import base64
import binascii
import io
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, BinaryIO, Callable, Union

from dataset_tree._capabilities import READ_ONLY_CAPABILITIES, Capability, CapabilitySet
from dataset_tree._errors import AlreadyExists, InvalidConfiguration, InvalidPath, NotFound
from dataset_tree._root import Root
from dataset_tree._tree import Blob, Tree
from dataset_tree.drivers._common import BLOB_TYPES, TREE_TYPES, select_fragment, storage_type

if TYPE_CHECKING:
    from collections.abc import Iterator

    from dataset_tree._dataset import DataSet
    from dataset_tree._path import RelPath

log = logging.getLogger(__name__)

EmbeddedData = Union[bytes, dict[str, Any]]

_READ_ONLY = CapabilitySet(READ_ONLY_CAPABILITIES)
_WRITABLE = CapabilitySet(set(Capability) - {Capability.ADOPT})


def decode_data(value: Any) -> EmbeddedData:
    """Decode a base64 string, or a nested table of them, to bytes and dicts.

    :raises InvalidConfiguration: If ``value`` is neither, or is not valid base64.
    """
    if isinstance(value, str):
        try:
            return base64.b64decode(value, validate=True)
        except binascii.Error as exc:
            raise InvalidConfiguration(f"Embedded data is not valid base64: {exc}") from None
    if isinstance(value, dict):
        return {name: decode_data(child) for name, child in value.items()}
    raise InvalidConfiguration(f"Embedded data must be a base64 string or a table, not {type(value).__name__}")


def encode_data(data: EmbeddedData) -> Union[str, dict[str, Any]]:
    """Inverse of :func:`decode_data`."""
    if isinstance(data, bytes):
        return base64.b64encode(data).decode("ascii")
    return {name: encode_data(child) for name, child in data.items()}


class _CommitOnClose(io.BytesIO):
    """Write buffer handing its content to ``commit`` when closed."""

    def __init__(self, commit: Callable[[bytes], None]) -> None:
        super().__init__()
        self._commit = commit

    def close(self) -> None:
        if not self.closed:
            self._commit(self.getvalue())
        super().close()


class EmbeddedRoot(Root):
    """An in-memory root: directories are dicts, files are bytes.

    :param data: The decoded content; a dict for a tree, bytes for a blob.
    :param writable: Whether mutation is permitted.
    """

    def __init__(self, data: EmbeddedData, *, writable: bool = False) -> None:
        self._data = data
        self._writable = writable

    @property
    def name(self) -> str:
        return "embedded"

    @property
    def capabilities(self) -> CapabilitySet:
        return _WRITABLE if self._writable else _READ_ONLY

    @property
    def data(self) -> EmbeddedData:
        return self._data

    def _lookup(self, path: RelPath) -> EmbeddedData | None:
        node: Any = self._data
        for name in path:
            if not isinstance(node, dict) or name not in node:
                return None
            node = node[name]
        return node

    def _parent_dict(self, path: RelPath) -> dict[str, Any]:
        if not path:
            raise InvalidPath("The top of an embedded root has no parent", driver=self.name)
        parent = self._lookup(path.parent)
        if not isinstance(parent, dict):
            raise NotFound(f"Directory not found: {path.parent}", path=str(path.parent), driver=self.name)
        return parent

    # region: queries
    def exists(self, path: RelPath) -> bool:
        return self._lookup(path) is not None

    def is_dir(self, path: RelPath) -> bool:
        return isinstance(self._lookup(path), dict)

    def is_file(self, path: RelPath) -> bool:
        return isinstance(self._lookup(path), bytes)

    def size(self, path: RelPath) -> int:
        node = self._lookup(path)
        if not isinstance(node, bytes):
            raise NotFound(f"File not found: {path}", path=str(path), driver=self.name)
        return len(node)

    def list_children(self, path: RelPath) -> list[str]:
        node = self._lookup(path)
        if not isinstance(node, dict):
            raise NotFound(f"Directory not found: {path}", path=str(path), driver=self.name)
        return sorted(node)

    def open_read(self, path: RelPath) -> BinaryIO:
        node = self._lookup(path)
        if not isinstance(node, bytes):
            raise NotFound(f"File not found: {path}", path=str(path), driver=self.name)
        return io.BytesIO(node)

    # endregion

    # region: mutation
    def open_write(self, path: RelPath) -> BinaryIO:
        self._require(Capability.WRITE, path)
        if self.is_dir(path):
            raise AlreadyExists(f"A directory exists at {path}", path=str(path), driver=self.name)
        if not path:
            return _CommitOnClose(self._set_top)
        parent = self._parent_dict(path)

        def commit(content: bytes) -> None:
            parent[path.name] = content

        return _CommitOnClose(commit)

    def _set_top(self, content: bytes) -> None:
        self._data = content

    def mkdir(self, path: RelPath) -> None:
        self._require(Capability.MKDIR, path)
        if self.exists(path):
            raise AlreadyExists(f"Already exists: {path}", path=str(path), driver=self.name)
        self._parent_dict(path)[path.name] = {}

    def delete(self, path: RelPath) -> None:
        self._require(Capability.DELETE, path)
        parent = self._parent_dict(path)
        if path.name not in parent:
            raise NotFound(f"Not found: {path}", path=str(path), driver=self.name)
        del parent[path.name]

    def move(self, src: RelPath, dst: RelPath) -> None:
        self._require(Capability.MOVE, src)
        src_parent = self._parent_dict(src)
        if src.name not in src_parent:
            raise NotFound(f"Source not found: {src}", path=str(src), driver=self.name)
        if dst.startswith(src):
            raise InvalidPath(f"Cannot move {src} into itself", path=str(dst), driver=self.name)
        dst_parent = self._parent_dict(dst)
        dst_parent[dst.name] = src_parent.pop(src.name)

    # endregion

    def __repr__(self) -> str:
        kind = "tree" if isinstance(self._data, dict) else "blob"
        return f"EmbeddedRoot(<{kind}>, writable={self._writable})"

    def __str__(self) -> str:
        return "embedded data" if self._writable else "embedded data (read only)"


@contextmanager
def open_embedded(storage: dict[str, Any], dataset: DataSet, *, write: bool = False) -> Iterator[Union[Tree, Blob]]:
    """Opener for the ``TomlDataStorage`` driver.

    ``storage.data`` is a base64 string (``type = "Blob"``) or a table of them
    (``type = "BlobTree"``). When opened with ``write=True`` the content is
    encoded again on a clean exit and saved with ``dataset.update``, which
    persists the project that owns the dataset.
    """
    type_ = storage_type(storage, dataset, BLOB_TYPES + TREE_TYPES)
    is_tree = type_ in TREE_TYPES
    if "data" in storage:
        data = decode_data(storage["data"])
    elif write:
        data = {} if is_tree else b""
    else:
        raise InvalidConfiguration(f"No embedded data for dataset {dataset.name!r}", driver="TomlDataStorage")
    if is_tree != isinstance(data, dict):
        expected = "a table" if is_tree else "a base64 string"
        raise InvalidConfiguration(
            f"Embedded data for {type_} dataset {dataset.name!r} should be {expected}",
            driver="TomlDataStorage",
        )
    root = EmbeddedRoot(data, writable=write)
    node: Union[Tree, Blob] = Tree(root) if is_tree else Blob(root)
    yield select_fragment(node, dataset)
    if write:
        log.debug("Saving embedded data of dataset %r", dataset.name)
        dataset.update(storage={**storage, "data": encode_data(root.data)})
