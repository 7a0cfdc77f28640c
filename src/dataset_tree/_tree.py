"""Tree and Blob — the two node kinds viewing a root at a path."""

from __future__ import annotations

import logging
import shutil
from contextlib import contextmanager, nullcontext
from typing import TYPE_CHECKING, Any, BinaryIO, Callable, Union

from dataset_tree._errors import InvalidPath, NotFound
from dataset_tree._path import AbsPath, RelPath, as_relpath
from dataset_tree._root import Root

if TYPE_CHECKING:
    from collections.abc import Iterator
    from typing import ContextManager

log = logging.getLogger(__name__)

Node = Union["Tree", "Blob", AbsPath]
FileContent = Union[bytes, Callable[[BinaryIO], object]]


def resolve_node(root: Root, path: RelPath) -> Node | None:
    """Look ``path`` up in ``root``.

    Returns a ``Tree`` for directories, a ``Blob`` for files, an inert
    ``AbsPath`` for anything else that exists, and ``None`` on a miss.
    """
    if root.is_dir(path):
        return Tree(root, path)
    if root.is_file(path):
        return Blob(root, path)
    if root.exists(path):
        return AbsPath(root, path)
    return None


class Children:
    """Lazy, restartable view of the children of a tree.

    The number of children is not known ahead of time. Every iteration
    re-queries the root, so two passes may observe different snapshots if the
    backend is modified concurrently. Names removed between listing and lookup
    are skipped.
    """

    def __init__(self, tree: Tree) -> None:
        self._tree = tree

    def __iter__(self) -> Iterator[Node]:
        tree = self._tree
        for name in tree.root.list_children(tree.path):
            node = resolve_node(tree.root, tree.path.joinpath(name))
            if node is not None:
                yield node

    def __repr__(self) -> str:
        return f"Children({self._tree!r})"


class Tree:
    """A container node: a directory-like view of ``root`` at ``path``.

    Indexing looks the path up in the root and only returns things that exist;
    ``joinpath`` only builds keys.

    :param root: The storage root.
    :param path: Path of this tree within ``root``.
    """

    __slots__ = ("__weakref__", "_path", "_root")

    def __init__(self, root: Root, path: Union[str, RelPath] = "") -> None:
        self._root = root
        self._path = as_relpath(path)

    @property
    def root(self) -> Root:
        return self._root

    @property
    def path(self) -> RelPath:
        return self._path

    @property
    def name(self) -> str:
        return self._path.name

    def is_dir(self) -> bool:
        return True

    def is_file(self) -> bool:
        return False

    def abspath(self) -> AbsPath:
        return AbsPath(self._root, self._path)

    # region: indexing
    def __getitem__(self, path: Union[str, RelPath]) -> Node:
        """Resolve ``path`` relative to this tree.

        :raises NotFound: If nothing exists at ``path``.
        """
        full = self._path.joinpath(as_relpath(path))
        node = resolve_node(self._root, full)
        if node is None:
            raise NotFound(f"Path {str(full)!r} does not exist in {self._root}", path=str(full), driver=self._root.name)
        return node

    def get(self, path: Union[str, RelPath], default: Any = None) -> Any:
        """Like ``tree[path]`` but returns ``default`` on a miss."""
        node = resolve_node(self._root, self._path.joinpath(as_relpath(path)))
        return default if node is None else node

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, RelPath)):
            return False
        try:
            full = self._path.joinpath(as_relpath(path))
        except InvalidPath:
            return False
        return self._root.exists(full)

    def joinpath(self, *others: Union[str, RelPath]) -> AbsPath:
        return AbsPath(self._root, self._path.joinpath(*others))

    def __truediv__(self, other: Union[str, RelPath]) -> AbsPath:
        return self.joinpath(other)

    # endregion

    # region: iteration
    def names(self) -> list[str]:
        """Names of the immediate children, in backend order."""
        return list(self._root.list_children(self._path))

    def children(self) -> Children:
        return Children(self)

    def __iter__(self) -> Iterator[Node]:
        return iter(Children(self))

    # endregion

    # region: mutation
    def mkdir(self, path: Union[str, RelPath]) -> Tree:
        """Create a directory below this tree; its parent must exist."""
        full = self._path.joinpath(as_relpath(path))
        self._root.mkdir(full)
        return Tree(self._root, full)

    def delete(self, path: Union[str, RelPath]) -> None:
        """Recursively delete the child at ``path``."""
        self._root.delete(self._path.joinpath(as_relpath(path)))

    def new_dir(self, path: Union[str, RelPath], *, overwrite: bool = False) -> Tree:
        """Create a directory below this tree, including missing parents.

        :param overwrite: Delete anything already present at ``path`` first.
        """
        full = self._path.joinpath(as_relpath(path))
        if overwrite and self._root.exists(full):
            self._root.delete(full)
        self._makedirs(full)
        return Tree(self._root, full)

    def new_file(self, path: Union[str, RelPath], content: FileContent = b"") -> Blob:
        """Create (or truncate) a file below this tree, including missing parents.

        :param content: Bytes to write, or a callable receiving the open stream.
        """
        full = self._path.joinpath(as_relpath(path))
        self._makedirs(full.parent)
        with self._root.open_write(full) as stream:
            if callable(content):
                content(stream)
            else:
                stream.write(content)
        return Blob(self._root, full)

    def _makedirs(self, path: RelPath) -> None:
        for i in range(1, len(path) + 1):
            prefix = RelPath(path.parts[:i])
            if not self._root.is_dir(prefix):
                self._root.mkdir(prefix)

    def __setitem__(self, name: Union[str, RelPath], node: Union[Tree, Blob]) -> None:
        """Move a temporary tree or blob into this tree at ``name``.

        Ownership of the temporary data is transferred; the temporary handle
        must not be used afterwards.
        """
        self._root.adopt(self._path.joinpath(as_relpath(name)), node)

    # endregion

    @contextmanager
    def open(self, kind: Any = None) -> Iterator[Tree]:
        """Open the tree as itself, for symmetry with ``Blob.open``."""
        if kind not in (None, Tree):
            raise TypeError(f"A Tree cannot be opened as {kind!r}")
        yield self

    def __repr__(self) -> str:
        return f"Tree({self._root!r}, {str(self._path)!r})"

    def __str__(self) -> str:
        return f"Tree {self._path} @ {self._root}"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Tree):
            return self._root is other._root and self._path == other._path
        return NotImplemented

    def __hash__(self) -> int:
        return hash((id(self._root), self._path))


class Blob:
    """A leaf node: unstructured bytes stored in ``root`` at ``path``.

    A blob can be opened as a byte stream (``typing.BinaryIO``), read as
    ``bytes`` or decoded as ``str``.

    :param root: The storage root.
    :param path: Path of this blob within ``root``.
    """

    __slots__ = ("__weakref__", "_path", "_root")

    def __init__(self, root: Root, path: Union[str, RelPath] = "") -> None:
        self._root = root
        self._path = as_relpath(path)

    @property
    def root(self) -> Root:
        return self._root

    @property
    def path(self) -> RelPath:
        return self._path

    @property
    def name(self) -> str:
        return self._path.name

    @property
    def size(self) -> int:
        return self._root.size(self._path)

    def is_dir(self) -> bool:
        return False

    def is_file(self) -> bool:
        return True

    def abspath(self) -> AbsPath:
        return AbsPath(self._root, self._path)

    @contextmanager
    def open(self, kind: Any = BinaryIO, *, write: bool = False) -> Iterator[Any]:
        """Open the blob as ``kind`` for the duration of the block.

        :param kind: ``BinaryIO`` (stream), ``bytes``, ``str`` or ``Blob``.
        :param write: Open the stream for writing (``BinaryIO`` only).
        :raises TypeError: If ``kind`` is not supported.
        """
        if kind is Blob or kind is None:
            yield self
            return
        if kind is BinaryIO:
            stream = self._root.open_write(self._path) if write else self._root.open_read(self._path)
            with stream:
                yield stream
            return
        if write:
            raise TypeError(f"Blobs can only be opened for writing as BinaryIO, not {kind!r}")
        if kind is bytes:
            yield self.read()
        elif kind is str:
            yield self.read_text()
        else:
            raise TypeError(f"A Blob cannot be opened as {kind!r}")

    def read(self) -> bytes:
        return self._root.read_bytes(self._path)

    def read_text(self, encoding: str = "utf-8") -> str:
        return self.read().decode(encoding)

    def write(self, content: bytes) -> None:
        """Replace the blob's content."""
        with self._root.open_write(self._path) as stream:
            stream.write(content)

    def __repr__(self) -> str:
        return f"Blob({self._root!r}, {str(self._path)!r})"

    def __str__(self) -> str:
        return f"Blob {self._path} @ {self._root}"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Blob):
            return self._root is other._root and self._path == other._path
        return NotImplemented

    def __hash__(self) -> int:
        return hash((id(self._root), self._path))


def as_node(storage: Union[Root, Tree, Blob]) -> Union[Tree, Blob]:
    """Wrap a bare root in the node kind matching its top level."""
    if isinstance(storage, Root):
        return Tree(storage) if storage.is_dir(RelPath()) else Blob(storage)
    return storage


def open_as(storage: Union[Root, Tree, Blob], kind: Any = None, *, write: bool = False) -> ContextManager[Any]:
    """Return a context manager converting opened storage to ``kind``.

    ``kind=None`` passes the storage through unchanged.

    :raises TypeError: If the storage cannot be presented as ``kind``.
    """
    if kind is None:
        return nullcontext(storage)
    node = as_node(storage)
    if isinstance(node, Tree):
        return node.open(kind)
    return node.open(kind, write=write)


def copy_tree(dst: Tree, src: Tree) -> None:
    """Recursively copy the children of ``src`` into ``dst``.

    Subtrees are created and recursed into; blobs are streamed byte for byte.
    This is not transactional: a failure part way through leaves ``dst``
    partially populated.
    """
    for child in src:
        target = dst.joinpath(child.name)
        if isinstance(child, Tree):
            copy_tree(target.mkdir(), child)
        elif isinstance(child, Blob):
            with child.open(BinaryIO) as src_io, target.open(write=True) as dst_io:
                shutil.copyfileobj(src_io, dst_io)
        else:
            log.debug("Skipping untyped entry %s while copying", child)


def show_tree(tree: Tree, *, max_depth: int = 5) -> str:
    """Render ``tree`` in the style of the unix ``tree`` utility."""
    lines = [f"📂 {tree}"]
    _show_tree(tree, "", max_depth, lines)
    return "\n".join(lines)


def _show_tree(tree: Tree, prefix: str, depth: int, lines: list[str]) -> None:
    children = sorted(tree, key=lambda c: c.name)
    for i, child in enumerate(children):
        last = i == len(children) - 1
        first_prefix = prefix + ("└──" if last else "├──")
        other_prefix = prefix + ("   " if last else "│  ")
        if isinstance(child, Tree):
            lines.append(f"{first_prefix}📂 {child.name}")
            if depth > 1:
                _show_tree(child, other_prefix, depth - 1, lines)
            else:
                lines.append(f"{other_prefix}⋮")
        else:
            lines.append(f"{first_prefix} {child.name}")
