"""RelPath and AbsPath — immutable keys into a hierarchical namespace."""

from __future__ import annotations

from collections.abc import Iterable
from contextlib import contextmanager
from typing import TYPE_CHECKING, BinaryIO, Final, Union

from dataset_tree._errors import InvalidPath

if TYPE_CHECKING:
    from collections.abc import Iterator

    from dataset_tree._root import Root
    from dataset_tree._tree import Tree

_SEPARATORS = ("/", "\\")


def _check_segment(component: str, raw: str) -> None:
    if "\0" in component:
        raise InvalidPath("Path contains null byte", path=raw)
    if component in (".", ".."):
        raise InvalidPath(f"Path contains {component!r} segment", path=raw)


class RelPath:
    """An immutable relative path: an ordered sequence of string components.

    A ``RelPath`` is only a key. The resource it names may or may not exist.

    ``RelPath("a/b/c")`` splits a ``/``-delimited literal (``\\`` is accepted
    as an equivalent separator). ``RelPath(["a", "b"])`` takes explicit
    components, each of which must be non-empty and free of separators.

    :raises InvalidPath: If a component is empty or contains a separator.
    """

    __slots__ = ("_parts",)
    _parts: Final[tuple[str, ...]]  # type: ignore[misc]

    def __init__(self, raw: Union[str, Iterable[str], RelPath] = ()) -> None:
        if isinstance(raw, RelPath):
            parts = raw._parts
        elif isinstance(raw, str):
            parts = self._split(raw)
        else:
            parts = tuple(raw)
            for component in parts:
                self._check_component(component)
        object.__setattr__(self, "_parts", parts)

    @staticmethod
    def _split(raw: str) -> tuple[str, ...]:
        if not raw:
            return ()
        parts = tuple(raw.replace("\\", "/").split("/"))
        for component in parts:
            if component == "":
                raise InvalidPath("Path contains an empty component", path=raw)
            _check_segment(component, raw)
        return parts

    @staticmethod
    def _check_component(component: object) -> None:
        if not isinstance(component, str):
            raise InvalidPath(f"Path components must be strings, got {type(component).__name__}")
        if component == "":
            raise InvalidPath("Path components cannot be empty", path=component)
        if any(sep in component for sep in _SEPARATORS):
            raise InvalidPath("Path components cannot contain '/' or '\\'", path=component)
        _check_segment(component, component)

    @classmethod
    def _from_parts(cls, parts: tuple[str, ...]) -> RelPath:
        p = object.__new__(cls)
        object.__setattr__(p, "_parts", parts)
        return p

    @property
    def parts(self) -> tuple[str, ...]:
        """Tuple of path components."""
        return self._parts

    @property
    def name(self) -> str:
        """Final component of the path, or ``""`` for the empty path."""
        return self._parts[-1] if self._parts else ""

    @property
    def parent(self) -> RelPath:
        """All components but the last. The parent of the empty path is empty."""
        return RelPath._from_parts(self._parts[:-1])

    def basename(self) -> str:
        return self.name

    def dirname(self) -> RelPath:
        return self.parent

    def is_empty(self) -> bool:
        return not self._parts

    def joinpath(self, *others: Union[str, RelPath]) -> RelPath:
        """Append components.

        String arguments are single components; ``RelPath`` arguments are
        appended component-wise.

        :raises InvalidPath: If a string component contains a separator or is
            ``.`` or ``..``.
        """
        parts = list(self._parts)
        for other in others:
            if isinstance(other, RelPath):
                parts.extend(other._parts)
            else:
                self._check_component(other)
                parts.append(other)
        return RelPath._from_parts(tuple(parts))

    def __truediv__(self, other: Union[str, RelPath]) -> RelPath:
        return self.joinpath(other)

    def startswith(self, prefix: RelPath) -> bool:
        """Return ``True`` if ``prefix`` is a component-wise prefix of this path."""
        n = len(prefix._parts)
        return self._parts[:n] == prefix._parts

    def __len__(self) -> int:
        return len(self._parts)

    def __iter__(self) -> Iterator[str]:
        return iter(self._parts)

    def __bool__(self) -> bool:
        return bool(self._parts)

    def __str__(self) -> str:
        return "/".join(self._parts)

    def __repr__(self) -> str:
        return f"RelPath({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RelPath):
            return self._parts == other._parts
        return NotImplemented

    def __lt__(self, other: RelPath) -> bool:
        if not isinstance(other, RelPath):
            return NotImplemented
        return self._parts < other._parts

    def __le__(self, other: RelPath) -> bool:
        if not isinstance(other, RelPath):
            return NotImplemented
        return self._parts <= other._parts

    def __gt__(self, other: RelPath) -> bool:
        if not isinstance(other, RelPath):
            return NotImplemented
        return self._parts > other._parts

    def __ge__(self, other: RelPath) -> bool:
        if not isinstance(other, RelPath):
            return NotImplemented
        return self._parts >= other._parts

    def __hash__(self) -> int:
        return hash(self._parts)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError(f"RelPath is immutable: cannot set '{name}'")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"RelPath is immutable: cannot delete '{name}'")


def as_relpath(path: Union[str, RelPath]) -> RelPath:
    """Coerce a string literal or ``RelPath`` to a ``RelPath``."""
    return path if isinstance(path, RelPath) else RelPath(path)


class AbsPath:
    """A ``RelPath`` qualified by the root it is relative to.

    Like ``RelPath`` this is only a key; the resource may or may not exist.

    :param root: The storage root.
    :param path: Path relative to ``root``.
    """

    __slots__ = ("_path", "_root")

    def __init__(self, root: Root, path: Union[str, RelPath] = "") -> None:
        object.__setattr__(self, "_root", root)
        object.__setattr__(self, "_path", as_relpath(path))

    @property
    def root(self) -> Root:
        return self._root

    @property
    def path(self) -> RelPath:
        return self._path

    @property
    def name(self) -> str:
        return self._path.name

    def joinpath(self, *others: Union[str, RelPath]) -> AbsPath:
        return AbsPath(self._root, self._path.joinpath(*others))

    def __truediv__(self, other: Union[str, RelPath]) -> AbsPath:
        return self.joinpath(other)

    def exists(self) -> bool:
        return self._root.exists(self._path)

    def is_dir(self) -> bool:
        return self._root.is_dir(self._path)

    def is_file(self) -> bool:
        return self._root.is_file(self._path)

    @contextmanager
    def open(self, *, write: bool = False) -> Iterator[BinaryIO]:
        """Open the path as a byte stream, closing it on exit."""
        stream = self._root.open_write(self._path) if write else self._root.open_read(self._path)
        with stream:
            yield stream

    def mkdir(self) -> Tree:
        """Create a directory at this path and return it as a ``Tree``."""
        from dataset_tree._tree import Tree

        self._root.mkdir(self._path)
        return Tree(self._root, self._path)

    def delete(self) -> None:
        """Recursively delete whatever exists at this path."""
        self._root.delete(self._path)

    def __str__(self) -> str:
        return f"{self._path} @ {self._root}"

    def __repr__(self) -> str:
        return f"AbsPath({self._root!r}, {str(self._path)!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, AbsPath):
            return self._root is other._root and self._path == other._path
        return NotImplemented

    def __hash__(self) -> int:
        return hash((id(self._root), self._path))

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError(f"AbsPath is immutable: cannot set '{name}'")
