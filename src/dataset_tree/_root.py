"""Root abstract base class — the storage capability contract."""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING, BinaryIO

from dataset_tree._capabilities import Capability

if TYPE_CHECKING:
    from types import TracebackType

    from dataset_tree._capabilities import CapabilitySet
    from dataset_tree._path import RelPath
    from dataset_tree._tree import Blob, Tree


class Root(abc.ABC):
    """Abstract base class for all storage roots.

    A root is the backend handle that owns persistent state; ``Tree``,
    ``Blob`` and ``AbsPath`` are non-owning views over ``(root, path)``.

    Every root must implement the query methods. Writable roots override the
    mutation methods; the defaults check the declared capabilities and so
    raise ``ReadOnlyViolation`` on a read-only root.

    Queries distinguish a miss from an error: ``exists``, ``is_dir`` and
    ``is_file`` return ``False`` for missing paths and never raise ``NotFound``.
    """

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Identifier for this kind of root (e.g. ``'filesystem'``)."""

    @property
    @abc.abstractmethod
    def capabilities(self) -> CapabilitySet:
        """Declared capabilities of this root."""

    @property
    def writable(self) -> bool:
        return self.capabilities.supports(Capability.WRITE)

    @abc.abstractmethod
    def exists(self, path: RelPath) -> bool:
        """Return ``True`` if anything exists at ``path``."""

    @abc.abstractmethod
    def is_dir(self, path: RelPath) -> bool:
        """Return ``True`` if ``path`` is an existing directory."""

    @abc.abstractmethod
    def is_file(self, path: RelPath) -> bool:
        """Return ``True`` if ``path`` is an existing file."""

    @abc.abstractmethod
    def size(self, path: RelPath) -> int:
        """Size in bytes of the file at ``path``.

        :raises NotFound: If the file does not exist.
        """

    @abc.abstractmethod
    def list_children(self, path: RelPath) -> list[str]:
        """Names of the immediate children of the directory at ``path``.

        Order is backend-defined and not guaranteed to be stable.

        :raises NotFound: If ``path`` is not an existing directory.
        """

    @abc.abstractmethod
    def open_read(self, path: RelPath) -> BinaryIO:
        """Open the file at ``path`` for reading, positioned at its start.

        :raises NotFound: If the file does not exist.
        """

    def read_bytes(self, path: RelPath) -> bytes:
        """Read the full content of the file at ``path``."""
        with self.open_read(path) as stream:
            return stream.read()

    def open_write(self, path: RelPath) -> BinaryIO:
        """Open the file at ``path`` for writing, truncating existing content.

        :raises ReadOnlyViolation: If the root is not writable.
        """
        self._require(Capability.WRITE, path)
        raise NotImplementedError

    def mkdir(self, path: RelPath) -> None:
        """Create a directory at ``path``. The parent must exist.

        :raises ReadOnlyViolation: If the root is not writable.
        """
        self._require(Capability.MKDIR, path)
        raise NotImplementedError

    def delete(self, path: RelPath) -> None:
        """Recursively delete whatever exists at ``path``.

        :raises NotFound: If nothing exists at ``path``.
        :raises ReadOnlyViolation: If the root is not writable.
        """
        self._require(Capability.DELETE, path)
        raise NotImplementedError

    def move(self, src: RelPath, dst: RelPath) -> None:
        """Move/rename ``src`` to ``dst``, replacing ``dst`` if present.

        :raises NotFound: If ``src`` does not exist.
        :raises ReadOnlyViolation: If the root is not writable.
        """
        self._require(Capability.MOVE, src)
        raise NotImplementedError

    def adopt(self, path: RelPath, node: Tree | Blob) -> None:
        """Take ownership of temporary ``node`` and place it at ``path``.

        :raises CapabilityNotSupported: If the root cannot adopt temporary data.
        """
        self._require(Capability.ADOPT, path)
        raise NotImplementedError

    def _require(self, cap: Capability, path: RelPath | None = None) -> None:
        self.capabilities.require(cap, driver=self.name, path=None if path is None else str(path))

    def close(self) -> None:  # noqa: B027
        """Release resources. Default is a no-op."""

    def __enter__(self) -> Root:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
