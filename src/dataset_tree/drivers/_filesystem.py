"""Filesystem driver — local directories and files, with atomic replace."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import weakref
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, BinaryIO, Callable, Optional, Union

from dataset_tree._capabilities import READ_ONLY_CAPABILITIES, Capability, CapabilitySet
from dataset_tree._errors import (
    AlreadyExists,
    AlreadyMoved,
    DataSetsError,
    InvalidPath,
    NotFound,
    PartialFailure,
    PermissionDenied,
)
from dataset_tree._path import RelPath
from dataset_tree._root import Root
from dataset_tree._tree import Blob, Tree
from dataset_tree.drivers._common import BLOB_TYPES, TREE_TYPES, select_fragment, storage_string, storage_type

if TYPE_CHECKING:
    from collections.abc import Iterator

    from dataset_tree._dataset import DataSet

log = logging.getLogger(__name__)

_READ_ONLY = CapabilitySet(READ_ONLY_CAPABILITIES)
_ALL_CAPABILITIES = CapabilitySet(set(Capability))

# Indirections used by replace_with_rollback, patched in fault-injection tests.
_move_into_place = shutil.move
_restore_held = os.replace


class FileSystemRoot(Root):
    """A root directory (or single file) on the local filesystem.

    Symbolic links are treated as opaque leaves: they exist, but are never
    reported as directories or files and are never followed, so every tree
    built from a filesystem root is acyclic.

    :param path: Location of the root on disk.
    :param writable: Whether mutation is permitted.
    """

    def __init__(self, path: Union[str, os.PathLike[str]], *, writable: bool = False) -> None:
        self._root_path = Path(os.path.abspath(path))
        self._writable = writable

    @property
    def name(self) -> str:
        return "filesystem"

    @property
    def capabilities(self) -> CapabilitySet:
        return _ALL_CAPABILITIES if self._writable else _READ_ONLY

    @property
    def root_path(self) -> Path:
        return self._root_path

    def sys_path(self, path: RelPath) -> Path:
        """Native path of ``path`` below this root."""
        return self._root_path.joinpath(*path.parts)

    @contextmanager
    def _errors(self, path: RelPath) -> Iterator[None]:
        """Map OS exceptions to dataset_tree errors."""
        key = str(path)
        try:
            yield
        except DataSetsError:
            raise
        except (FileNotFoundError, NotADirectoryError):
            raise NotFound(f"Not found: {key}", path=key, driver=self.name) from None
        except FileExistsError:
            raise AlreadyExists(f"Already exists: {key}", path=key, driver=self.name) from None
        except PermissionError:
            raise PermissionDenied(f"Permission denied: {key}", path=key, driver=self.name) from None

    # region: queries
    def exists(self, path: RelPath) -> bool:
        return os.path.lexists(self.sys_path(path))

    def is_dir(self, path: RelPath) -> bool:
        full = self.sys_path(path)
        return not full.is_symlink() and full.is_dir()

    def is_file(self, path: RelPath) -> bool:
        full = self.sys_path(path)
        return not full.is_symlink() and full.is_file()

    def size(self, path: RelPath) -> int:
        if not self.is_file(path):
            raise NotFound(f"File not found: {path}", path=str(path), driver=self.name)
        with self._errors(path):
            return self.sys_path(path).stat().st_size

    def list_children(self, path: RelPath) -> list[str]:
        if not self.is_dir(path):
            raise NotFound(f"Directory not found: {path}", path=str(path), driver=self.name)
        with self._errors(path):
            return sorted(os.listdir(self.sys_path(path)))

    def open_read(self, path: RelPath) -> BinaryIO:
        if not self.is_file(path):
            raise NotFound(f"File not found: {path}", path=str(path), driver=self.name)
        with self._errors(path):
            return open(self.sys_path(path), "rb")  # noqa: SIM115

    # endregion

    # region: mutation
    def open_write(self, path: RelPath) -> BinaryIO:
        self._require(Capability.WRITE, path)
        if self.is_dir(path):
            raise AlreadyExists(f"A directory exists at {path}", path=str(path), driver=self.name)
        with self._errors(path):
            return open(self.sys_path(path), "wb")  # noqa: SIM115

    def mkdir(self, path: RelPath) -> None:
        self._require(Capability.MKDIR, path)
        with self._errors(path):
            os.mkdir(self.sys_path(path))

    def delete(self, path: RelPath) -> None:
        self._require(Capability.DELETE, path)
        if not path:
            raise InvalidPath("Cannot delete the root itself", driver=self.name)
        full = self.sys_path(path)
        with self._errors(path):
            if self.is_dir(path):
                shutil.rmtree(full)
            else:
                os.unlink(full)

    def move(self, src: RelPath, dst: RelPath) -> None:
        self._require(Capability.MOVE, src)
        if not self.exists(src):
            raise NotFound(f"Source not found: {src}", path=str(src), driver=self.name)
        if not dst or dst.startswith(src):
            raise InvalidPath(f"Cannot move {src} into itself", path=str(dst), driver=self.name)
        dst_full = self.sys_path(dst)
        with self._errors(dst):
            replace_with_rollback(self.sys_path(src), dst_full, dst_full.parent)

    def adopt(self, path: RelPath, node: Union[Tree, Blob]) -> None:
        """Move a whole temporary tree or blob to ``path``, replacing what is there.

        The replace is atomic from the point of view of a reader of ``path``:
        the old content is set aside first and restored if the move fails.

        :raises InvalidPath: If ``node`` is not the top of a temporary root.
        :raises AlreadyMoved: If ``node`` was already moved into place.
        :raises PartialFailure: If the move failed.
        """
        self._require(Capability.ADOPT, path)
        temp = node.root
        if not isinstance(temp, TempRoot):
            raise InvalidPath("Only temporary trees and blobs can be moved into place", path=str(path))
        if node.path:
            raise InvalidPath(
                f"Only a whole temporary root can be moved into place, not {node.path}",
                path=str(node.path),
            )
        src = temp.sys_path(node.path)
        if not path:
            raise InvalidPath("Cannot replace the root itself", driver=self.name)
        dest = self.sys_path(path)
        if not self.is_dir(path.parent):
            raise NotFound(f"Parent directory not found: {path.parent}", path=str(path.parent), driver=self.name)
        log.debug("Moving temporary %s to %s", src, dest)
        with self._errors(path):
            replace_with_rollback(src, dest, dest.parent)
        temp._mark_moved()

    # endregion

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self._root_path)!r}, writable={self._writable})"

    def __str__(self) -> str:
        return str(self._root_path) if self._writable else f"{self._root_path} (read only)"


def _remove_path(path: str) -> None:
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    elif os.path.lexists(path):
        os.unlink(path)


def _remove_from_finalizer(path: str) -> None:
    log.debug("Removing leaked temporary %s", path)
    try:
        _remove_path(path)
    except OSError:
        log.warning("Could not remove temporary %s", path, exc_info=True)


class TempRoot(FileSystemRoot):
    """A writable root over a temporary directory or file.

    The temporary data is removed by ``cleanup()`` (or ``close()``), or, as a
    backstop, when the root is garbage collected. Once the data has been moved
    into place with ``tree[name] = temp`` it is owned by its destination:
    cleanup is disabled and any further use raises ``AlreadyMoved``.

    :param path: The temporary directory or file, which this root now owns.
    """

    def __init__(self, path: Union[str, os.PathLike[str]]) -> None:
        super().__init__(path, writable=True)
        self._moved = False
        self._finalizer = weakref.finalize(self, _remove_from_finalizer, str(self._root_path))

    @property
    def moved(self) -> bool:
        return self._moved

    @property
    def cleaned_up(self) -> bool:
        return not self._moved and not self._finalizer.alive

    def sys_path(self, path: RelPath) -> Path:
        if self._moved:
            raise AlreadyMoved(
                f"Temporary data was moved away from {self._root_path}",
                path=str(path),
                driver=self.name,
            )
        return super().sys_path(path)

    def _mark_moved(self) -> None:
        self._finalizer.detach()
        self._moved = True

    def cleanup(self) -> None:
        """Remove the temporary data now. Idempotent; a no-op once moved."""
        if self._finalizer.detach() is not None:
            log.debug("Removing temporary %s", self._root_path)
            _remove_path(str(self._root_path))

    def close(self) -> None:
        self.cleanup()


# region: temporary resources
def newdir() -> Tree:
    """Create an empty temporary directory, owned by the returned ``Tree``."""
    root = TempRoot(tempfile.mkdtemp(prefix="dataset_tree_"))
    log.debug("Created temporary directory %s", root.root_path)
    return Tree(root)


def newfile(writer: Optional[Callable[[BinaryIO], Any]] = None) -> Blob:
    """Create a temporary file, owned by the returned ``Blob``.

    :param writer: Called with the open file to fill in its content. If it
        raises, the file is removed and the error propagates.
    """
    fd, path = tempfile.mkstemp(prefix="dataset_tree_")
    os.close(fd)
    root = TempRoot(path)
    log.debug("Created temporary file %s", path)
    if writer is not None:
        try:
            with open(path, "wb") as stream:
                writer(stream)
        except BaseException:
            root.cleanup()
            raise
    return Blob(root)


@contextmanager
def temporary_dir() -> Iterator[Tree]:
    """Scoped temporary directory, removed on exit unless it was moved into place."""
    tree = newdir()
    try:
        yield tree
    finally:
        tree.root.close()


# endregion


def replace_with_rollback(
    src: Union[str, os.PathLike[str]],
    dest: Union[str, os.PathLike[str]],
    holding_parent: Union[str, os.PathLike[str], None] = None,
) -> None:
    """Replace ``dest`` with ``src`` so that a failure leaves ``dest`` unchanged.

    Existing content at ``dest`` is first renamed into a fresh holding
    directory below ``holding_parent`` (which must be on the same filesystem
    as ``dest``), then ``src`` is moved to ``dest``. On success the held
    content is deleted. On failure the held content is renamed back.

    :param src: The new content. May be on another filesystem.
    :param dest: The path to replace. Need not exist.
    :param holding_parent: Directory for the holding area; defaults to the
        parent of ``dest``.
    :raises PartialFailure: If moving ``src`` failed. ``rollback_succeeded``
        tells whether ``dest`` was restored; if not, ``holding_area`` names
        where the original content was left.
    """
    src, dest = os.fspath(src), os.fspath(dest)
    holding_parent = os.path.dirname(dest) if holding_parent is None else os.fspath(holding_parent)
    holding_dir = held = None
    if os.path.lexists(dest):
        holding_dir = tempfile.mkdtemp(prefix=".to_remove_", dir=holding_parent)
        held = os.path.join(holding_dir, os.path.basename(dest))
        try:
            os.replace(dest, held)
        except BaseException:
            os.rmdir(holding_dir)
            raise
    try:
        _move_into_place(src, dest)
    except Exception as exc:
        try:
            if os.path.lexists(dest):
                _remove_path(dest)
            if held is not None:
                _restore_held(held, dest)
        except Exception as rollback_exc:
            log.error("Rollback of %s failed; original content left in %s", dest, held, exc_info=rollback_exc)
            raise PartialFailure(
                f"Could not move {src} to {dest} and could not restore the original",
                path=dest,
                rollback_succeeded=False,
                holding_area=held,
                original_error=exc,
                rollback_error=rollback_exc,
            ) from exc
        if holding_dir is not None:
            os.rmdir(holding_dir)
        raise PartialFailure(
            f"Could not move {src} to {dest}; original content restored",
            path=dest,
            rollback_succeeded=True,
            original_error=exc,
        ) from exc
    if holding_dir is not None:
        shutil.rmtree(holding_dir)


@contextmanager
def open_filesystem(storage: dict[str, Any], dataset: DataSet, *, write: bool = False) -> Iterator[Union[Tree, Blob]]:
    """Opener for the ``FileSystem`` driver.

    ``storage.path`` names a file (``type = "Blob"`` or ``"File"``) or a
    directory (``type = "BlobTree"`` or ``"FileTree"``). With ``write=True`` a
    missing blob may be created and a missing tree is created.
    """
    path = storage_string(storage, "path", dataset)
    type_ = storage_type(storage, dataset, BLOB_TYPES + TREE_TYPES)
    with FileSystemRoot(path, writable=write) as root:
        top = RelPath()
        if type_ in BLOB_TYPES:
            if not root.is_file(top) and not (write and not root.exists(top)):
                raise NotFound(f"{path!r} should be a file", path=path, driver="FileSystem")
            node: Union[Tree, Blob] = Blob(root)
        else:
            if write and not root.exists(top):
                os.makedirs(root.root_path)
            if not root.is_dir(top):
                raise NotFound(f"{path!r} should be a directory", path=path, driver="FileSystem")
            node = Tree(root)
        yield select_fragment(node, dataset)
