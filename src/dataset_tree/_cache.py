"""CachedParsedFile — a parsed view of a file that follows changes on disk."""

from __future__ import annotations

import logging
import os
import stat
import tempfile
import time
import zlib
from typing import Callable, Generic, Optional, TypeVar, Union

log = logging.getLogger(__name__)

T = TypeVar("T")

MTIME_GRANULARITY = 0.1
"""Rough filesystem mtime resolution, in seconds."""


def write_atomic(path: Union[str, os.PathLike[str]], content: bytes) -> None:
    """Replace the file at ``path`` with ``content`` in a single rename.

    The content goes to a temporary file in the same directory first, so a
    reader sees either the old file or the new one. Existing permissions are kept.
    """
    path = os.fspath(path)
    fd, tmp_path = tempfile.mkstemp(dir=os.path.dirname(path) or ".", prefix=".tmp_")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        if os.path.exists(path):
            os.chmod(tmp_path, stat.S_IMODE(os.stat(path).st_mode))
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


class CachedParsedFile(Generic[T]):
    """The content of a file, parsed with ``parser`` and re-parsed when it changes.

    ``get()`` re-stats the file on every call. The content is read again when
    the inode, mtime or size differ from the cached values, or when the file
    was modified within ``granularity`` seconds of the cached mtime: a file
    rewritten faster than the mtime resolution with the same size would
    otherwise go unnoticed. The CRC-32 of the content then decides whether to
    re-parse. This narrows the window for a missed change but cannot close it.

    :param path: The file to follow. It need not exist yet.
    :param parser: Turns the raw file content into a value.
    :param granularity: See above.
    """

    def __init__(
        self,
        path: Union[str, os.PathLike[str]],
        parser: Callable[[bytes], T],
        *,
        granularity: float = MTIME_GRANULARITY,
    ) -> None:
        self._path = os.fspath(path)
        self._parser = parser
        self._granularity = granularity
        self._inode = 0
        self._mtime = 0.0
        self._size = 0
        self._hash: Optional[int] = None
        self._value: Optional[T] = None
        self.get()

    @property
    def path(self) -> str:
        return self._path

    def get(self) -> Optional[T]:
        """Return the parsed value, or ``None`` if the file does not exist."""
        try:
            st = os.stat(self._path)
        except FileNotFoundError:
            return None
        recently_cached = time.time() - self._mtime < self._granularity
        if recently_cached or (st.st_ino, st.st_mtime, st.st_size) != (self._inode, self._mtime, self._size):
            try:
                with open(self._path, "rb") as f:
                    content = f.read()
            except FileNotFoundError:
                return None
            new_hash = zlib.crc32(content)
            if new_hash != self._hash:
                log.debug("Cache of file %r invalid, reparsing", self._path)
                self._value = self._parser(content)
            self._set_state(st, new_hash)
        return self._value

    def write(self, content: bytes, value: Optional[T] = None) -> None:
        """Atomically replace the file with ``content``.

        The new content is written to a temporary file in the same directory
        and renamed over the target. The cache is updated to match, so the
        next ``get()`` does not re-parse.

        :param value: The already parsed form of ``content``; parsed if omitted.
        """
        write_atomic(self._path, content)
        self._value = self._parser(content) if value is None else value
        self._set_state(os.stat(self._path), zlib.crc32(content))

    def _set_state(self, st: os.stat_result, content_hash: int) -> None:
        self._inode = st.st_ino
        self._mtime = st.st_mtime
        self._size = st.st_size
        self._hash = content_hash

    def __repr__(self) -> str:
        return f"CachedParsedFile({self._path!r})"
