"""Resource lifecycle — scoped, manual and GC-backed release of opened storage.

Three access forms are supported, in order of preference:

1. Scoped: ``with dataset.open(kind) as x: ...`` releases everything on every
   exit path of the block, before control returns to the caller.
2. Manual: ``res = dataset.open_resource(kind)`` returns a :class:`Resource`
   that the caller must ``close()``.
3. GC-backed: ``res = dataset.open_resource(kind, gc_backed=True)`` also
   releases when the ``Resource`` handle is garbage collected. This is a leak
   backstop only: timing is not guaranteed, so it must never be relied on to
   release a lock or flush a write.
"""

from __future__ import annotations

import logging
import weakref
from contextlib import ExitStack
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from types import TracebackType
    from typing import ContextManager

log = logging.getLogger(__name__)

T = TypeVar("T")


def _release_from_finalizer(stack: ExitStack, description: str) -> None:
    log.debug("Releasing %s from finalizer", description)
    try:
        stack.close()
    except Exception:
        log.warning("Finalizer cleanup of %s failed", description, exc_info=True)


class Resource(Generic[T]):
    """An opened value together with the cleanup that releases it.

    ``close()`` runs the registered cleanup callbacks in reverse order of
    acquisition and propagates their errors. It is idempotent. A
    ``Resource`` is itself a context manager returning ``value``.

    :param value: The opened value.
    :param stack: The exit stack owning the cleanup callbacks.
    :param gc_backed: Also release when this handle is garbage collected.
    """

    def __init__(self, value: T, stack: ExitStack, *, gc_backed: bool = False) -> None:
        self._value = value
        self._stack = stack
        self._closed = False
        self._finalizer = weakref.finalize(self, _release_from_finalizer, stack, repr(value)) if gc_backed else None

    @property
    def value(self) -> T:
        return self._value

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def gc_backed(self) -> bool:
        return self._finalizer is not None

    def close(self) -> None:
        """Release the underlying resources."""
        if self._closed:
            return
        self._closed = True
        if self._finalizer is not None:
            self._finalizer.detach()
        self._stack.close()

    def __enter__(self) -> T:
        return self._value

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"Resource({self._value!r}, {state})"


def open_resource(cm: ContextManager[T], *, gc_backed: bool = False) -> Resource[T]:
    """Enter ``cm`` and hand its cleanup to a :class:`Resource`.

    If entering fails, everything acquired so far is released and the error
    propagates.
    """
    with ExitStack() as stack:
        value = stack.enter_context(cm)
        return Resource(value, stack.pop_all(), gc_backed=gc_backed)
