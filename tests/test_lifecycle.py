"""Tests for scoped, manual and GC-backed resource release."""

from __future__ import annotations

import gc
from contextlib import contextmanager
from typing import TYPE_CHECKING

import pytest

from dataset_tree._lifecycle import Resource, open_resource

if TYPE_CHECKING:
    from collections.abc import Iterator


class _Tracked:
    def __init__(self) -> None:
        self.events: list[str] = []

    @contextmanager
    def resource(self, name: str, *, fail_on_enter: bool = False, fail_on_exit: bool = False) -> Iterator[str]:
        self.events.append(f"open {name}")
        if fail_on_enter:
            raise RuntimeError(f"cannot open {name}")
        try:
            yield name
        finally:
            self.events.append(f"close {name}")
            if fail_on_exit:
                raise RuntimeError(f"cannot close {name}")


class TestOpenResource:
    """Manual form: the caller closes the Resource."""

    def test_value_and_close(self) -> None:
        tracked = _Tracked()
        res = open_resource(tracked.resource("a"))
        assert res.value == "a"
        assert not res.closed
        res.close()
        assert res.closed
        assert tracked.events == ["open a", "close a"]

    def test_close_is_idempotent(self) -> None:
        tracked = _Tracked()
        res = open_resource(tracked.resource("a"))
        res.close()
        res.close()
        assert tracked.events == ["open a", "close a"]

    def test_context_manager(self) -> None:
        tracked = _Tracked()
        with open_resource(tracked.resource("a")) as value:
            assert value == "a"
        assert tracked.events == ["open a", "close a"]

    def test_failure_on_enter_propagates(self) -> None:
        tracked = _Tracked()
        with pytest.raises(RuntimeError, match="cannot open"):
            open_resource(tracked.resource("a", fail_on_enter=True))

    def test_close_errors_propagate(self) -> None:
        tracked = _Tracked()
        res = open_resource(tracked.resource("a", fail_on_exit=True))
        with pytest.raises(RuntimeError, match="cannot close"):
            res.close()

    def test_repr(self) -> None:
        res = open_resource(_Tracked().resource("a"))
        assert repr(res) == "Resource('a', open)"
        res.close()
        assert repr(res) == "Resource('a', closed)"


class TestGcBacked:
    """The finalizer is a leak backstop keyed on the Resource handle."""

    def test_released_when_handle_collected(self) -> None:
        tracked = _Tracked()
        res = open_resource(tracked.resource("a"), gc_backed=True)
        assert res.gc_backed
        del res
        gc.collect()
        assert tracked.events == ["open a", "close a"]

    def test_explicit_close_detaches_finalizer(self) -> None:
        tracked = _Tracked()
        res = open_resource(tracked.resource("a"), gc_backed=True)
        res.close()
        del res
        gc.collect()
        assert tracked.events == ["open a", "close a"]

    def test_finalizer_errors_are_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        tracked = _Tracked()
        res = open_resource(tracked.resource("a", fail_on_exit=True), gc_backed=True)
        with caplog.at_level("WARNING", logger="dataset_tree._lifecycle"):
            del res
            gc.collect()
        assert "Finalizer cleanup" in caplog.text

    def test_not_gc_backed_by_default(self) -> None:
        res: Resource[str] = open_resource(_Tracked().resource("a"))
        assert not res.gc_backed
        res.close()
