"""Shared test fixtures."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any, Callable

import pytest

from dataset_tree._context import set_default_context
from dataset_tree._registry import DriverRegistry

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def make_config() -> Callable[..., dict[str, Any]]:
    """Factory for dataset tables: ``make_config("name", driver="FileSystem", type="Blob", ...)``."""

    def factory(name: str = "data", *, driver: str = "FileSystem", **storage: Any) -> dict[str, Any]:
        return {"uuid": str(uuid.uuid4()), "name": name, "storage": {"driver": driver, **storage}}

    return factory


@pytest.fixture
def registry() -> DriverRegistry:
    """A private registry holding the built-in drivers."""
    return DriverRegistry.with_builtins()


@pytest.fixture
def isolated_environ(tmp_path: Any, monkeypatch: pytest.MonkeyPatch) -> Iterator[dict[str, str]]:
    """Point the search path and active project at an empty temporary directory."""
    monkeypatch.setenv("DATASETS_PATH", str(tmp_path / "Data.toml"))
    monkeypatch.delenv("DATASETS_ACTIVE_PROJECT", raising=False)
    previous = set_default_context(None)
    yield {"DATASETS_PATH": str(tmp_path / "Data.toml")}
    set_default_context(previous)
