"""DataContext — an explicit project stack and driver registry to open datasets with."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any, Optional

from dataset_tree._config import load_project_drivers
from dataset_tree._project import AbstractDataProject, StackedDataProject, create_project_stack
from dataset_tree._registry import DriverRegistry, default_registry

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import ContextManager

    from dataset_tree._dataset import DataSet
    from dataset_tree._lifecycle import Resource


class DataContext:
    """Pairs the projects to search with the registry to open datasets through.

    :param project: Where datasets are looked up; an empty stack by default.
    :param registry: The driver registry; the process-wide one by default.
    """

    def __init__(
        self,
        project: Optional[AbstractDataProject] = None,
        registry: Optional[DriverRegistry] = None,
    ) -> None:
        self.project = StackedDataProject() if project is None else project
        self.registry = default_registry() if registry is None else registry

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, registry: Optional[DriverRegistry] = None
    ) -> DataContext:
        """Build the project stack from ``DATASETS_PATH`` and import the drivers it lists."""
        context = cls(create_project_stack(environ), registry)
        load_project_drivers(context.project)
        return context

    def dataset(self, spec: str) -> DataSet:
        """See :meth:`AbstractDataProject.dataset`."""
        return self.project.dataset(spec)

    def open(self, spec: str, kind: Any = None, *, write: bool = False) -> ContextManager[Any]:
        """Scoped open of the dataset named by ``spec``."""
        return self.registry.open(self.dataset(spec), kind, write=write)

    def open_resource(
        self, spec: str, kind: Any = None, *, write: bool = False, gc_backed: bool = False
    ) -> Resource[Any]:
        return self.registry.open_resource(self.dataset(spec), kind, write=write, gc_backed=gc_backed)

    def load(self, spec: str, kind: type = bytes) -> Any:
        return self.dataset(spec).load(kind, registry=self.registry)

    def __repr__(self) -> str:
        return f"DataContext({self.project!r}, {self.registry!r})"


_DEFAULT_CONTEXT: Optional[DataContext] = None
_DEFAULT_CONTEXT_LOCK = threading.Lock()


def default_context() -> DataContext:
    """The process-wide context, built from the environment on first use."""
    global _DEFAULT_CONTEXT
    with _DEFAULT_CONTEXT_LOCK:
        if _DEFAULT_CONTEXT is None:
            _DEFAULT_CONTEXT = DataContext.from_env()
        return _DEFAULT_CONTEXT


def set_default_context(context: Optional[DataContext]) -> Optional[DataContext]:
    """Replace the process-wide context and return the previous one.

    ``None`` resets it, so the next :func:`default_context` call rebuilds it.
    """
    global _DEFAULT_CONTEXT
    with _DEFAULT_CONTEXT_LOCK:
        previous, _DEFAULT_CONTEXT = _DEFAULT_CONTEXT, context
    return previous


def dataset(spec: str) -> DataSet:
    """Look up ``spec`` in the process-wide context."""
    return default_context().dataset(spec)
