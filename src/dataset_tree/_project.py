"""Data projects — named collections of datasets, in memory, on disk and stacked."""

from __future__ import annotations

import abc
import logging
import os
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from dataset_tree._cache import CachedParsedFile, write_atomic
from dataset_tree._config import (
    ACTIVE_PROJECT_ENV,
    CURRENT_DATA_CONFIG_VERSION,
    DataConfig,
    SearchPathConfig,
    data_toml_path,
)
from dataset_tree._dataset import DataSet, split_dataspec
from dataset_tree._errors import AlreadyExists, InvalidConfiguration, NotFound

if TYPE_CHECKING:
    from collections.abc import Iterator

log = logging.getLogger(__name__)

_ICONS = {"Blob": "📄", "File": "📄", "BlobTree": "📁", "FileTree": "📁"}


class AbstractDataProject(abc.ABC):
    """A collection of datasets looked up by name.

    Subclasses implement :meth:`get` and :meth:`names`; everything else is
    built on those two. The set of names may change between calls, e.g. when
    the file behind a project is edited, so iteration skips names that have
    disappeared by the time they are looked up.
    """

    @abc.abstractmethod
    def get(self, name: str, default: Any = None) -> Any:
        """Return the dataset bound to ``name``, or ``default``."""

    @abc.abstractmethod
    def names(self) -> list[str]:
        """Names of the datasets in the project."""

    @property
    def project_name(self) -> Optional[str]:
        """An identifier for the project, such as the path of its file."""
        return None

    def drivers(self) -> list[dict[str, Any]]:
        """Driver modules the project needs to open its datasets."""
        return []

    def __getitem__(self, name: str) -> DataSet:
        """Look ``name`` up.

        :raises NotFound: If there is no such dataset.
        """
        dataset = self.get(name)
        if dataset is None:
            raise NotFound(f"DataSet {name!r} not found in {self}")
        return dataset

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def __iter__(self) -> Iterator[DataSet]:
        for _, dataset in self.items():
            yield dataset

    def items(self) -> Iterator[tuple[str, DataSet]]:
        for name in self.names():
            dataset = self.get(name)
            if dataset is not None:
                yield name, dataset

    def dataset(self, spec: str) -> DataSet:
        """Look up a dataset by ``name``, ``name?key=value&...`` or ``name#fragment``.

        With a query or fragment, the result is a view of the dataset carrying
        them as its ``dataspec``; drivers index into tree datasets with the
        fragment.

        :raises InvalidConfiguration: If ``spec`` is malformed.
        :raises NotFound: If there is no such dataset.
        """
        name, query, fragment = split_dataspec(spec)
        dataset = self[name]
        if query is None and fragment is None:
            return dataset
        return dataset.with_dataspec(query, fragment)

    def update(self, name: str, **fields: Any) -> DataSet:
        """Update the configuration of the dataset ``name``; see :meth:`DataSet.update`."""
        return self[name].update(**fields)

    def _dataset_updated(self, dataset: DataSet) -> None:  # noqa: B027
        """Called after ``dataset`` changed. File-backed projects save here."""

    def describe(self) -> str:
        """A listing of the datasets, one per line, sorted by name."""
        header = type(self).__name__ if self.project_name is None else f"{type(self).__name__} [{self.project_name}]"
        entries = sorted(self.items(), key=lambda item: item[0])
        if not entries:
            return f"{header}:\n  (empty)"
        width = max(len(name) for name, _ in entries)
        lines = [f"{header}:"]
        for name, dataset in entries:
            icon = _ICONS.get(dataset.storage.get("type"), "❓")
            lines.append(f"  {icon} {name.ljust(width)} => {dataset.uuid}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        if self.project_name is None:
            return f"{type(self).__name__}()"
        return f"{type(self).__name__}({self.project_name!r})"


class DataProject(AbstractDataProject):
    """An in-memory collection of datasets.

    A name can be bound only once: binding it to a different dataset is an
    error rather than silently shadowing the old one. A dataset belongs to at
    most one project; use :meth:`DataSet.copy` to add it elsewhere.

    :param datasets: Initial datasets, bound under their own names.
    :param drivers: Driver module entries, as in a Data.toml.
    :param owner: A project to notify when a dataset changes, such as the
        file-backed project this one was parsed for.
    """

    def __init__(
        self,
        datasets: Iterable[DataSet] = (),
        *,
        drivers: Iterable[Mapping[str, Any]] = (),
        owner: Optional[AbstractDataProject] = None,
    ) -> None:
        self._datasets: dict[str, DataSet] = {}
        self._drivers = [dict(conf) for conf in drivers]
        self._owner = owner
        for dataset in datasets:
            self.add(dataset)

    @classmethod
    def from_config(cls, config: DataConfig, *, owner: Optional[AbstractDataProject] = None) -> DataProject:
        """Build a project from a parsed Data.toml.

        :raises InvalidConfiguration: If a dataset table is malformed.
        :raises AlreadyExists: If two datasets share a name.
        """
        project = cls(drivers=config.drivers, owner=owner)
        for conf in config.datasets:
            project.add(DataSet(conf))
        return project

    def to_config(self) -> DataConfig:
        return DataConfig(
            data_config_version=CURRENT_DATA_CONFIG_VERSION,
            datasets=[dataset.to_dict() for dataset in self._datasets.values()],
            drivers=[dict(conf) for conf in self._drivers],
        )

    def get(self, name: str, default: Any = None) -> Any:
        return self._datasets.get(name, default)

    def names(self) -> list[str]:
        return list(self._datasets)

    def drivers(self) -> list[dict[str, Any]]:
        return [dict(conf) for conf in self._drivers]

    def add(self, dataset: DataSet, name: Optional[str] = None) -> DataSet:
        """Bind ``dataset`` under ``name`` (default: its own name).

        :raises AlreadyExists: If ``name`` is bound to a different dataset.
        :raises InvalidConfiguration: If ``dataset`` belongs to another project.
        """
        name = dataset.name if name is None else name
        current = self._datasets.get(name)
        if current is dataset:
            return dataset
        if current is not None:
            raise AlreadyExists(f"Name {name!r} is already bound to a different dataset in {self}")
        if dataset.project is not None and dataset.project is not self:
            raise InvalidConfiguration(
                f"DataSet {dataset.name!r} already belongs to {dataset.project}; add a copy() instead"
            )
        dataset._project = self
        self._datasets[name] = dataset
        return dataset

    def __setitem__(self, name: str, dataset: DataSet) -> None:
        self.add(dataset, name)

    def remove(self, name: str) -> DataSet:
        """Unbind ``name`` and release the dataset from this project.

        :raises NotFound: If ``name`` is not bound.
        """
        try:
            dataset = self._datasets.pop(name)
        except KeyError:
            raise NotFound(f"DataSet {name!r} not found in {self}") from None
        if all(other is not dataset for other in self._datasets.values()):
            dataset._project = None
        return dataset

    def __delitem__(self, name: str) -> None:
        self.remove(name)

    def _dataset_updated(self, dataset: DataSet) -> None:
        if self._owner is not None:
            self._owner._dataset_updated(dataset)


class StackedDataProject(AbstractDataProject):
    """Search a stack of projects from first to last; the first hit wins.

    Changing the stack changes only which projects are searched, never the
    datasets inside them.

    :param projects: The projects, in search order.
    """

    def __init__(self, projects: Iterable[AbstractDataProject] = ()) -> None:
        self._projects = list(projects)

    @property
    def projects(self) -> tuple[AbstractDataProject, ...]:
        return tuple(self._projects)

    def get(self, name: str, default: Any = None) -> Any:
        for project in self._projects:
            dataset = project.get(name)
            if dataset is not None:
                return dataset
        return default

    def names(self) -> list[str]:
        names: dict[str, None] = {}
        for project in self._projects:
            names.update(dict.fromkeys(project.names()))
        return list(names)

    def drivers(self) -> list[dict[str, Any]]:
        return [conf for project in self._projects for conf in project.drivers()]

    # region: stack manipulation
    def push(self, project: AbstractDataProject) -> None:
        """Add ``project`` to the end of the search order."""
        self._projects.append(project)

    def push_first(self, project: AbstractDataProject) -> None:
        """Add ``project`` to the front of the search order."""
        self._projects.insert(0, project)

    def pop(self) -> AbstractDataProject:
        return self._projects.pop()

    def pop_first(self) -> AbstractDataProject:
        return self._projects.pop(0)

    def clear(self) -> None:
        self._projects.clear()

    # endregion

    def describe(self) -> str:
        lines = [f"{type(self).__name__}:"]
        for project in self._projects:
            lines.extend("  " + line for line in project.describe().splitlines())
        return "\n".join(lines)


def parse_project(
    content: Union[str, bytes], data_dir: str, *, owner: Optional[AbstractDataProject] = None
) -> DataProject:
    """Parse Data.toml ``content`` from ``data_dir`` into a :class:`DataProject`."""
    text = content.decode("utf-8") if isinstance(content, bytes) else content
    return DataProject.from_config(DataConfig.from_toml(text, data_dir), owner=owner)


class TomlFileDataProject(AbstractDataProject):
    """A project backed by a Data.toml file, following edits to the file.

    Every access re-checks the file through a :class:`CachedParsedFile`, so
    changes made by other programs are seen without an explicit reload. A
    missing file behaves as an empty project. Changes made through this
    project (``update``, ``add``, ``remove``) rewrite the whole file.

    :param path: The Data.toml file.
    """

    def __init__(self, path: Union[str, os.PathLike[str]]) -> None:
        self._path = os.path.abspath(path)
        self._cache: CachedParsedFile[DataProject] = CachedParsedFile(self._path, self._parse)

    def _parse(self, content: bytes) -> DataProject:
        return parse_project(content, os.path.dirname(self._path), owner=self)

    def _current(self) -> Optional[DataProject]:
        return self._cache.get()

    @property
    def path(self) -> str:
        return self._path

    @property
    def project_name(self) -> str:
        return self._path

    def get(self, name: str, default: Any = None) -> Any:
        project = self._current()
        return default if project is None else project.get(name, default)

    def names(self) -> list[str]:
        project = self._current()
        return [] if project is None else project.names()

    def drivers(self) -> list[dict[str, Any]]:
        project = self._current()
        return [] if project is None else project.drivers()

    def add(self, dataset: DataSet, name: Optional[str] = None) -> DataSet:
        """Add ``dataset`` to the file, creating the file if needed."""
        project = self._current() or DataProject(owner=self)
        project.add(dataset, name)
        self._write(project)
        return dataset

    def remove(self, name: str) -> DataSet:
        project = self._current()
        if project is None:
            raise NotFound(f"DataSet {name!r} not found in {self}")
        dataset = project.remove(name)
        self._write(project)
        return dataset

    def save(self) -> None:
        """Write the current content back to the file."""
        self._write(self._current() or DataProject(owner=self))

    def _dataset_updated(self, dataset: DataSet) -> None:
        project = dataset.project
        if isinstance(project, DataProject):
            log.debug("Saving %s after update of %r", self._path, dataset.name)
            self._write(project)

    def _write(self, project: DataProject) -> None:
        self._cache.write(project.to_config().to_toml().encode("utf-8"), value=project)


class ActiveDataProject(AbstractDataProject):
    """The project of the currently active location, which may change at any time.

    The location comes from ``pointer()``, by default the
    ``DATASETS_ACTIVE_PROJECT`` environment variable, and is re-read on every
    access. A location ending in ``.toml`` is the Data.toml itself; any other
    location is a directory holding a Data.toml. When the location changes,
    the cached project is rebuilt for the new file. Without a location the
    project is empty.

    :param pointer: Returns the active location, or ``None``.
    :param environ: Environment to read when no ``pointer`` is given.
    """

    _UNSET = object()

    def __init__(
        self,
        pointer: Optional[Callable[[], Optional[str]]] = None,
        *,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        if pointer is None:
            env = os.environ if environ is None else environ

            def pointer() -> Optional[str]:
                return env.get(ACTIVE_PROJECT_ENV) or None

        self._pointer = pointer
        self._active: Any = self._UNSET
        self._project: Optional[TomlFileDataProject] = None

    def _current(self) -> Optional[TomlFileDataProject]:
        active = self._pointer()
        if active != self._active:
            log.debug("Active data project changed to %r", active)
            self._project = None if active is None else TomlFileDataProject(data_toml_path(active))
            self._active = active
        return self._project

    def pointer(self) -> Optional[str]:
        return self._pointer()

    @property
    def project_name(self) -> Optional[str]:
        project = self._current()
        return None if project is None else project.project_name

    def get(self, name: str, default: Any = None) -> Any:
        project = self._current()
        return default if project is None else project.get(name, default)

    def names(self) -> list[str]:
        project = self._current()
        return [] if project is None else project.names()

    def drivers(self) -> list[dict[str, Any]]:
        project = self._current()
        return [] if project is None else project.drivers()


def load_project(path: Union[str, os.PathLike[str]]) -> TomlFileDataProject:
    """Load the data project stored in the Data.toml at ``path``."""
    return TomlFileDataProject(path)


def save_project(path: Union[str, os.PathLike[str]], project: AbstractDataProject) -> None:
    """Atomically write ``project`` to a Data.toml at ``path``."""
    if isinstance(project, DataProject):
        config = project.to_config()
    else:
        config = DataConfig(
            datasets=[dataset.to_dict() for dataset in project],
            drivers=project.drivers(),
        )
    write_atomic(path, config.to_toml().encode("utf-8"))


def create_project_stack(environ: Optional[Mapping[str, str]] = None) -> StackedDataProject:
    """Build the project stack described by ``DATASETS_PATH``.

    ``@`` stands for the :class:`ActiveDataProject`; every other entry is a
    :class:`TomlFileDataProject`. Files that do not exist yet are included, so
    creating them later makes their datasets visible.
    """
    stack = StackedDataProject()
    for location in SearchPathConfig.from_env(environ).locations():
        if location is None:
            stack.push(ActiveDataProject(environ=environ))
        else:
            stack.push(TomlFileDataProject(location))
    return stack
