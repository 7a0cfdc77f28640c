"""DataSet — validated metadata describing where a dataset lives and how to open it."""

from __future__ import annotations

import copy
import re
import uuid
from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import unquote

from dataset_tree._config import check_keys, check_optional_keys, check_string_list
from dataset_tree._errors import InvalidConfiguration

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import ContextManager

    from dataset_tree._lifecycle import Resource
    from dataset_tree._project import AbstractDataProject
    from dataset_tree._registry import DriverRegistry

_NAME_SEGMENT = r"[^\W_][\w-]*"
_NAME_PATTERN = re.compile(rf"{_NAME_SEGMENT}(?:[/.]{_NAME_SEGMENT})*")
_DATASPEC_PATTERN = re.compile(r"(?P<name>[^?#]+)(?:\?(?P<query>[^#]*))?(?:#(?P<fragment>.*))?", re.DOTALL)

_READ_ONLY_KEYS = ("uuid", "name")


def is_valid_dataset_name(name: str) -> bool:
    """Check whether ``name`` is a valid dataset name.

    A name starts with a letter or digit and may contain letters, digits,
    ``-`` and ``_``. Hierarchical names separate their segments with ``/``
    or ``.``, and each segment again starts with a letter or digit::

        my_data
        username/data
        org.project.data-2
    """
    return _NAME_PATTERN.fullmatch(name) is not None


def check_dataset_name(name: str) -> None:
    if not is_valid_dataset_name(name):
        raise InvalidConfiguration(
            f"DataSet name {name!r} is invalid. DataSet names must start with a letter or digit "
            "and can contain only letters, digits, `-`, `_`, `/` or `.`"
        )


def validate_dataset_config(config: Mapping[str, Any]) -> None:
    """Validate a dataset table.

    :raises InvalidConfiguration: On the first problem found.
    """
    check_keys(config, "DataSet", {"uuid": str, "storage": dict, "name": str})
    check_keys(config["storage"], "DataSet storage", {"driver": str})
    check_optional_keys(config, "DataSet", {"description": str, "tags": list})
    if "tags" in config:
        check_string_list(config["tags"], "DataSet tags")
    try:
        uuid.UUID(config["uuid"])
    except ValueError:
        raise InvalidConfiguration(f"DataSet uuid {config['uuid']!r} is not a valid UUID") from None
    check_dataset_name(config["name"])


def split_dataspec(spec: str) -> tuple[str, Optional[dict[str, str]], Optional[str]]:
    """Split ``name?key=value&...#fragment`` into its percent-decoded parts.

    :raises InvalidConfiguration: If the name part is not a valid dataset name.
    """
    match = _DATASPEC_PATTERN.fullmatch(spec)
    if match is None or not is_valid_dataset_name(match["name"]):
        raise InvalidConfiguration(f"Invalid dataset specification: {spec!r}")
    query = None
    if match["query"] is not None:
        query = {}
        for pair in match["query"].split("&"):
            if not pair:
                continue
            key, _, value = pair.partition("=")
            query[unquote(key)] = unquote(value)
    fragment = None if match["fragment"] is None else unquote(match["fragment"])
    return match["name"], query, fragment


class DataSet:
    """Metadata for one dataset: its identity, description and storage.

    The configuration is validated on construction. Afterwards it can only be
    changed through :meth:`update`, which also persists the project owning the
    dataset. A dataset belongs to at most one project.

    :param config: The dataset table, with ``uuid``, ``name`` and ``storage``.
    :param project: The project owning the dataset, if any.
    :raises InvalidConfiguration: If ``config`` is malformed.
    """

    def __init__(self, config: Mapping[str, Any], project: Optional[AbstractDataProject] = None) -> None:
        validate_dataset_config(config)
        self._config: dict[str, Any] = copy.deepcopy(dict(config))
        self._uuid = uuid.UUID(self._config["uuid"])
        self._project = project
        self._origin: Optional[DataSet] = None

    # region: attributes
    @property
    def uuid(self) -> uuid.UUID:
        return self._uuid

    @property
    def name(self) -> str:
        return self._config["name"]

    @property
    def description(self) -> Optional[str]:
        return self._config.get("description")

    @property
    def tags(self) -> list[str]:
        return list(self._config.get("tags", []))

    @property
    def storage(self) -> dict[str, Any]:
        return copy.deepcopy(self._config["storage"])

    @property
    def dataspec(self) -> dict[str, Any]:
        """The ``query`` and ``fragment`` given in ``project.dataset("name?query#fragment")``."""
        return copy.deepcopy(self._config.get("dataspec", {}))

    @property
    def config(self) -> dict[str, Any]:
        return copy.deepcopy(self._config)

    @property
    def project(self) -> Optional[AbstractDataProject]:
        return self._project

    def get(self, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self._config.get(key, default))

    def __getitem__(self, key: str) -> Any:
        return copy.deepcopy(self._config[key])

    def __contains__(self, key: object) -> bool:
        return key in self._config

    # endregion

    def to_dict(self) -> dict[str, Any]:
        """The configuration as saved in a Data.toml, without any dataspec."""
        config = self.config
        config.pop("dataspec", None)
        return config

    def copy(self) -> DataSet:
        """An unowned copy of this dataset, which may be added to another project."""
        return DataSet(self.to_dict())

    def with_dataspec(self, query: Optional[dict[str, str]], fragment: Optional[str]) -> DataSet:
        """A view of this dataset carrying a dataspec.

        Updates made through the view are applied to this dataset too.
        """
        config = self.to_dict()
        config["dataspec"] = {}
        if query is not None:
            config["dataspec"]["query"] = query
        if fragment is not None:
            config["dataspec"]["fragment"] = fragment
        view = DataSet(config)
        view._origin = self
        return view

    def update(self, **fields: Any) -> DataSet:
        """Change configuration fields and persist the owning project.

        :raises InvalidConfiguration: For ``uuid`` or ``name``, or a field of the wrong type.
        """
        for key, value in fields.items():
            if key in _READ_ONLY_KEYS:
                raise InvalidConfiguration(f"Cannot modify dataset config with key {key!r}")
            if key == "description" and not isinstance(value, str):
                raise InvalidConfiguration("Dataset description must be a string")
            if key == "tags":
                check_string_list(value, "Dataset tags")
            if key == "storage":
                if not isinstance(value, dict):
                    raise InvalidConfiguration("Dataset storage must be a table")
                check_keys(value, "DataSet storage", {"driver": str})
        self._config.update(copy.deepcopy(fields))
        if self._origin is not None:
            self._origin.update(**fields)
        elif self._project is not None:
            self._project._dataset_updated(self)
        return self

    # region: opening
    def open(
        self, kind: Any = None, *, write: bool = False, registry: Optional[DriverRegistry] = None
    ) -> ContextManager[Any]:
        """Scoped open: ``with dataset.open(str) as text: ...``.

        :param kind: ``None`` for whatever the driver provides, or ``Tree``,
            ``Blob``, ``bytes``, ``str`` or ``typing.BinaryIO``.
        :param write: Open for writing.
        :param registry: Driver registry to use; the process-wide one by default.
        """
        return _registry(registry).open(self, kind, write=write)

    def open_resource(
        self,
        kind: Any = None,
        *,
        write: bool = False,
        gc_backed: bool = False,
        registry: Optional[DriverRegistry] = None,
    ) -> Resource[Any]:
        """Open without a ``with`` block; the caller must ``close()`` the result."""
        return _registry(registry).open_resource(self, kind, write=write, gc_backed=gc_backed)

    def load(self, kind: type = bytes, *, registry: Optional[DriverRegistry] = None) -> Any:
        """Read the whole dataset as ``bytes`` or ``str`` and release it again.

        :raises TypeError: For any other kind; use :meth:`open` instead.
        """
        if kind not in (bytes, str):
            raise TypeError(f"load() only supports bytes and str, not {kind!r}; use open() instead")
        with self.open(kind, registry=registry) as value:
            return value

    # endregion

    def __repr__(self) -> str:
        return f"DataSet(name={self.name!r}, uuid={str(self._uuid)!r})"


def _registry(registry: Optional[DriverRegistry]) -> DriverRegistry:
    if registry is not None:
        return registry
    from dataset_tree._registry import default_registry

    return default_registry()
