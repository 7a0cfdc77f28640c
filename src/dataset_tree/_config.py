"""Configuration model — the Data.toml document and the project search path."""

from __future__ import annotations

import dataclasses
import importlib
import logging
import os
import sys
import tomllib
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Optional

import tomli_w

from dataset_tree._errors import InvalidConfiguration

if TYPE_CHECKING:
    from collections.abc import Iterable

log = logging.getLogger(__name__)

CURRENT_DATA_CONFIG_VERSION = 1
"""Version of the Data.toml format written by this package."""

DATA_TOML = "Data.toml"
ACTIVE_PROJECT_ENV = "DATASETS_ACTIVE_PROJECT"
SEARCH_PATH_ENV = "DATASETS_PATH"
TEMPLATE_DIR = "@__DIR__"


def _type_name(expected: type | tuple[type, ...]) -> str:
    if isinstance(expected, tuple):
        return " or ".join(t.__name__ for t in expected)
    return expected.__name__


def check_keys(config: Mapping[str, Any], context: str, expected: Mapping[str, type | tuple[type, ...]]) -> None:
    """Check that ``config`` has every key in ``expected`` with a value of the given type.

    :raises InvalidConfiguration: Listing every missing key, or naming the first
        key of the wrong type.
    """
    missing = [key for key in expected if key not in config]
    if missing:
        raise InvalidConfiguration(f"Missing expected keys in {context}: {missing}")
    check_optional_keys(config, context, expected)


def check_optional_keys(
    config: Mapping[str, Any], context: str, expected: Mapping[str, type | tuple[type, ...]]
) -> None:
    """Like :func:`check_keys`, but keys may be absent."""
    for key, kind in expected.items():
        if key in config and (not isinstance(config[key], kind) or (isinstance(config[key], bool) and kind is int)):
            raise InvalidConfiguration(
                f"Key {key!r} in {context} should be {_type_name(kind)}, not {type(config[key]).__name__}"
            )


def check_string_list(value: Any, context: str) -> None:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise InvalidConfiguration(f"{context} must be a list of strings")


def fill_template(data_dir: str, text: str) -> str:
    """Substitute ``@__DIR__`` with the directory holding the document."""
    if sys.platform == "win32":
        data_dir = data_dir.replace("\\", "/")
    return text.replace(TEMPLATE_DIR, data_dir)


@dataclasses.dataclass(frozen=True)
class DataConfig:
    """The parsed content of a Data.toml document.

    :param data_config_version: Format version of the document.
    :param datasets: One table per dataset.
    :param drivers: Driver modules the project needs, as
        ``{type = "storage", name = ..., module = {name = "pkg.mod"}}`` tables.
    """

    data_config_version: int = CURRENT_DATA_CONFIG_VERSION
    datasets: list[dict[str, Any]] = dataclasses.field(default_factory=list)
    drivers: list[dict[str, Any]] = dataclasses.field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DataConfig:
        """Construct from a plain dict (e.g. parsed TOML).

        :raises InvalidConfiguration: If the document is malformed or newer than supported.
        """
        check_keys(data, "Data.toml", {"data_config_version": int, "datasets": list})
        version = data["data_config_version"]
        if version > CURRENT_DATA_CONFIG_VERSION:
            raise InvalidConfiguration(
                f"data_config_version={version} is newer than supported ({CURRENT_DATA_CONFIG_VERSION}). "
                "Consider upgrading dataset-tree."
            )
        datasets = []
        for conf in data["datasets"]:
            if not isinstance(conf, dict):
                raise InvalidConfiguration(f"Each entry of `datasets` must be a table, not {type(conf).__name__}")
            datasets.append(conf)
        check_optional_keys(data, "Data.toml", {"drivers": list})
        drivers = []
        for conf in data.get("drivers", []):
            if not isinstance(conf, dict):
                raise InvalidConfiguration(f"Each entry of `drivers` must be a table, not {type(conf).__name__}")
            check_keys(conf, "driver entry", {"type": str, "name": str, "module": dict})
            check_keys(conf["module"], "driver module", {"name": str})
            drivers.append(conf)
        return cls(data_config_version=version, datasets=datasets, drivers=drivers)

    @classmethod
    def from_toml(cls, text: str, data_dir: Optional[str] = None) -> DataConfig:
        """Parse a Data.toml document.

        :param data_dir: Directory of the document, substituted for ``@__DIR__``.
        :raises InvalidConfiguration: If the text is not valid TOML or not a valid document.
        """
        if data_dir is not None:
            text = fill_template(data_dir, text)
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise InvalidConfiguration(f"Invalid TOML: {exc}") from None
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"data_config_version": self.data_config_version, "datasets": self.datasets}
        if self.drivers:
            data["drivers"] = self.drivers
        return data

    def to_toml(self) -> str:
        return tomli_w.dumps(self.to_dict())


def load_project_drivers(project: Any) -> list[str]:
    """Import the driver modules listed by ``project.drivers()``.

    A driver module registers its openers when it is imported.

    :returns: Names of the imported modules.
    :raises InvalidConfiguration: If a module cannot be imported.
    """
    loaded = []
    for conf in project.drivers():
        if conf.get("type") != "storage":
            log.debug("Skipping driver entry of type %r", conf.get("type"))
            continue
        module_name = conf["module"]["name"]
        try:
            importlib.import_module(module_name)
        except ImportError as exc:
            raise InvalidConfiguration(
                f"Could not import module {module_name!r} for storage driver {conf['name']!r}: {exc}",
                driver=conf["name"],
            ) from exc
        log.debug("Loaded driver module %r for %r", module_name, conf["name"])
        loaded.append(module_name)
    return loaded


def default_data_toml() -> str:
    """The per-user Data.toml, used for empty search path entries."""
    return os.path.join(os.path.expanduser("~"), ".datasets", DATA_TOML)


def data_toml_path(location: str) -> str:
    """The Data.toml named by ``location``: the path itself if it is a ``.toml``
    file, otherwise ``Data.toml`` inside it."""
    if location.endswith(".toml"):
        return os.path.abspath(location)
    return os.path.abspath(os.path.join(location, DATA_TOML))


@dataclasses.dataclass(frozen=True)
class SearchPathConfig:
    """Where to look for data projects, in search order.

    Each entry is ``"@"`` (the active project), ``""`` (the per-user
    Data.toml) or a path to a Data.toml or to a directory holding one.

    :param entries: The search path entries.
    """

    entries: tuple[str, ...] = ("@", "")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> SearchPathConfig:
        """Read ``DATASETS_PATH``, a list separated by ``os.pathsep``."""
        environ = os.environ if environ is None else environ
        raw = environ.get(SEARCH_PATH_ENV)
        if raw is None:
            return cls()
        return cls(entries=tuple(raw.split(os.pathsep)))

    def locations(self) -> Iterable[Optional[str]]:
        """Data.toml paths in search order; ``None`` stands for the active project."""
        for entry in self.entries:
            if entry == "@":
                yield None
            elif entry == "":
                yield default_data_toml()
            elif os.path.isdir(entry):
                yield os.path.abspath(os.path.join(entry, DATA_TOML))
            else:
                yield os.path.abspath(entry)
