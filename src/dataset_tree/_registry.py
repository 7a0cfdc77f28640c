"""Driver registry — binds storage driver names to openers."""

from __future__ import annotations

import copy
import logging
import threading
from contextlib import ExitStack, contextmanager, nullcontext
from typing import TYPE_CHECKING, Any, Callable

from dataset_tree._errors import DataSetsError, DriverError, InvalidConfiguration, NotFound
from dataset_tree._lifecycle import Resource, open_resource
from dataset_tree._tree import open_as

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from dataset_tree._dataset import DataSet

log = logging.getLogger(__name__)

Opener = Callable[..., Any]
"""``(storage_config, dataset, *, write=False)`` returning a context manager
that yields a ``Root``, ``Tree`` or ``Blob``, or one of those directly."""


def _is_context_manager(obj: object) -> bool:
    return hasattr(obj, "__enter__") and hasattr(obj, "__exit__")


class DriverRegistry:
    """Thread-safe mapping from driver name to opener.

    Drivers may register themselves while modules are being imported
    concurrently, so every read and write of the table takes the lock.
    Registering under an existing name replaces the previous opener.

    :param drivers: Initial name to opener bindings.
    """

    def __init__(self, drivers: Mapping[str, Opener] | None = None) -> None:
        self._lock = threading.RLock()
        self._drivers: dict[str, Opener] = dict(drivers or {})

    @classmethod
    def with_builtins(cls) -> DriverRegistry:
        """Create a registry holding the built-in drivers."""
        registry = cls()
        _register_builtin_drivers(registry)
        return registry

    def __repr__(self) -> str:
        return f"DriverRegistry(drivers={self.names()!r})"

    def register(self, name: str, opener: Opener) -> None:
        """Bind ``name`` to ``opener``. The last registration wins."""
        with self._lock:
            replaced = name in self._drivers
            self._drivers[name] = opener
        if replaced:
            log.info("Storage driver %r replaced by %r", name, opener)
        else:
            log.debug("Registered storage driver %r", name)

    def unregister(self, name: str) -> Opener:
        """Remove and return the opener bound to ``name``.

        :raises NotFound: If no driver is registered under ``name``.
        """
        with self._lock:
            if name not in self._drivers:
                raise NotFound(f"Storage driver {name!r} is not registered", driver=name)
            return self._drivers.pop(name)

    def get(self, name: str) -> Opener | None:
        with self._lock:
            return self._drivers.get(name)

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._drivers)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._drivers

    def resolve(self, dataset: DataSet) -> Opener:
        """Find the opener for ``dataset.storage["driver"]``.

        :raises InvalidConfiguration: If the dataset names no driver.
        :raises NotFound: If the driver is not registered.
        """
        driver = dataset.storage.get("driver")
        if not isinstance(driver, str):
            raise InvalidConfiguration(f"`storage.driver` configuration not found for dataset {dataset.name!r}")
        with self._lock:
            opener = self._drivers.get(driver)
            available = sorted(self._drivers)
        if opener is None:
            raise NotFound(
                f"Storage driver {driver!r} not found for dataset {dataset.name!r}. Current drivers are {available}",
                driver=driver,
            )
        return opener

    def _enter_driver(self, stack: ExitStack, dataset: DataSet, write: bool) -> Any:
        opener = self.resolve(dataset)
        driver = dataset.storage["driver"]
        kwargs = {"write": True} if write else {}
        log.debug("Opening dataset %r with driver %r (write=%s)", dataset.name, driver, write)
        try:
            result = opener(copy.deepcopy(dataset.storage), dataset, **kwargs)
            return stack.enter_context(result if _is_context_manager(result) else nullcontext(result))
        except DataSetsError:
            raise
        except Exception as exc:
            raise DriverError(
                f"Driver {driver!r} failed to open dataset {dataset.name!r}: {exc}",
                driver=driver,
                dataset=dataset.name,
            ) from exc

    @contextmanager
    def open(self, dataset: DataSet, kind: Any = None, *, write: bool = False) -> Iterator[Any]:
        """Scoped open of ``dataset`` as ``kind``.

        The driver's cleanup and the conversion to ``kind`` are released in
        reverse order of acquisition on every exit path of the block.
        """
        with ExitStack() as stack:
            storage = self._enter_driver(stack, dataset, write)
            yield stack.enter_context(open_as(storage, kind, write=write))

    def open_resource(
        self, dataset: DataSet, kind: Any = None, *, write: bool = False, gc_backed: bool = False
    ) -> Resource[Any]:
        """Manual (or GC-backed) open of ``dataset`` as ``kind``."""
        return open_resource(self.open(dataset, kind, write=write), gc_backed=gc_backed)


def _register_builtin_drivers(registry: DriverRegistry) -> None:
    """Register the built-in drivers."""
    from dataset_tree.drivers._archive import open_zip_archive
    from dataset_tree.drivers._embedded import open_embedded
    from dataset_tree.drivers._filesystem import open_filesystem

    registry.register("FileSystem", open_filesystem)
    registry.register("TomlDataStorage", open_embedded)
    registry.register("ZipArchive", open_zip_archive)


# Process-wide registry, created on first use. Drivers registered with
# register_driver() land here; core code accepts an explicit registry.
_DEFAULT_REGISTRY: DriverRegistry | None = None
_DEFAULT_REGISTRY_LOCK = threading.Lock()


def default_registry() -> DriverRegistry:
    """Return the process-wide registry, populating built-ins on first use."""
    global _DEFAULT_REGISTRY
    with _DEFAULT_REGISTRY_LOCK:
        if _DEFAULT_REGISTRY is None:
            _DEFAULT_REGISTRY = DriverRegistry.with_builtins()
        return _DEFAULT_REGISTRY


def register_driver(name: str, opener: Opener) -> None:
    """Register ``opener`` under ``name`` in the process-wide registry.

    :param name: The driver identifier used in ``storage.driver``.
    :param opener: The opener to call for datasets using this driver.
    """
    default_registry().register(name, opener)
