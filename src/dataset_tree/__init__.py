"""Uniform tree and blob access to datasets stored on any backend."""

from dataset_tree._cache import CachedParsedFile
from dataset_tree._capabilities import Capability, CapabilitySet
from dataset_tree._config import CURRENT_DATA_CONFIG_VERSION, DataConfig, SearchPathConfig, load_project_drivers
from dataset_tree._context import DataContext, dataset, default_context, set_default_context
from dataset_tree._dataset import DataSet, is_valid_dataset_name
from dataset_tree._errors import (
    AlreadyExists,
    AlreadyMoved,
    CapabilityNotSupported,
    DataSetsError,
    DriverError,
    InvalidConfiguration,
    InvalidPath,
    NotFound,
    PartialFailure,
    PermissionDenied,
    ReadOnlyViolation,
)
from dataset_tree._lifecycle import Resource, open_resource
from dataset_tree._path import AbsPath, RelPath
from dataset_tree._project import (
    AbstractDataProject,
    ActiveDataProject,
    DataProject,
    StackedDataProject,
    TomlFileDataProject,
    create_project_stack,
    load_project,
    save_project,
)
from dataset_tree._registry import DriverRegistry, default_registry, register_driver
from dataset_tree._root import Root
from dataset_tree._tree import Blob, Tree, copy_tree, show_tree
from dataset_tree.drivers import newdir, newfile, temporary_dir

__version__ = "0.1.0"

__all__ = [
    # Core
    "DataSet",
    "Tree",
    "Blob",
    "Root",
    "dataset",
    "is_valid_dataset_name",
    # Paths
    "RelPath",
    "AbsPath",
    # Projects
    "AbstractDataProject",
    "DataProject",
    "StackedDataProject",
    "TomlFileDataProject",
    "ActiveDataProject",
    "create_project_stack",
    "load_project",
    "save_project",
    "CachedParsedFile",
    # Drivers & lifecycle
    "DriverRegistry",
    "default_registry",
    "register_driver",
    "Resource",
    "open_resource",
    "DataContext",
    "default_context",
    "set_default_context",
    # Trees
    "copy_tree",
    "show_tree",
    "newdir",
    "newfile",
    "temporary_dir",
    # Capabilities
    "Capability",
    "CapabilitySet",
    # Config
    "DataConfig",
    "SearchPathConfig",
    "CURRENT_DATA_CONFIG_VERSION",
    "load_project_drivers",
    # Errors
    "DataSetsError",
    "NotFound",
    "AlreadyExists",
    "InvalidPath",
    "InvalidConfiguration",
    "PermissionDenied",
    "AlreadyMoved",
    "CapabilityNotSupported",
    "ReadOnlyViolation",
    "PartialFailure",
    "DriverError",
    # Version
    "__version__",
]
