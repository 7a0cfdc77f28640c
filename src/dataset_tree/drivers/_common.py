"""Helpers shared by the built-in drivers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Union

from dataset_tree._errors import InvalidConfiguration, InvalidPath
from dataset_tree._path import RelPath
from dataset_tree._tree import Blob, Tree

if TYPE_CHECKING:
    from dataset_tree._dataset import DataSet

BLOB_TYPES = ("Blob", "File")
TREE_TYPES = ("BlobTree", "FileTree")


def storage_type(storage: dict[str, Any], dataset: DataSet, allowed: tuple[str, ...]) -> str:
    """Return ``storage["type"]`` after checking it is one of ``allowed``.

    :raises InvalidConfiguration: If the type is missing or not allowed.
    """
    type_ = storage.get("type")
    if type_ not in allowed:
        raise InvalidConfiguration(
            f"Unsupported storage type {type_!r} for dataset {dataset.name!r}; expected one of {list(allowed)}",
            driver=storage.get("driver"),
        )
    return type_


def storage_string(storage: dict[str, Any], key: str, dataset: DataSet) -> str:
    value = storage.get(key)
    if not isinstance(value, str):
        raise InvalidConfiguration(
            f"`storage.{key}` must be a string for dataset {dataset.name!r}",
            driver=storage.get("driver"),
        )
    return value


def select_fragment(node: Union[Tree, Blob], dataset: DataSet) -> Union[Tree, Blob]:
    """Index into ``node`` with the dataset's dataspec fragment, if it has one.

    ``dataset("name#a/b")`` selects ``a/b`` inside a tree dataset.
    """
    fragment = dataset.dataspec.get("fragment")
    if not fragment:
        return node
    if not isinstance(node, Tree):
        raise InvalidPath(f"Cannot select {fragment!r} inside a blob dataset", path=fragment)
    selected = node[RelPath(fragment)]
    if not isinstance(selected, (Tree, Blob)):
        raise InvalidPath(f"Fragment {fragment!r} is neither a tree nor a blob", path=fragment)
    return selected
