"""Built-in storage drivers."""

from dataset_tree.drivers._archive import ArchiveEntry, ArchiveRoot, open_zip_archive
from dataset_tree.drivers._embedded import EmbeddedRoot, decode_data, encode_data, open_embedded
from dataset_tree.drivers._filesystem import (
    FileSystemRoot,
    TempRoot,
    newdir,
    newfile,
    open_filesystem,
    replace_with_rollback,
    temporary_dir,
)

__all__ = [
    "ArchiveEntry",
    "ArchiveRoot",
    "EmbeddedRoot",
    "FileSystemRoot",
    "TempRoot",
    "decode_data",
    "encode_data",
    "newdir",
    "newfile",
    "open_embedded",
    "open_filesystem",
    "open_zip_archive",
    "replace_with_rollback",
    "temporary_dir",
]
