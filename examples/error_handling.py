"""Error handling — catching NotFound, ReadOnlyViolation, InvalidConfiguration, etc.

Demonstrates the error hierarchy and how to handle errors programmatically
using their structured attributes.
"""

from __future__ import annotations

import tempfile
import uuid

from dataset_tree import (
    DataProject,
    DataSet,
    DataSetsError,
    InvalidConfiguration,
    NotFound,
    ReadOnlyViolation,
    Tree,
)
from dataset_tree.drivers import FileSystemRoot

if __name__ == "__main__":
    with tempfile.TemporaryDirectory() as tmp:
        tree = Tree(FileSystemRoot(tmp))

        # --- NotFound ---
        try:
            tree["missing.txt"]
        except NotFound as exc:
            print(f"NotFound: {exc}")
            print(f"  path={exc.path!r}, driver={exc.driver!r}")

        # --- ReadOnlyViolation: the root was not opened for writing ---
        try:
            tree.new_file("new.txt", b"data")
        except ReadOnlyViolation as exc:
            print(f"\nReadOnlyViolation: {exc}")
            print(f"  capability={exc.capability!r}")

        # --- InvalidConfiguration: malformed dataset tables ---
        try:
            DataSet({"uuid": "not-a-uuid", "name": "x", "storage": {"driver": "FileSystem"}})
        except InvalidConfiguration as exc:
            print(f"\nInvalidConfiguration: {exc}")

        # --- Unknown drivers are reported with the registered names ---
        project = DataProject(
            [DataSet({"uuid": str(uuid.uuid4()), "name": "remote", "storage": {"driver": "S3", "type": "Blob"}})]
        )
        try:
            project["remote"].load()
        except NotFound as exc:
            print(f"\nNotFound: {exc}")

        # --- Catch-all: every error is a DataSetsError ---
        try:
            project.dataset("_invalid_name")
        except DataSetsError as exc:
            print(f"\nDataSetsError ({type(exc).__name__}): {exc}")

    print("\nDone!")
