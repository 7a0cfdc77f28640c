"""Quickstart — describe a dataset in a Data.toml, then open it.

Demonstrates:
- Writing a Data.toml with one file dataset and one directory dataset
- Loading the project and looking datasets up by name
- Opening datasets as str, Tree and Blob
"""

from __future__ import annotations

import os
import tempfile
import uuid

from dataset_tree import DataConfig, DataContext, Tree, load_project

if __name__ == "__main__":
    with tempfile.TemporaryDirectory() as tmp:
        os.makedirs(os.path.join(tmp, "data", "images"))
        with open(os.path.join(tmp, "data", "hello.txt"), "w") as f:
            f.write("Hello, world!")
        for name in ["a.png", "b.png"]:
            with open(os.path.join(tmp, "data", "images", name), "wb") as f:
                f.write(b"\x89PNG")

        config = DataConfig(
            datasets=[
                {
                    "uuid": str(uuid.uuid4()),
                    "name": "hello",
                    "description": "A greeting",
                    "storage": {"driver": "FileSystem", "type": "Blob", "path": "@__DIR__/data/hello.txt"},
                },
                {
                    "uuid": str(uuid.uuid4()),
                    "name": "images",
                    "storage": {"driver": "FileSystem", "type": "BlobTree", "path": "@__DIR__/data/images"},
                },
            ]
        )
        with open(os.path.join(tmp, "Data.toml"), "w") as f:
            f.write(config.to_toml())

        project = load_project(os.path.join(tmp, "Data.toml"))
        print(project.describe())

        # Whole content of a file dataset
        print(f"\nhello: {project['hello'].load(str)}")

        # Directory datasets open as trees
        ctx = DataContext(project)
        with ctx.open("images", Tree) as images:
            for blob in images:
                print(f"{blob.name}: {blob.size} bytes")

        # A fragment selects a file inside a directory dataset
        with ctx.open("images#a.png") as blob:
            print(f"\nFragment: {blob}")

    print("\nDone!")
