"""Configuration — Data.toml files, the project search path and embedded data.

Demonstrates:
- Building a project in code and saving it with save_project()
- Stacking projects with DATASETS_PATH; the first project naming a dataset wins
- Embedded (TomlDataStorage) datasets, written back to the Data.toml
- Changing dataset metadata with update()
"""

from __future__ import annotations

import os
import tempfile
import uuid

from dataset_tree import DataContext, DataProject, DataSet, Tree, save_project


def _dataset(name: str, **storage: object) -> DataSet:
    return DataSet({"uuid": str(uuid.uuid4()), "name": name, "storage": dict(storage)})


if __name__ == "__main__":
    with tempfile.TemporaryDirectory() as tmp:
        shared_dir = os.path.join(tmp, "shared")
        local_dir = os.path.join(tmp, "local")
        os.makedirs(shared_dir)
        os.makedirs(local_dir)

        # --- Option 1: config-as-code ---
        shared = DataProject(
            [
                _dataset("greeting", driver="TomlDataStorage", type="Blob", data="aGVsbG8gZnJvbSBzaGFyZWQ="),
                _dataset("notes", driver="TomlDataStorage", type="BlobTree", data={}),
            ]
        )
        save_project(os.path.join(shared_dir, "Data.toml"), shared)

        local = DataProject(
            [_dataset("greeting", driver="TomlDataStorage", type="Blob", data="aGVsbG8gZnJvbSBsb2NhbA==")]
        )
        save_project(os.path.join(local_dir, "Data.toml"), local)

        # --- Option 2: the search path, as DATASETS_PATH would give it ---
        environ = {"DATASETS_PATH": os.pathsep.join([local_dir, shared_dir])}
        ctx = DataContext.from_env(environ)
        print(ctx.project.describe())
        print(f"\ngreeting: {ctx.load('greeting', str)}")

        # --- Embedded trees are saved back on a clean exit ---
        with ctx.open("notes", Tree, write=True) as notes:
            notes.new_file("todo.txt", b"write docs\n")
        with open(os.path.join(shared_dir, "Data.toml")) as f:
            print(f"\nShared Data.toml after write:\n{f.read()}")

        # --- Metadata changes are persisted too ---
        ctx.dataset("notes").update(description="Team notes", tags=["team"])
        print(f"notes: {ctx.dataset('notes').description} {ctx.dataset('notes').tags}")

    print("\nDone!")
