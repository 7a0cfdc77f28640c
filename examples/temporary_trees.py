"""Temporary trees — build output off to the side, then move it into place.

Demonstrates the write pattern that keeps readers from seeing half-written
output: fill a temporary directory or file, then assign it into a tree with
``tree[name] = temp``. Existing content at ``name`` is replaced, and restored
if the move fails.
"""

from __future__ import annotations

import tempfile

from dataset_tree import AlreadyMoved, Tree, newdir, newfile, show_tree, temporary_dir
from dataset_tree.drivers import FileSystemRoot

if __name__ == "__main__":
    with tempfile.TemporaryDirectory() as tmp:
        output = Tree(FileSystemRoot(tmp, writable=True))

        # --- A whole directory, built in a temporary tree ---
        temp = newdir()
        temp.new_file("summary.csv", b"region,total\nnorth,10\n")
        temp.new_file("parts/part-0.csv", b"north,4\n")
        temp.new_file("parts/part-1.csv", b"north,6\n")
        output["report"] = temp
        print(show_tree(output))

        # The temporary handle now belongs to the destination
        try:
            temp.new_file("late.csv", b"")
        except AlreadyMoved as exc:
            print(f"\nExpected error: {exc}")

        # --- Replacing existing output ---
        with temporary_dir() as replacement:
            replacement.new_file("summary.csv", b"region,total\nsouth,3\n")
            output["report"] = replacement
        print(f"\nAfter replace: {output['report'].names()}")

        # --- A single file, written by a callback ---
        output["README.txt"] = newfile(lambda stream: stream.write(b"Generated output.\n"))
        print(f"README: {output['README.txt'].read_text().strip()}")

    print("\nDone!")
