from __future__ import annotations

from pixelcut.infrastructure.file_storage import LocalFileStorage


if __name__ == "__main__":
    storage = LocalFileStorage()
    storage.ensure_directories()
    print(f"storage-ready:{storage.root.resolve()}")
