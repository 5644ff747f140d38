from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from pathlib import Path

from PIL import Image

from pixelcut.config import settings

UPLOADS = "uploads"
PROCESSED = "processed"
AREAS = (UPLOADS, PROCESSED)

_SAFE_NAME = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9._-]*$")


def is_safe_name(name: str) -> bool:
    return bool(name) and len(name) <= 255 and _SAFE_NAME.match(name) is not None


def _safe_extension(name: str) -> str:
    suffix = Path(name).suffix.lower()
    ext = "".join(ch for ch in suffix[1:] if ch.isalnum())
    return f".{ext}" if ext else ""


class LocalFileStorage:
    """Uploaded and processed images kept in two directories under one root."""

    def __init__(self, root: str | Path | None = None) -> None:
        self._root = Path(root if root is not None else settings.storage_root)

    @property
    def root(self) -> Path:
        return self._root

    def directory(self, area: str) -> Path:
        if area not in AREAS:
            raise ValueError(f"Unknown storage area: {area}")
        return self._root / area

    def ensure_directories(self) -> None:
        for area in AREAS:
            self.directory(area).mkdir(parents=True, exist_ok=True)

    def resolve(self, area: str, filename: str) -> Path:
        if not is_safe_name(filename):
            raise FileNotFoundError(filename)
        path = self.directory(area) / filename
        if not path.is_file():
            raise FileNotFoundError(filename)
        return path

    def save_upload(self, data: bytes, original_name: str) -> str:
        filename = f"{uuid.uuid4()}{_safe_extension(original_name)}"
        (self.directory(UPLOADS) / filename).write_bytes(data)
        return filename

    def save_output(self, data: bytes, extension: str) -> str:
        filename = f"{uuid.uuid4()}.{extension}"
        (self.directory(PROCESSED) / filename).write_bytes(data)
        return filename

    def describe(self, area: str, filename: str) -> dict[str, str | int]:
        path = self.resolve(area, filename)
        with Image.open(path) as image:
            width, height = image.size
        return {
            "filename": filename,
            "path": f"/{area}/{filename}",
            "size": path.stat().st_size,
            "width": width,
            "height": height,
        }

    def iter_files(self) -> list[dict[str, datetime | Path]]:
        items: list[dict[str, datetime | Path]] = []
        for area in AREAS:
            directory = self.directory(area)
            if not directory.is_dir():
                continue
            for path in directory.iterdir():
                try:
                    if not path.is_file():
                        continue
                    mtime = path.stat().st_mtime
                except FileNotFoundError:
                    continue
                modified = datetime.fromtimestamp(mtime, tz=timezone.utc)
                items.append({"path": path, "last_modified": modified})
        return items

    def delete(self, path: Path) -> None:
        path.unlink(missing_ok=True)
