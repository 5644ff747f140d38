from __future__ import annotations

import io
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError


class ImageValidationError(ValueError):
    pass


@dataclass(frozen=True)
class ImageMetadata:
    width: int
    height: int
    format: str


def validate_image_bytes(image_bytes: bytes, max_pixels: int) -> ImageMetadata:
    """Check that the upload decodes as an image and fits within ``max_pixels``."""
    if not image_bytes:
        raise ImageValidationError("Uploaded file is empty")

    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            image.verify()
        # verify() leaves the image unusable, so reopen for the header fields
        with Image.open(io.BytesIO(image_bytes)) as image:
            width, height = image.size
            fmt = (image.format or "").upper() or "UNKNOWN"
    except (UnidentifiedImageError, OSError, SyntaxError, Image.DecompressionBombError) as exc:
        raise ImageValidationError("Invalid or corrupted image file") from exc

    if width <= 0 or height <= 0:
        raise ImageValidationError("Invalid image dimensions")
    if width * height > max_pixels:
        raise ImageValidationError(f"Image too large in pixels. Max allowed is {max_pixels}")

    return ImageMetadata(width=width, height=height, format=fmt)
