from __future__ import annotations

import io
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError


class ImageDecodeError(ValueError):
    pass


@dataclass
class RawImage:
    pixels: bytearray
    width: int
    height: int


def open_image(image_bytes: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ImageDecodeError("Invalid or corrupted image file") from exc
    return image


def decode_rgba(image_bytes: bytes) -> RawImage:
    """Decode any supported image into interleaved RGBA bytes, adding alpha when missing."""
    with open_image(image_bytes) as image:
        rgba = image.convert("RGBA")
        width, height = rgba.size
        return RawImage(pixels=bytearray(rgba.tobytes()), width=width, height=height)


def encode_png(raw: RawImage) -> bytes:
    image = Image.frombytes("RGBA", (raw.width, raw.height), bytes(raw.pixels))
    output = io.BytesIO()
    image.save(output, format="PNG")
    return output.getvalue()


def encode_image(image: Image.Image, fmt: str, quality: int | None = None) -> bytes:
    fmt = fmt.upper()
    if fmt == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    params: dict[str, int] = {}
    if quality is not None and fmt in {"JPEG", "WEBP"}:
        params["quality"] = quality

    output = io.BytesIO()
    image.save(output, format=fmt, **params)
    return output.getvalue()
