from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from PIL import Image, ImageChops, ImageEnhance, ImageFilter, ImageOps

from pixelcut.config import settings
from pixelcut.infrastructure.image_codec import encode_image, open_image

SEPIA_MATRIX = (
    0.393, 0.769, 0.189, 0,
    0.349, 0.686, 0.168, 0,
    0.272, 0.534, 0.131, 0,
)
DEFAULT_QUALITY = 80
OUTPUT_FORMATS = {"jpeg": "jpg", "png": "png", "webp": "webp"}


class TransformationError(ValueError):
    pass


@dataclass
class TransformResult:
    data: bytes
    extension: str


def _tint(image: Image.Image, color: tuple[int, int, int]) -> Image.Image:
    return ImageChops.multiply(image, Image.new("RGB", image.size, color))


def _modulate(image: Image.Image, brightness: float = 1.0, saturation: float = 1.0) -> Image.Image:
    if saturation != 1.0:
        image = ImageEnhance.Color(image).enhance(saturation)
    if brightness != 1.0:
        image = ImageEnhance.Brightness(image).enhance(brightness)
    return image


FILTERS: dict[str, Callable[[Image.Image], Image.Image]] = {
    "grayscale": ImageOps.grayscale,
    "sepia": lambda image: image.convert("RGB", SEPIA_MATRIX),
    "invert": ImageOps.invert,
    "blur": lambda image: image.filter(ImageFilter.GaussianBlur(radius=3)),
    "sharpen": lambda image: image.filter(ImageFilter.SHARPEN),
    "warm": lambda image: _tint(_modulate(image, saturation=1.2), (255, 200, 150)),
    "cool": lambda image: _tint(_modulate(image, saturation=1.1), (150, 200, 255)),
    "vivid": lambda image: _modulate(image, brightness=1.1, saturation=1.5),
}


def _load_rgb(image_bytes: bytes) -> Image.Image:
    with open_image(image_bytes) as image:
        return image.convert("RGB")


def _jpeg(image: Image.Image) -> TransformResult:
    return TransformResult(data=encode_image(image, "JPEG"), extension="jpg")


def resize(
    image_bytes: bytes,
    width: int | None = None,
    height: int | None = None,
    max_pixels: int | None = None,
) -> TransformResult:
    """Resize to the given box; with a single side the aspect ratio is kept, with both the image is cropped to fill."""
    if not width and not height:
        raise TransformationError("width or height is required")
    if (width is not None and width < 0) or (height is not None and height < 0):
        raise TransformationError("width and height must be positive")

    image = _load_rgb(image_bytes)
    source_width, source_height = image.size
    if width and height:
        size = (width, height)
    elif width:
        size = (width, max(1, round(source_height * width / source_width)))
    else:
        size = (max(1, round(source_width * height / source_height)), height)

    limit = settings.max_image_pixels if max_pixels is None else max_pixels
    if size[0] * size[1] > limit:
        raise TransformationError(f"Output too large in pixels. Max allowed is {limit}")

    if width and height:
        return _jpeg(ImageOps.fit(image, size))
    return _jpeg(image.resize(size))


def crop(image_bytes: bytes, width: int, height: int, left: int = 0, top: int = 0) -> TransformResult:
    if width <= 0 or height <= 0:
        raise TransformationError("width and height must be positive")
    if left < 0 or top < 0:
        raise TransformationError("left and top must be non-negative")

    image = _load_rgb(image_bytes)
    if left + width > image.width or top + height > image.height:
        raise TransformationError("crop area is outside the image")
    return _jpeg(image.crop((left, top, left + width, top + height)))


def rotate(image_bytes: bytes, angle: float = 90) -> TransformResult:
    # Pillow rotates counter-clockwise
    image = _load_rgb(image_bytes)
    return _jpeg(image.rotate(-angle, expand=True))


def apply_filter(image_bytes: bytes, name: str) -> TransformResult:
    try:
        operation = FILTERS[name]
    except KeyError as exc:
        raise TransformationError(f"Unknown filter: {name}") from exc
    return _jpeg(operation(_load_rgb(image_bytes)))


def adjust(image_bytes: bytes, brightness: float = 1.0, saturation: float = 1.0) -> TransformResult:
    if brightness < 0 or saturation < 0:
        raise TransformationError("brightness and saturation must be non-negative")
    return _jpeg(_modulate(_load_rgb(image_bytes), brightness=brightness, saturation=saturation))


def convert(image_bytes: bytes, fmt: str, quality: int | None = None) -> TransformResult:
    fmt = (fmt or "").lower()
    if fmt not in OUTPUT_FORMATS:
        raise TransformationError(f"Unsupported format: {fmt or 'none'}")
    if quality is not None and not 1 <= quality <= 100:
        raise TransformationError("quality must be between 1 and 100")

    with open_image(image_bytes) as image:
        if fmt == "png":
            data = encode_image(image, "PNG")
        else:
            data = encode_image(image, fmt, quality or DEFAULT_QUALITY)
    return TransformResult(data=data, extension=OUTPUT_FORMATS[fmt])
