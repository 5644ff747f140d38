from __future__ import annotations

from PIL import Image, ImageChops

DEFAULT_TOLERANCE = 40
CHANNELS = 4


class BackgroundRemovalError(ValueError):
    pass


class InvalidBufferShapeError(BackgroundRemovalError):
    pass


class InvalidToleranceError(BackgroundRemovalError):
    pass


def _validate(pixels: bytes | bytearray | memoryview, width: int, height: int, tolerance: int) -> None:
    if isinstance(tolerance, bool) or not isinstance(tolerance, int):
        raise InvalidToleranceError(f"tolerance must be an integer, got {type(tolerance).__name__}")
    if tolerance < 0:
        raise InvalidToleranceError(f"tolerance must be non-negative, got {tolerance}")

    for name, value in (("width", width), ("height", height)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidBufferShapeError(f"{name} must be an integer, got {type(value).__name__}")
    if width <= 0 or height <= 0:
        raise InvalidBufferShapeError(f"image has no pixels ({width}x{height})")
    expected = width * height * CHANNELS
    if len(pixels) != expected:
        raise InvalidBufferShapeError(
            f"buffer length {len(pixels)} does not match {width}x{height}x{CHANNELS}={expected}"
        )


def _channel_mask(band: Image.Image, reference: int, tolerance: int) -> Image.Image:
    table = [255 if abs(value - reference) <= tolerance else 0 for value in range(256)]
    return band.point(table)


def remove_background(
    pixels: bytes | bytearray | memoryview,
    width: int,
    height: int,
    tolerance: int = DEFAULT_TOLERANCE,
) -> bytearray:
    """Make every pixel close to the top-left pixel's color fully transparent.

    ``pixels`` is a row-major interleaved RGBA buffer of exactly
    ``width * height * 4`` bytes. A pixel is background when each of its R, G
    and B values is within ``tolerance`` (inclusive) of the reference pixel at
    (0, 0); its alpha becomes 0. Every other pixel keeps all four channels.

    A writable ``bytearray`` is mutated in place and returned. Read-only input
    is copied first, so the returned buffer is always the result.

    Raises InvalidBufferShapeError or InvalidToleranceError before touching the
    buffer.
    """
    _validate(pixels, width, height, tolerance)

    buffer = pixels if isinstance(pixels, bytearray) else bytearray(pixels)
    image = Image.frombytes("RGBA", (width, height), bytes(buffer))
    red, green, blue, alpha = image.split()
    reference = buffer[0], buffer[1], buffer[2]

    background = _channel_mask(red, reference[0], tolerance)
    for band, value in ((green, reference[1]), (blue, reference[2])):
        background = ImageChops.darker(background, _channel_mask(band, value, tolerance))

    alpha.paste(0, mask=background)
    buffer[:] = Image.merge("RGBA", (red, green, blue, alpha)).tobytes()
    return buffer
