from __future__ import annotations

from dataclasses import dataclass

from pixelcut.domain.background_remover import DEFAULT_TOLERANCE, remove_background
from pixelcut.infrastructure.image_codec import decode_rgba, encode_png


@dataclass
class RemoveBackgroundOptions:
    tolerance: int = DEFAULT_TOLERANCE


class RemoveBackgroundUseCase:
    def execute(self, image_bytes: bytes, options: RemoveBackgroundOptions | None = None) -> bytes:
        if not image_bytes:
            raise ValueError("Uploaded file is empty")

        opts = options or RemoveBackgroundOptions()
        raw = decode_rgba(image_bytes)
        remove_background(raw.pixels, raw.width, raw.height, opts.tolerance)
        return encode_png(raw)
