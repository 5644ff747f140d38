from __future__ import annotations

from pydantic import BaseModel

from pixelcut.config import settings


class RemoveBackgroundRequest(BaseModel):
    tolerance: int = settings.default_tolerance


class ResizeRequest(BaseModel):
    width: int | None = None
    height: int | None = None


class CropRequest(BaseModel):
    left: int = 0
    top: int = 0
    width: int
    height: int


class RotateRequest(BaseModel):
    angle: float = 90


class FilterRequest(BaseModel):
    filter: str


class AdjustRequest(BaseModel):
    brightness: float = 1.0
    saturation: float = 1.0


class ConvertRequest(BaseModel):
    format: str
    quality: int | None = None
