"""Load, resize, rotate and save JPEG/PNG/GIF images with Pillow."""

from __future__ import annotations

from .errors import (
    EncodeError,
    ImageClosedError,
    ImageError,
    ImageNotFoundError,
    InvalidTransformError,
    UnsupportedImageError,
)
from .image import EncodedImage, ImageFormat, ImageHelper, ImageMetadata, open_image
from .models.config import Background, HelperConfig, TransformStep
from .result import Result
from .sizing import Placement, ResizeMode

__version__ = "1.0.0"

__all__ = [
    "Background",
    "EncodeError",
    "EncodedImage",
    "HelperConfig",
    "ImageClosedError",
    "ImageError",
    "ImageFormat",
    "ImageHelper",
    "ImageMetadata",
    "ImageNotFoundError",
    "InvalidTransformError",
    "Placement",
    "ResizeMode",
    "Result",
    "TransformStep",
    "UnsupportedImageError",
    "open_image",
]
