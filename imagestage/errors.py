"""Error types reported by image helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class ImageError(RuntimeError):
    """Base exception for everything an :class:`~imagestage.image.ImageHelper` reports."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class ImageNotFoundError(ImageError):
    """The source path does not exist or is not a regular file."""


class UnsupportedImageError(ImageError):
    """The source file exists but cannot be decoded as JPEG, PNG or GIF."""


class InvalidTransformError(ImageError):
    """Requested dimensions or options cannot be applied to the image."""


class EncodeError(ImageError):
    """Encoding the image or writing it to its destination failed."""


class ImageClosedError(ImageError):
    """The helper has already released its image."""


__all__ = [
    "EncodeError",
    "ImageClosedError",
    "ImageError",
    "ImageNotFoundError",
    "InvalidTransformError",
    "UnsupportedImageError",
]
