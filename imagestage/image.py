"""Pillow-backed image helper: load, resize, rotate, output and save.

An :class:`ImageHelper` owns one decoded Pillow image (the *stage*).
Every transform replaces the stage in place and returns a
:class:`~imagestage.result.Result` wrapping the same helper so calls can be
chained with :meth:`Result.and_then`.  The metadata captured while
decoding never changes; :attr:`ImageHelper.width` and
:attr:`ImageHelper.height` report the live stage instead.
"""

from __future__ import annotations

import io
import logging
import math
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Optional, Sequence, Union

from PIL import Image, ImageOps, UnidentifiedImageError

from . import sizing
from .errors import (
    EncodeError,
    ImageClosedError,
    ImageError,
    ImageNotFoundError,
    InvalidTransformError,
    UnsupportedImageError,
)
from .models.config import Background, HelperConfig, TransformStep
from .result import Result
from .sizing import Placement, ResizeMode
from .storage.files import write_file

logger = logging.getLogger(__name__)

BackgroundLike = Union[Background, str, Sequence[float], None]
PathLike = Union[str, Path]

_RESAMPLE = Image.Resampling.LANCZOS
_ROTATE_RESAMPLE = Image.Resampling.BICUBIC
_MODE_BITS = {"1": 1, "I;16": 16, "I;16B": 16, "I;16L": 16, "I": 32, "F": 32}


class ImageFormat(str, Enum):
    JPEG = "jpeg"
    PNG = "png"
    GIF = "gif"

    @property
    def mime(self) -> str:
        return f"image/{self.value}"

    @property
    def pillow_format(self) -> str:
        return self.value.upper()

    @classmethod
    def parse(cls, value: Union["ImageFormat", str]) -> "ImageFormat":
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower().lstrip(".")
        if text == "jpg":
            text = "jpeg"
        try:
            return cls(text)
        except ValueError as exc:
            raise ValueError(f"Unsupported image format: {value!r}") from exc

    @classmethod
    def from_path(cls, path: PathLike) -> "ImageFormat":
        return cls.parse(Path(path).suffix)


@dataclass(frozen=True)
class ImageMetadata:
    """Snapshot of the decoded file, taken once at load time."""

    width: int
    height: int
    format: ImageFormat
    bits: int
    channels: int
    mime: str

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["format"] = self.format.value
        return data


@dataclass(frozen=True)
class EncodedImage:
    content: bytes
    format: ImageFormat

    @property
    def media_type(self) -> str:
        return self.format.mime

    def __len__(self) -> int:
        return len(self.content)


def _has_alpha(image: Image.Image) -> bool:
    return image.mode in {"RGBA", "LA", "PA", "RGBa", "La"} or "transparency" in image.info


def _read_metadata(image: Image.Image, fmt: ImageFormat) -> ImageMetadata:
    bands = len(image.getbands())
    if image.mode == "P":
        # palette entries expand to RGB(A) when decoded
        bands = 4 if "transparency" in image.info else 3
    return ImageMetadata(
        width=image.width,
        height=image.height,
        format=fmt,
        bits=_MODE_BITS.get(image.mode, 8),
        channels=bands,
        mime=fmt.mime,
    )


class ImageHelper:
    """Owns a decoded image and applies chained geometric transforms to it."""

    def __init__(
        self,
        image: Image.Image,
        metadata: ImageMetadata,
        *,
        path: Optional[Path] = None,
        config: Optional[HelperConfig] = None,
    ) -> None:
        self._image: Optional[Image.Image] = image
        self.metadata = metadata
        self.path = path
        self.config = config or HelperConfig()

    # ------------------------------------------------------------------
    # construction / lifecycle
    # ------------------------------------------------------------------
    @classmethod
    def open(cls, path: PathLike, config: Optional[HelperConfig] = None) -> Result["ImageHelper"]:
        """Decode ``path`` into a new helper.

        Returns a failed result with :class:`ImageNotFoundError` when the path
        is missing or not a regular file, and :class:`UnsupportedImageError`
        when it does not decode as JPEG, PNG or GIF.
        """

        config = config or HelperConfig()
        source = Path(path)
        if not source.exists() or not source.is_file():
            return _report(ImageNotFoundError(f"File `{source}` does not exist.", source), config)

        try:
            with Image.open(source) as raw:
                try:
                    fmt = ImageFormat.parse(raw.format or "")
                except ValueError as exc:
                    raise UnsupportedImageError(
                        f"File `{source}` is a {raw.format or 'unknown'} image; only JPEG, PNG and GIF are supported.",
                        source,
                    ) from exc
                metadata = _read_metadata(raw, fmt)
                stage = raw
                if config.auto_orient:
                    stage = ImageOps.exif_transpose(raw)
                stage = stage.convert("RGBA" if _has_alpha(raw) else "RGB")
        except UnsupportedImageError as exc:
            return _report(exc, config)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
            return _report(UnsupportedImageError(f"File `{source}` is not an image: {exc}", source), config)

        logger.debug("Loaded %s (%dx%d %s)", source, metadata.width, metadata.height, fmt.value)
        return Result.success(cls(stage, metadata, path=source, config=config))

    @property
    def closed(self) -> bool:
        return self._image is None

    def close(self) -> None:
        """Release the stage image. Safe to call more than once."""

        image, self._image = self._image, None
        if image is not None:
            image.close()

    def __enter__(self) -> "ImageHelper":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        if self._image is None:
            return f"<ImageHelper {self.path} closed>"
        return f"<ImageHelper {self.path} {self._image.width}x{self._image.height} {self._image.mode}>"

    # ------------------------------------------------------------------
    # accessors
    # ------------------------------------------------------------------
    @property
    def width(self) -> Optional[int]:
        return None if self._image is None else self._image.width

    @property
    def height(self) -> Optional[int]:
        return None if self._image is None else self._image.height

    @property
    def size(self) -> Optional[tuple[int, int]]:
        return None if self._image is None else self._image.size

    @property
    def image(self) -> Optional[Image.Image]:
        return self._image

    def get_data(self, key: Optional[str] = None) -> Any:
        """Return one metadata field by name, or all of them when ``key`` is unknown."""

        data = self.metadata.as_dict()
        if key is not None and key in data:
            return data[key]
        return data

    # ------------------------------------------------------------------
    # resizing
    # ------------------------------------------------------------------
    def resize(
        self,
        mode: Union[ResizeMode, str],
        *,
        width: Optional[float] = None,
        height: Optional[float] = None,
        length: Optional[float] = None,
        percent: Optional[float] = None,
        background: BackgroundLike = None,
    ) -> Result["ImageHelper"]:
        if self._image is None:
            return self._closed()
        try:
            placement = sizing.compute(
                mode,
                self._image.width,
                self._image.height,
                width=width,
                height=height,
                length=length,
                percent=percent,
            )
        except InvalidTransformError as exc:
            return self._fail(exc)
        try:
            fill = Background.coerce(background)
        except ValueError as exc:
            return self._fail(InvalidTransformError(f"Invalid background: {exc}", self.path))
        limit = Image.MAX_IMAGE_PIXELS
        pixels = max(placement.canvas_width * placement.canvas_height, placement.width * placement.height)
        if limit and pixels > limit:
            return self._fail(
                InvalidTransformError(
                    f"Resizing to {placement.width}x{placement.height} exceeds {limit} pixels",
                    self.path,
                )
            )
        if fill is None and ResizeMode(mode) is ResizeMode.FIT:
            fill = self.config.default_background()
        try:
            rendered = self._render(placement, fill)
        except (OverflowError, MemoryError, ValueError) as exc:
            return self._fail(
                InvalidTransformError(f"Cannot resize to {placement.width}x{placement.height}: {exc}", self.path)
            )
        self._replace(rendered)
        return Result.success(self)

    def resize_deform(self, width: float, height: float) -> Result["ImageHelper"]:
        return self.resize(ResizeMode.DEFORM, width=width, height=height)

    def resize_fill(self, width: float, height: float) -> Result["ImageHelper"]:
        return self.resize(ResizeMode.FILL, width=width, height=height)

    def resize_fit(self, width: float, height: float, background: BackgroundLike = None) -> Result["ImageHelper"]:
        return self.resize(ResizeMode.FIT, width=width, height=height, background=background)

    def resize_width(self, width: float) -> Result["ImageHelper"]:
        return self.resize(ResizeMode.WIDTH, width=width)

    def resize_height(self, height: float) -> Result["ImageHelper"]:
        return self.resize(ResizeMode.HEIGHT, height=height)

    def resize_max(self, width: float, height: float) -> Result["ImageHelper"]:
        return self.resize(ResizeMode.MAX, width=width, height=height)

    def resize_long_edge(self, length: float) -> Result["ImageHelper"]:
        return self.resize(ResizeMode.LONG_EDGE, length=length)

    def resize_scale(self, percent: float) -> Result["ImageHelper"]:
        return self.resize(ResizeMode.SCALE, percent=percent)

    def _render(self, placement: Placement, background: Optional[Background]) -> Image.Image:
        assert self._image is not None
        resized = self._image.resize(placement.size, _RESAMPLE)
        if placement.size == placement.canvas_size and (placement.x, placement.y) == (0, 0):
            return resized

        translucent = resized.mode == "RGBA" or (background is not None and not background.opaque)
        if background is None:
            colour: tuple[int, ...] = (0, 0, 0, 0) if translucent else (0, 0, 0)
        else:
            colour = background.rgba if translucent else background.rgb
        canvas = Image.new("RGBA" if translucent else "RGB", placement.canvas_size, colour)
        if resized.mode == "RGBA":
            layer = Image.new("RGBA", placement.canvas_size, (0, 0, 0, 0))
            layer.paste(resized, (placement.x, placement.y))
            canvas = Image.alpha_composite(canvas, layer)
            layer.close()
        else:
            canvas.paste(resized, (placement.x, placement.y))
        resized.close()
        return canvas

    # ------------------------------------------------------------------
    # rotation
    # ------------------------------------------------------------------
    def rotate(self, angle: float, background: BackgroundLike = None) -> Result["ImageHelper"]:
        """Rotate clockwise by ``angle`` degrees; the canvas grows to fit the corners."""

        if self._image is None:
            return self._closed()
        if angle is None or not math.isfinite(angle):
            return self._fail(
                InvalidTransformError(f"Rotation angle must be a finite number, got {angle!r}", self.path)
            )
        try:
            fill = Background.coerce(background) or self.config.default_background()
        except ValueError as exc:
            return self._fail(InvalidTransformError(f"Invalid background: {exc}", self.path))

        stage = self._image
        if not fill.opaque and stage.mode != "RGBA":
            stage = stage.convert("RGBA")
        colour = fill.rgba if stage.mode == "RGBA" else fill.rgb
        try:
            rotated = stage.rotate(-angle, resample=_ROTATE_RESAMPLE, expand=True, fillcolor=colour)
        except (OverflowError, MemoryError, ValueError) as exc:
            return self._fail(InvalidTransformError(f"Cannot rotate by {angle!r}: {exc}", self.path))
        finally:
            if stage is not self._image:
                stage.close()
        self._replace(rotated)
        return Result.success(self)

    def rotate_clockwise(self) -> Result["ImageHelper"]:
        return self.rotate(90)

    def rotate_counter_clockwise(self) -> Result["ImageHelper"]:
        return self.rotate(-90)

    rotate_right = rotate_clockwise
    rotate_cw = rotate_clockwise
    rotate_left = rotate_counter_clockwise
    rotate_ccw = rotate_counter_clockwise

    def apply(self, step: TransformStep) -> Result["ImageHelper"]:
        """Apply a configured resize followed by an optional rotation."""

        if self._image is None:
            return self._closed()
        try:
            background = step.resolved_background()
        except ValueError as exc:
            return self._fail(InvalidTransformError(str(exc), self.path))
        result: Result[ImageHelper] = Result.success(self)
        if step.mode is not None:
            result = self.resize(
                step.mode,
                width=step.width,
                height=step.height,
                length=step.length,
                percent=step.percent,
                background=background,
            )
        if step.rotate is not None:
            result = result.and_then(lambda helper: helper.rotate(step.rotate, background))  # type: ignore[arg-type]
        return result

    # ------------------------------------------------------------------
    # encoding / output
    # ------------------------------------------------------------------
    def encode(
        self,
        fmt: Union[ImageFormat, str, None] = None,
        *,
        quality: Optional[int] = None,
        compression: Optional[int] = None,
    ) -> Result[EncodedImage]:
        """Encode the stage; ``fmt`` defaults to the format of the source file."""

        if self._image is None:
            return self._closed()
        try:
            target = ImageFormat.parse(fmt) if fmt is not None else self.metadata.format
            options = self._save_options(target, quality, compression)
        except InvalidTransformError as exc:
            return self._fail(exc)
        except ValueError as exc:
            return self._fail(InvalidTransformError(str(exc), self.path))

        frame = self._image
        if target is ImageFormat.JPEG and frame.mode != "RGB":
            frame = frame.convert("RGB")
        buffer = io.BytesIO()
        try:
            frame.save(buffer, format=target.pillow_format, **options)
        except (OSError, ValueError, KeyError) as exc:
            return self._fail(EncodeError(f"Could not encode image as {target.pillow_format}: {exc}", self.path))
        finally:
            if frame is not self._image:
                frame.close()
        return Result.success(EncodedImage(content=buffer.getvalue(), format=target))

    def _save_options(
        self,
        target: ImageFormat,
        quality: Optional[int],
        compression: Optional[int],
    ) -> dict[str, Any]:
        if target is ImageFormat.JPEG:
            value = self.config.jpeg_quality if quality is None else quality
            if not 0 <= value <= 100:
                raise InvalidTransformError(f"JPEG quality must be between 0 and 100, got {value}", self.path)
            return {"quality": value}
        if target is ImageFormat.PNG:
            value = self.config.png_compression if compression is None else compression
            if not 0 <= value <= 9:
                raise InvalidTransformError(f"PNG compression must be between 0 and 9, got {value}", self.path)
            return {"compress_level": value}
        return {}

    def output(
        self,
        stream: BinaryIO,
        fmt: Union[ImageFormat, str, None] = None,
        *,
        quality: Optional[int] = None,
        compression: Optional[int] = None,
    ) -> Result["ImageHelper"]:
        """Write the encoded stage to a binary stream, e.g. a response body."""

        encoded = self.encode(fmt, quality=quality, compression=compression)
        if encoded.error is not None:
            return Result.failure(encoded.error)
        try:
            stream.write(encoded.unwrap().content)
        except OSError as exc:
            return self._fail(EncodeError(f"Could not write image to stream: {exc}", self.path))
        return Result.success(self)

    def output_jpeg(self, stream: BinaryIO, quality: Optional[int] = None) -> Result["ImageHelper"]:
        return self.output(stream, ImageFormat.JPEG, quality=quality)

    def output_png(self, stream: BinaryIO, compression: Optional[int] = None) -> Result["ImageHelper"]:
        return self.output(stream, ImageFormat.PNG, compression=compression)

    def output_gif(self, stream: BinaryIO) -> Result["ImageHelper"]:
        return self.output(stream, ImageFormat.GIF)

    output_jpg = output_jpeg

    # ------------------------------------------------------------------
    # persistence
    # ------------------------------------------------------------------
    def save(
        self,
        path: PathLike,
        fmt: Union[ImageFormat, str, None] = None,
        *,
        quality: Optional[int] = None,
        compression: Optional[int] = None,
        mode: Optional[int] = None,
    ) -> Result["ImageHelper"]:
        """Encode to ``path`` and apply the file mode.

        Without ``fmt`` the format follows the file suffix, falling back to
        the source format for unknown suffixes.
        """

        if self._image is None:
            return self._closed()
        target = Path(path)
        if fmt is None:
            try:
                fmt = ImageFormat.from_path(target)
            except ValueError:
                fmt = self.metadata.format
        encoded = self.encode(fmt, quality=quality, compression=compression)
        if encoded.error is not None:
            return Result.failure(encoded.error)

        file_mode = self.config.file_mode if mode is None else mode
        try:
            write_file(target, encoded.unwrap().content, file_mode)
        except OSError as exc:
            return self._fail(EncodeError(f"Could not save image to `{target}`: {exc}", target))
        logger.debug("Saved %s (%s, mode %o)", target, encoded.unwrap().format.value, file_mode)
        return Result.success(self)

    def save_jpeg(
        self, path: PathLike, quality: Optional[int] = None, *, mode: Optional[int] = None
    ) -> Result["ImageHelper"]:
        return self.save(path, ImageFormat.JPEG, quality=quality, mode=mode)

    def save_png(
        self, path: PathLike, compression: Optional[int] = None, *, mode: Optional[int] = None
    ) -> Result["ImageHelper"]:
        return self.save(path, ImageFormat.PNG, compression=compression, mode=mode)

    def save_gif(self, path: PathLike, *, mode: Optional[int] = None) -> Result["ImageHelper"]:
        return self.save(path, ImageFormat.GIF, mode=mode)

    save_jpg = save_jpeg

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _replace(self, image: Image.Image) -> None:
        previous, self._image = self._image, image
        if previous is not None and previous is not image:
            previous.close()

    def _closed(self) -> Result[Any]:
        return self._fail(ImageClosedError("Image has already been closed", self.path))

    def _fail(self, error: ImageError) -> Result[Any]:
        return _report(error, self.config)


def _report(error: ImageError, config: HelperConfig) -> Result[Any]:
    level = logging.WARNING if config.report_errors else logging.DEBUG
    logger.log(level, "%s: %s", type(error).__name__, error)
    return Result.failure(error)


def open_image(path: PathLike, config: Optional[HelperConfig] = None) -> Result[ImageHelper]:
    """Shorthand for :meth:`ImageHelper.open`."""

    return ImageHelper.open(path, config)


__all__ = [
    "EncodedImage",
    "ImageFormat",
    "ImageHelper",
    "ImageMetadata",
    "open_image",
]
