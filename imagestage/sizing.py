"""Aspect-ratio arithmetic for the resize modes.

Each function takes the current source size plus the requested target and
returns a :class:`Placement`: the canvas to allocate and the rectangle the
resampled source is pasted into.  Offsets may be negative (``fill`` crops
by letting the canvas clip the overflowing source).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import InvalidTransformError


class ResizeMode(str, Enum):
    DEFORM = "deform"
    FILL = "fill"
    FIT = "fit"
    WIDTH = "width"
    HEIGHT = "height"
    MAX = "max"
    LONG_EDGE = "long_edge"
    SCALE = "scale"


@dataclass(frozen=True)
class Placement:
    canvas_width: int
    canvas_height: int
    x: int
    y: int
    width: int
    height: int

    @property
    def canvas_size(self) -> tuple[int, int]:
        return self.canvas_width, self.canvas_height

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def letterboxed(self) -> bool:
        """True when the pasted source leaves part of the canvas uncovered."""

        return (
            self.x > 0
            or self.y > 0
            or self.x + self.width < self.canvas_width
            or self.y + self.height < self.canvas_height
        )


def round_px(value: float) -> int:
    """Round half up to the nearest whole pixel."""

    return int(math.floor(value + 0.5))


def _require_positive(name: str, value: float) -> None:
    if value is None or not math.isfinite(value) or value <= 0:
        raise InvalidTransformError(f"{name} must be greater than zero, got {value!r}")


def _check_source(source_width: float, source_height: float) -> None:
    _require_positive("source width", source_width)
    _require_positive("source height", source_height)


def _placement(
    canvas_width: float,
    canvas_height: float,
    x: float,
    y: float,
    width: float,
    height: float,
) -> Placement:
    if not all(math.isfinite(value) for value in (canvas_width, canvas_height, x, y, width, height)):
        raise InvalidTransformError("resulting size is not a finite number of pixels")
    canvas_w, canvas_h = round_px(canvas_width), round_px(canvas_height)
    if canvas_w < 1 or canvas_h < 1:
        raise InvalidTransformError(f"resulting canvas {canvas_width:g}x{canvas_height:g} is smaller than one pixel")
    return Placement(
        canvas_width=canvas_w,
        canvas_height=canvas_h,
        x=round_px(x),
        y=round_px(y),
        width=max(1, round_px(width)),
        height=max(1, round_px(height)),
    )


def _scaled(width: float, height: float) -> Placement:
    return _placement(width, height, 0, 0, width, height)


def deform(source_width: float, source_height: float, width: float, height: float) -> Placement:
    """Stretch the source to exactly ``width`` x ``height``."""

    _check_source(source_width, source_height)
    _require_positive("width", width)
    _require_positive("height", height)
    return _scaled(width, height)


def _centred(source_width: float, source_height: float, width: float, height: float, ratio: float) -> Placement:
    scaled_width = source_width * ratio
    scaled_height = source_height * ratio
    return _placement(
        width,
        height,
        (width - scaled_width) / 2,
        (height - scaled_height) / 2,
        scaled_width,
        scaled_height,
    )


def fill(source_width: float, source_height: float, width: float, height: float) -> Placement:
    """Cover the whole ``width`` x ``height`` canvas, cropping the overflow."""

    _check_source(source_width, source_height)
    _require_positive("width", width)
    _require_positive("height", height)
    ratio = max(width / source_width, height / source_height)
    return _centred(source_width, source_height, width, height, ratio)


def fit(source_width: float, source_height: float, width: float, height: float) -> Placement:
    """Fit entirely inside the canvas; the uncovered area is left for the background."""

    _check_source(source_width, source_height)
    _require_positive("width", width)
    _require_positive("height", height)
    ratio = min(width / source_width, height / source_height)
    return _centred(source_width, source_height, width, height, ratio)


def to_width(source_width: float, source_height: float, width: float) -> Placement:
    _check_source(source_width, source_height)
    _require_positive("width", width)
    return _scaled(width, width * source_height / source_width)


def to_height(source_width: float, source_height: float, height: float) -> Placement:
    _check_source(source_width, source_height)
    _require_positive("height", height)
    return _scaled(height * source_width / source_height, height)


def max_box(source_width: float, source_height: float, width: float, height: float) -> Placement:
    """Shrink or grow into the ``width`` x ``height`` box; the canvas is the scaled size."""

    _check_source(source_width, source_height)
    _require_positive("width", width)
    _require_positive("height", height)
    ratio = min(width / source_width, height / source_height)
    return _scaled(source_width * ratio, source_height * ratio)


def long_edge(source_width: float, source_height: float, length: float) -> Placement:
    """Scale so the longer edge becomes ``length``; a square scales by its height."""

    _check_source(source_width, source_height)
    _require_positive("length", length)
    edge = source_width if source_width > source_height else source_height
    ratio = length / edge
    return _scaled(source_width * ratio, source_height * ratio)


def scale(source_width: float, source_height: float, percent: float) -> Placement:
    _check_source(source_width, source_height)
    _require_positive("percent", percent)
    return _scaled(source_width * percent / 100, source_height * percent / 100)


def compute(
    mode: ResizeMode | str,
    source_width: float,
    source_height: float,
    *,
    width: Optional[float] = None,
    height: Optional[float] = None,
    length: Optional[float] = None,
    percent: Optional[float] = None,
) -> Placement:
    """Dispatch to the sizing function named by ``mode``."""

    try:
        mode = ResizeMode(mode)
    except ValueError as exc:
        raise InvalidTransformError(f"Unknown resize mode: {mode!r}") from exc

    if mode is ResizeMode.DEFORM:
        return deform(source_width, source_height, width, height)  # type: ignore[arg-type]
    if mode is ResizeMode.FILL:
        return fill(source_width, source_height, width, height)  # type: ignore[arg-type]
    if mode is ResizeMode.FIT:
        return fit(source_width, source_height, width, height)  # type: ignore[arg-type]
    if mode is ResizeMode.WIDTH:
        return to_width(source_width, source_height, width)  # type: ignore[arg-type]
    if mode is ResizeMode.HEIGHT:
        return to_height(source_width, source_height, height)  # type: ignore[arg-type]
    if mode is ResizeMode.MAX:
        return max_box(source_width, source_height, width, height)  # type: ignore[arg-type]
    if mode is ResizeMode.LONG_EDGE:
        return long_edge(source_width, source_height, length)  # type: ignore[arg-type]
    return scale(source_width, source_height, percent)  # type: ignore[arg-type]


__all__ = [
    "Placement",
    "ResizeMode",
    "compute",
    "deform",
    "fill",
    "fit",
    "long_edge",
    "max_box",
    "round_px",
    "scale",
    "to_height",
    "to_width",
]
