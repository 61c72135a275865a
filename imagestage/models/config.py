from __future__ import annotations

from typing import Any, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..sizing import ResizeMode, round_px

_HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"

DEFAULT_FILE_MODE = 0o755


class Background(BaseModel):
    """Solid fill colour used for letterboxing and rotation corners.

    ``opacity`` accepts either a percentage (0-100) or a fraction (0-1);
    values up to and including 1 are read as a fraction.
    """

    model_config = ConfigDict(frozen=True)

    red: int = Field(0, ge=0, le=255)
    green: int = Field(0, ge=0, le=255)
    blue: int = Field(0, ge=0, le=255)
    opacity: float = Field(100, ge=0, le=100, description="0-100 percent or 0-1 fraction")

    @classmethod
    def from_hex(cls, value: str, opacity: Optional[float] = None) -> "Background":
        text = value.strip()
        if not text.startswith("#"):
            text = f"#{text}"
        if len(text) != 7:
            raise ValueError(f"Expected a #RRGGBB colour, got {value!r}")
        red, green, blue = (int(text[index : index + 2], 16) for index in (1, 3, 5))
        return cls(red=red, green=green, blue=blue, opacity=100 if opacity is None else opacity)

    @classmethod
    def coerce(cls, value: Union["Background", str, Sequence[float], None]) -> Optional["Background"]:
        """Accept a model, a hex string or an ``(r, g, b[, opacity])`` sequence."""

        if value is None or isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls.from_hex(value)
        values = list(value)
        if len(values) < 3:
            raise ValueError("A background needs at least red, green and blue values")
        opacity = values[3] if len(values) > 3 else 100
        return cls(red=int(values[0]), green=int(values[1]), blue=int(values[2]), opacity=opacity)

    @property
    def alpha_7bit(self) -> int:
        """Alpha on the 0 (opaque) to 127 (transparent) scale."""

        fraction = self.opacity / 100 if self.opacity > 1 else self.opacity
        return max(0, min(127, int(fraction * -127 + 127)))

    @property
    def alpha(self) -> int:
        """Alpha on Pillow's 0 (transparent) to 255 (opaque) scale."""

        return round_px(255 * (127 - self.alpha_7bit) / 127)

    @property
    def opaque(self) -> bool:
        return self.alpha == 255

    @property
    def rgb(self) -> tuple[int, int, int]:
        return self.red, self.green, self.blue

    @property
    def rgba(self) -> tuple[int, int, int, int]:
        return self.red, self.green, self.blue, self.alpha


class HelperConfig(BaseModel):
    """Behaviour shared by image helpers; passed explicitly instead of global toggles."""

    model_config = ConfigDict(frozen=True)

    on_error: Literal["report", "silent"] = Field(
        "report",
        description="Report failures in logs and API payloads, or keep them quiet",
    )
    file_mode: int = Field(
        DEFAULT_FILE_MODE,
        ge=0,
        le=0o777,
        description="Permission bits applied to every saved file; write 0755 or '0755' in YAML, not 755",
    )
    jpeg_quality: int = Field(100, ge=0, le=100, description="Default JPEG quality")
    png_compression: int = Field(0, ge=0, le=9, description="Default PNG compression level")
    background: str = Field(
        "#000000",
        pattern=_HEX_COLOR_PATTERN,
        description="Default letterbox and rotation colour (hex)",
    )
    auto_orient: bool = Field(
        False,
        description="Apply the EXIF orientation tag when decoding",
    )

    @field_validator("file_mode", mode="before")
    @classmethod
    def _parse_octal(cls, value: Any) -> Any:
        if isinstance(value, str):
            text = value.strip().lower()
            if text.startswith("0o"):
                text = text[2:]
            try:
                return int(text, 8)
            except ValueError as exc:
                raise ValueError(f"file_mode must be an octal permission string, got {value!r}") from exc
        return value

    @property
    def report_errors(self) -> bool:
        return self.on_error == "report"

    def default_background(self) -> Background:
        return Background.from_hex(self.background)


class TransformStep(BaseModel):
    """One resize and/or rotation applied to an image."""

    mode: Optional[ResizeMode] = None
    width: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    height: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    length: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    percent: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    rotate: Optional[float] = Field(None, allow_inf_nan=False, description="Clockwise rotation in degrees")
    background: Optional[str] = Field(default=None, pattern=_HEX_COLOR_PATTERN)
    opacity: Optional[float] = Field(None, ge=0, le=100, allow_inf_nan=False)

    def resolved_background(self) -> Optional[Background]:
        if self.background is None:
            return None
        return Background.from_hex(self.background, self.opacity)


class TransformRequest(BaseModel):
    file: str = Field(..., min_length=1, description="Source image name inside the image directory")
    steps: List[TransformStep] = Field(default_factory=list)
    output: Optional[str] = Field(default=None, description="Output file name; defaults to the source name")
    format: Optional[Literal["jpeg", "jpg", "png", "gif"]] = None
    quality: Optional[int] = Field(None, ge=0, le=100)
    compression: Optional[int] = Field(None, ge=0, le=9)


class TransformResponse(BaseModel):
    ok: bool
    file: str
    url: str
    width: int
    height: int
    format: str


__all__ = [
    "DEFAULT_FILE_MODE",
    "Background",
    "HelperConfig",
    "TransformRequest",
    "TransformResponse",
    "TransformStep",
]
