from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal, Optional, Tuple
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from ..app import AppState, get_app_state
from ..errors import (
    EncodeError,
    ImageClosedError,
    ImageError,
    ImageNotFoundError,
    InvalidTransformError,
    UnsupportedImageError,
)
from ..image import ImageFormat, ImageHelper, open_image
from ..models.config import TransformRequest, TransformResponse, TransformStep
from ..result import Result
from ..sizing import ResizeMode
from ..storage.files import describe_image, list_images_sorted, resolve_inside, safe_slug

router = APIRouter(tags=["images"])

logger = logging.getLogger(__name__)

_ERROR_STATUS = (
    (ImageNotFoundError, status.HTTP_404_NOT_FOUND),
    (UnsupportedImageError, status.HTTP_415_UNSUPPORTED_MEDIA_TYPE),
    (InvalidTransformError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ImageClosedError, status.HTTP_409_CONFLICT),
    (EncodeError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)

FormatName = Literal["jpeg", "jpg", "png", "gif"]


def _error_response(error: ImageError, state: AppState) -> JSONResponse:
    status_code = next(
        (code for kind, code in _ERROR_STATUS if isinstance(error, kind)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    payload: dict = {"ok": False}
    if state.helper_config.report_errors:
        payload["error"] = "Image not found" if isinstance(error, ImageNotFoundError) else str(error)
    return JSONResponse(payload, status_code=status_code)


def _image_path(name: str, directory: Path) -> Path:
    path = resolve_inside(directory, name)
    if path is None:
        raise ImageNotFoundError("Image not found")
    return path


def _open(name: str, state: AppState) -> Tuple[Optional[ImageHelper], Optional[JSONResponse]]:
    try:
        path = _image_path(name, state.image_dir)
    except ImageNotFoundError as exc:
        return None, _error_response(exc, state)
    opened = open_image(path, state.helper_config)
    if opened.error is not None:
        return None, _error_response(opened.error, state)
    return opened.unwrap(), None


@router.get("/list")
async def list_images(state: AppState = Depends(get_app_state)) -> dict:
    return {"ok": True, "items": [describe_image(path) for path in list_images_sorted(state.image_dir)]}


@router.get("/image/{name}/info")
async def image_info(name: str, state: AppState = Depends(get_app_state)) -> Response:
    helper, error = _open(name, state)
    if helper is None:
        return error
    with helper:
        payload = {
            "ok": True,
            "name": name,
            "metadata": helper.get_data(),
            "width": helper.width,
            "height": helper.height,
        }
    return JSONResponse(payload)


@router.get("/image/{name}")
async def image_endpoint(
    name: str,
    mode: Optional[ResizeMode] = Query(None, description="Resize mode"),
    width: Optional[float] = Query(None, gt=0, allow_inf_nan=False),
    height: Optional[float] = Query(None, gt=0, allow_inf_nan=False),
    length: Optional[float] = Query(
        None, gt=0, allow_inf_nan=False, description="Long edge length for mode=long_edge"
    ),
    percent: Optional[float] = Query(
        None, gt=0, allow_inf_nan=False, description="Scale percentage for mode=scale"
    ),
    rotate: Optional[float] = Query(None, allow_inf_nan=False, description="Clockwise rotation in degrees"),
    background: Optional[str] = Query(None, description="Background colour as RRGGBB or #RRGGBB"),
    opacity: Optional[float] = Query(None, ge=0, le=100, allow_inf_nan=False),
    fmt: Optional[FormatName] = Query(None, alias="format", description="Output format, defaults to the source format"),
    quality: Optional[int] = Query(None, ge=0, le=100),
    compression: Optional[int] = Query(None, ge=0, le=9),
    state: AppState = Depends(get_app_state),
) -> Response:
    if background is not None and not background.startswith("#"):
        background = f"#{background}"
    try:
        step = TransformStep(
            mode=mode,
            width=width,
            height=height,
            length=length,
            percent=percent,
            rotate=rotate,
            background=background,
            opacity=opacity,
        )
    except ValidationError as exc:
        return _error_response(InvalidTransformError(f"Invalid transform: {exc.errors()[0]['msg']}"), state)

    helper, error = _open(name, state)
    if helper is None:
        return error
    with helper:
        encoded = helper.apply(step).and_then(
            lambda current: current.encode(fmt, quality=quality, compression=compression)
        )
    if encoded.error is not None:
        return _error_response(encoded.error, state)
    image = encoded.unwrap()
    return Response(content=image.content, media_type=image.media_type)


def _output_name(request: TransformRequest, target: ImageFormat) -> str:
    name = safe_slug(request.output or request.file)
    try:
        if ImageFormat.from_path(name) is target:
            return name
    except ValueError:
        pass
    extension = "jpg" if target is ImageFormat.JPEG else target.value
    return f"{Path(name).stem}.{extension}"


def _target_format(request: TransformRequest, helper: ImageHelper) -> ImageFormat:
    if request.format is not None:
        return ImageFormat.parse(request.format)
    if request.output:
        try:
            return ImageFormat.from_path(request.output)
        except ValueError:
            pass
    return helper.metadata.format


@router.post("/transform", response_model=TransformResponse)
async def transform_image(
    payload: TransformRequest,
    state: AppState = Depends(get_app_state),
) -> Response:
    helper, error = _open(payload.file, state)
    if helper is None:
        return error

    with helper:
        target = _target_format(payload, helper)
        out_name = _output_name(payload, target)
        out_path = state.output_dir / out_name

        result: Result[ImageHelper] = Result.success(helper)
        for step in payload.steps:
            result = result.and_then(lambda current, step=step: current.apply(step))
        result = result.and_then(
            lambda current: current.save(
                out_path,
                target,
                quality=payload.quality,
                compression=payload.compression,
            )
        )
        if result.error is not None:
            return _error_response(result.error, state)
        width, height = helper.width, helper.height

    logger.info("Transformed %s -> %s (%dx%d)", payload.file, out_name, width, height)
    response = TransformResponse(
        ok=True,
        file=out_name,
        url=f"/output/{quote(out_name)}",
        width=width,
        height=height,
        format=target.value,
    )
    return JSONResponse(response.model_dump())


@router.get("/output/{name}")
async def output_endpoint(name: str, state: AppState = Depends(get_app_state)) -> Response:
    path = resolve_inside(state.output_dir, name)
    if path is None or not path.is_file():
        return _error_response(ImageNotFoundError("Image not found"), state)
    try:
        media_type = ImageFormat.from_path(path).mime
    except ValueError:
        media_type = "application/octet-stream"
    return Response(content=path.read_bytes(), media_type=media_type)


__all__ = ["router", "image_endpoint", "image_info", "list_images", "output_endpoint", "transform_image"]
