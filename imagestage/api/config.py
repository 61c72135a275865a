from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, ValidationError

from ..app import AppState, get_app_state
from ..config import ConfigError, YamlConfigLoader, deep_merge
from ..models.config import HelperConfig

router = APIRouter(tags=["config"])


class HelperConfigUpdate(BaseModel):
    on_error: Optional[Literal["report", "silent"]] = None
    file_mode: Optional[Any] = None
    jpeg_quality: Optional[int] = Field(None, ge=0, le=100)
    png_compression: Optional[int] = Field(None, ge=0, le=9)
    background: Optional[str] = None
    auto_orient: Optional[bool] = None


class ConfigResponse(BaseModel):
    config: HelperConfig


@router.get("/config", response_model=ConfigResponse)
async def get_config(state: AppState = Depends(get_app_state)) -> ConfigResponse:
    return ConfigResponse(config=state.helper_config)


@router.put("/config", response_model=ConfigResponse)
async def update_config(
    payload: HelperConfigUpdate,
    state: AppState = Depends(get_app_state),
) -> ConfigResponse:
    update_data: Dict[str, Any] = payload.model_dump(exclude_unset=True)
    merged = deep_merge(state.helper_config.model_dump(), update_data)

    try:
        new_config = HelperConfig(**merged)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=[error["msg"] for error in exc.errors()],
        ) from exc

    if state.config.config_path is not None:
        try:
            YamlConfigLoader(state.config.config_path, HelperConfig).save(new_config)
        except (ConfigError, OSError) as exc:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    state.helper_config = new_config
    return ConfigResponse(config=new_config)


__all__ = ["router", "get_config", "update_config"]
