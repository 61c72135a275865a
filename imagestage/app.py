from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, Request

from .config import YamlConfigLoader
from .models.config import HelperConfig
from .storage.files import ensure_dir, list_images_sorted

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
DEFAULT_IMAGE_DIR = Path("images")

logger = logging.getLogger(__name__)


@dataclass
class ServerConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    image_dir: Path = DEFAULT_IMAGE_DIR
    output_dir: Optional[Path] = None
    config_path: Optional[Path] = None
    helper: Optional[HelperConfig] = None


@dataclass
class AppState:
    """Container for FastAPI state shared across request handlers.

    ``helper_config`` is handed to every :class:`~imagestage.image.ImageHelper`
    the routes open; it comes from ``ServerConfig.helper`` or, failing that,
    from the YAML file at ``ServerConfig.config_path``.
    """

    config: ServerConfig
    image_dir: Path
    output_dir: Path
    helper_config: HelperConfig


def get_app_state(request: Request) -> AppState:
    state = getattr(request.app.state, "imagestage", None)
    if state is None:
        raise RuntimeError("Application state has not been initialised")
    return state


def load_helper_config(config: ServerConfig) -> HelperConfig:
    if config.helper is not None:
        return config.helper
    if config.config_path is None:
        return HelperConfig()
    return YamlConfigLoader(config.config_path, HelperConfig).load()


def create_app(config: Optional[ServerConfig] = None) -> FastAPI:
    config = config or ServerConfig()
    image_dir = Path(config.image_dir)
    output_dir = Path(config.output_dir) if config.output_dir is not None else image_dir
    ensure_dir(image_dir)
    ensure_dir(output_dir)

    helper_config = load_helper_config(config)

    app = FastAPI(title="imagestage", version="1.0.0")
    app.state.imagestage = AppState(
        config=config,
        image_dir=image_dir,
        output_dir=output_dir,
        helper_config=helper_config,
    )
    logger.info(
        "Serving images from %s (output %s, file mode %o, errors %s)",
        image_dir,
        output_dir,
        helper_config.file_mode,
        helper_config.on_error,
    )

    @app.get("/health")
    async def health(state: AppState = Depends(get_app_state)) -> dict:
        return {"ok": True, "image_count": len(list_images_sorted(state.image_dir))}

    from .api import config as config_routes
    from .api import images

    app.include_router(images.router)
    app.include_router(config_routes.router)

    return app


__all__ = [
    "DEFAULT_HOST",
    "DEFAULT_IMAGE_DIR",
    "DEFAULT_PORT",
    "AppState",
    "ServerConfig",
    "create_app",
    "get_app_state",
    "load_helper_config",
]
