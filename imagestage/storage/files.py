from __future__ import annotations

import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, List, Optional
from urllib.parse import quote

from PIL import Image, UnidentifiedImageError

ALLOWED_EXT = {".jpg", ".jpeg", ".png", ".gif"}

logger = logging.getLogger(__name__)


def ensure_dir(directory: Path) -> None:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        logger.error("Cannot create %s. Check permissions.", directory)
        raise


def list_images_sorted(image_dir: Path, allowed_ext: Iterable[str] | None = None) -> List[Path]:
    exts = set(ext.lower() for ext in (allowed_ext or ALLOWED_EXT))
    files = []
    if image_dir.exists():
        for path in image_dir.iterdir():
            if path.is_file() and path.suffix.lower() in exts:
                files.append(path)
    return sorted(files, key=lambda p: p.name.lower())


def safe_slug(name: str) -> str:
    base = os.path.basename(name)
    base = re.sub(r"\s+", "_", base)
    base = re.sub(r"[^A-Za-z0-9._-]", "", base)
    base = base.lstrip(".")
    return base or "image"


def resolve_inside(directory: Path, name: str) -> Optional[Path]:
    """Return ``directory / name`` for a plain file name, or None if it escapes."""

    safe_name = os.path.basename(name)
    if not safe_name or safe_name in {".", ".."}:
        return None
    return directory / safe_name


def write_file(path: Path, data: bytes, mode: int) -> None:
    """Write ``data`` to ``path`` and then set its permission bits.

    Parent directories are not created; a missing directory surfaces as
    :class:`OSError` like any other write failure.
    """

    path = Path(path)
    with path.open("wb") as handle:
        handle.write(data)
    os.chmod(path, mode)


def describe_image(path: Path) -> dict[str, Any]:
    stats = path.stat()
    info: dict[str, Any] = {
        "name": path.name,
        "size": stats.st_size,
        "created_at": datetime.fromtimestamp(stats.st_mtime).isoformat(timespec="seconds"),
        "url": f"/image/{quote(path.name)}",
        "width": None,
        "height": None,
        "format": None,
    }
    try:
        with Image.open(path) as image:
            info["width"], info["height"] = image.size
            info["format"] = (image.format or "").lower() or None
    except (UnidentifiedImageError, OSError):
        logger.debug("Could not read image header of %s", path)
    return info


__all__ = [
    "ALLOWED_EXT",
    "describe_image",
    "ensure_dir",
    "list_images_sorted",
    "resolve_inside",
    "safe_slug",
    "write_file",
]
