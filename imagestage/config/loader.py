"""Load and persist helper configuration from YAML files."""

from __future__ import annotations

import logging
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Generic, Mapping, Optional, Type, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

T = TypeVar("T", bound=BaseModel)

logger = logging.getLogger(__name__)

# camelCase spellings accepted for hand-written files
_KEY_ALIASES = {
    "onError": "on_error",
    "fileMode": "file_mode",
    "jpegQuality": "jpeg_quality",
    "pngCompression": "png_compression",
    "autoOrient": "auto_orient",
}


class ConfigError(RuntimeError):
    """Base exception for loader errors."""


class ConfigValidationError(ConfigError):
    """Raised when the configuration on disk is invalid."""

    def __init__(self, message: str, errors: Any) -> None:
        super().__init__(message)
        self.errors = errors


def deep_merge(base: Mapping[str, Any], update: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``update`` into ``base`` without mutating either."""

    merged: Dict[str, Any] = deepcopy(dict(base))
    for key, value in update.items():
        if key in merged and isinstance(merged[key], Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def normalise_config_payload(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Map legacy toggles onto the current schema.

    ``throwExceptions`` (bool) becomes ``on_error`` and ``chmod`` becomes
    ``file_mode``; explicit new-style keys win over legacy ones.
    """

    data: Dict[str, Any] = {}
    for key, value in raw.items():
        data[_KEY_ALIASES.get(key, key)] = deepcopy(value)

    if "throwExceptions" in data:
        legacy = data.pop("throwExceptions")
        data.setdefault("on_error", "report" if legacy else "silent")
    if "chmod" in data:
        legacy_mode = data.pop("chmod")
        data.setdefault("file_mode", legacy_mode)
    return data


class YamlConfigLoader(Generic[T]):
    """Load and persist a pydantic model as a YAML mapping."""

    def __init__(self, path: Path, model: Type[T], log: Optional[logging.Logger] = None) -> None:
        self.path = Path(path)
        self.model = model
        self._log = log or logger

    def load(self) -> T:
        """Load configuration from disk, merging defaults from the schema."""

        defaults = self.model().model_dump()
        data: Dict[str, Any] = {}
        if self.path.exists():
            try:
                raw = yaml.safe_load(self.path.read_text(encoding="utf-8"))
            except yaml.YAMLError as exc:
                raise ConfigError(f"Could not parse configuration {self.path}: {exc}") from exc
            if raw is None:
                raw = {}
            if not isinstance(raw, Mapping):
                raise ConfigError(f"Configuration file {self.path} must contain a YAML mapping")
            data = normalise_config_payload(raw)
        else:
            self._log.debug("No configuration at %s, using defaults", self.path)
        merged = deep_merge(defaults, data)
        try:
            return self.model(**merged)
        except ValidationError as exc:
            raise ConfigValidationError(f"Configuration {self.path} does not match the schema", exc.errors()) from exc

    def save(self, config: T) -> None:
        """Persist a configuration model to disk as YAML."""

        payload = config.model_dump()
        text = yaml.safe_dump(payload, allow_unicode=True, sort_keys=False)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(text, encoding="utf-8")


__all__ = [
    "ConfigError",
    "ConfigValidationError",
    "YamlConfigLoader",
    "deep_merge",
    "normalise_config_payload",
]
