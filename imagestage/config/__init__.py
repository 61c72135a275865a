"""Configuration helpers for image helpers and the HTTP service."""

from .loader import (
    ConfigError,
    ConfigValidationError,
    YamlConfigLoader,
    deep_merge,
    normalise_config_payload,
)

__all__ = [
    "ConfigError",
    "ConfigValidationError",
    "YamlConfigLoader",
    "deep_merge",
    "normalise_config_payload",
]
