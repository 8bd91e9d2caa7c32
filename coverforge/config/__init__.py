"""Configuration helpers for the editor process."""

from .loader import (
    LEGACY_FIELD_NAMES,
    ConfigError,
    ConfigValidationError,
    YamlConfigLoader,
    deep_merge,
    normalise_settings_payload,
)

__all__ = [
    "ConfigError",
    "ConfigValidationError",
    "LEGACY_FIELD_NAMES",
    "YamlConfigLoader",
    "deep_merge",
    "normalise_settings_payload",
]
