"""Utilities for loading the editor settings file."""

from __future__ import annotations

import logging
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Generic, Mapping, Optional, Type, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

T = TypeVar("T", bound=BaseModel)


logger = logging.getLogger(__name__)

# Key names used by the browser editor's state object.
LEGACY_FIELD_NAMES: Dict[str, str] = {
    "bgType": "background_mode",
    "bgColor": "background_color",
    "bgImage": "background_image_ref",
    "themeColor": "accent_color",
    "textColor": "text_color",
    "fontFamily": "font_family",
    "blur": "blur_amount",
    "brightness": "brightness_percent",
    "fontSize": "font_size_px",
    "showDecorations": "show_decorations",
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


def normalise_settings_payload(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Map camelCase cover keys in ``defaults`` to the schema field names."""

    data: Dict[str, Any] = deepcopy(dict(raw))
    defaults = data.get("defaults")
    if not isinstance(defaults, Mapping):
        return data

    normalised: Dict[str, Any] = {}
    for key, value in defaults.items():
        target = LEGACY_FIELD_NAMES.get(key, key)
        if target in normalised and target != key:
            # snake_case spelling wins when both are given
            continue
        normalised[target] = value
    data["defaults"] = normalised
    return data


class YamlConfigLoader(Generic[T]):
    """Load a YAML settings file into a pydantic model, merging schema defaults."""

    def __init__(
        self,
        path: Path,
        model: Type[T],
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.path = path
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
                raise ConfigError(f"Could not parse settings file: {exc}") from exc
            if raw is None:
                raw = {}
            if not isinstance(raw, Mapping):
                raise ConfigError("Settings file must contain a YAML mapping")
            data = normalise_settings_payload(raw)
        else:
            self._log.debug("Settings file %s not found, using defaults", self.path)
        merged = deep_merge(defaults, data)
        try:
            return self.model(**merged)
        except ValidationError as exc:
            raise ConfigValidationError("Settings file does not match the schema", exc.errors()) from exc


__all__ = [
    "ConfigError",
    "ConfigValidationError",
    "LEGACY_FIELD_NAMES",
    "YamlConfigLoader",
    "deep_merge",
    "normalise_settings_payload",
]
