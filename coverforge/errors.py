"""Exception hierarchy shared by the session, renderers and API."""

from __future__ import annotations

from typing import Any


class CoverForgeError(RuntimeError):
    """Base exception for all editor errors."""


class ConfigUpdateError(CoverForgeError):
    """Raised when a configuration update is rejected."""

    def __init__(self, message: str, errors: Any = None) -> None:
        super().__init__(message)
        self.errors = errors


class AssetNotFoundError(CoverForgeError):
    """Raised when an asset reference cannot be resolved."""


class DecodeError(CoverForgeError):
    """Raised when an image cannot be decoded."""


class FontLoadError(CoverForgeError):
    """Raised when a font binary cannot be registered."""


class RasterizationError(CoverForgeError):
    """Raised when the export rasterizer cannot produce a bitmap."""


class EncodeError(CoverForgeError):
    """Raised when a bitmap cannot be encoded to PNG."""


class ExportInProgressError(CoverForgeError):
    """Raised when an export is requested while another one is running."""


class ExportFailedError(CoverForgeError):
    """Single failure signal for an aborted export."""


__all__ = [
    "AssetNotFoundError",
    "ConfigUpdateError",
    "CoverForgeError",
    "DecodeError",
    "EncodeError",
    "ExportFailedError",
    "ExportInProgressError",
    "FontLoadError",
    "RasterizationError",
]
