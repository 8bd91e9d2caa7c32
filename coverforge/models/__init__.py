from .config import (
    VIRTUAL_HEIGHT,
    VIRTUAL_WIDTH,
    Alignment,
    BackgroundMode,
    ConfigResponse,
    CoverConfig,
    CoverConfigUpdate,
    EditorSettings,
    ExportSettings,
    FontListResponse,
    FontSettings,
    PreviewSettings,
    ViewportResponse,
    ViewportUpdate,
    update_payload,
)

__all__ = [
    "VIRTUAL_HEIGHT",
    "VIRTUAL_WIDTH",
    "Alignment",
    "BackgroundMode",
    "ConfigResponse",
    "CoverConfig",
    "CoverConfigUpdate",
    "EditorSettings",
    "ExportSettings",
    "FontListResponse",
    "FontSettings",
    "PreviewSettings",
    "ViewportResponse",
    "ViewportUpdate",
    "update_payload",
]
