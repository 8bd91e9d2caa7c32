from __future__ import annotations

from .app import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_SETTINGS_PATH,
    AppState,
    ServerConfig,
    create_app,
    get_app_state,
)
from .export import ExportArtifact, ExportOrchestrator, ExportState
from .session import CoverSession

__all__ = [
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "DEFAULT_SETTINGS_PATH",
    "AppState",
    "CoverSession",
    "ExportArtifact",
    "ExportOrchestrator",
    "ExportState",
    "ServerConfig",
    "create_app",
    "get_app_state",
]
