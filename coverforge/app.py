from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from fastapi import FastAPI, Request

from .config import YamlConfigLoader
from .export import ExportOrchestrator
from .models.config import CoverConfig, EditorSettings
from .rendering.fonts import FontRegistry
from .rendering.preview import PreviewRenderer
from .rendering.rasterizer import PillowRasterizer
from .rendering.scaler import ViewportScaler
from .session import CoverSession
from .storage.assets import AssetStore

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_SETTINGS_PATH = Path("coverforge.yaml")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LOGGER = logging.getLogger(__name__)


@dataclass
class ServerConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    settings_path: Path = DEFAULT_SETTINGS_PATH
    log_path: Optional[Path] = None
    font_dirs: List[Path] = field(default_factory=list)


@dataclass
class AppState:
    """Everything one editing session owns, shared across request handlers."""

    config: ServerConfig
    settings: EditorSettings
    assets: AssetStore
    fonts: FontRegistry
    session: CoverSession
    scaler: ViewportScaler
    preview_renderer: PreviewRenderer
    exporter: ExportOrchestrator


def get_app_state(request: Request) -> AppState:
    state = getattr(request.app.state, "coverforge", None)
    if state is None:
        raise RuntimeError("Application state has not been initialised")
    return state


def configure_logging(log_path: Optional[Path], level: int = logging.INFO) -> None:
    """Attach a file handler to the package logger (once per path)."""

    package_logger = logging.getLogger("coverforge")
    package_logger.setLevel(level)
    if log_path is None:
        return
    target = str(log_path.resolve())
    for handler in package_logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
            return
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(target, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger.addHandler(handler)


def build_state(config: ServerConfig) -> AppState:
    settings = YamlConfigLoader(config.settings_path, EditorSettings).load()

    assets = AssetStore()
    search_paths = [*config.font_dirs, *(Path(p) for p in settings.fonts.search_paths)]
    fonts = FontRegistry(search_paths)
    session = CoverSession(fonts=fonts, assets=assets, initial=CoverConfig())
    defaults = settings.defaults.model_dump(exclude_none=True)
    if defaults:
        session.update(defaults)

    scaler = ViewportScaler()
    scaler.resize(settings.preview.container_width, settings.preview.padding)
    preview_renderer = PreviewRenderer(fonts, assets, scaler)
    exporter = ExportOrchestrator(
        session,
        PillowRasterizer(fonts, assets),
        settings=settings.export,
        settle=preview_renderer.settle,
    )
    return AppState(
        config=config,
        settings=settings,
        assets=assets,
        fonts=fonts,
        session=session,
        scaler=scaler,
        preview_renderer=preview_renderer,
        exporter=exporter,
    )


def create_app(config: Optional[ServerConfig] = None) -> FastAPI:
    config = config or ServerConfig()
    configure_logging(config.log_path)

    app = FastAPI(title="CoverForge", version="1.0.0")
    app.state.coverforge = build_state(config)
    LOGGER.info("Editor session ready (settings: %s)", config.settings_path)

    from .api import config as config_routes
    from .api import export, status, uploads

    app.include_router(status.router)
    app.include_router(config_routes.router)
    app.include_router(uploads.router)
    app.include_router(export.router)

    return app


__all__ = [
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "DEFAULT_SETTINGS_PATH",
    "AppState",
    "ServerConfig",
    "build_state",
    "configure_logging",
    "create_app",
    "get_app_state",
]
