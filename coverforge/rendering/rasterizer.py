from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from PIL import Image

from ..errors import AssetNotFoundError, DecodeError, RasterizationError
from ..models.config import CoverConfig
from ..storage.assets import AssetStore
from .compositor import compose
from .fonts import FontRegistry

_LOGGER = logging.getLogger(__name__)


class Rasterizer(Protocol):
    async def rasterize(self, config: CoverConfig, *, quality: float) -> Image.Image:
        ...


class PillowRasterizer:
    """Export-time rasterizer.

    Renders the unscaled virtual canvas multiplied by ``quality`` and never
    applies live filters; a filtered background must be baked beforehand.
    """

    def __init__(self, fonts: FontRegistry, assets: AssetStore) -> None:
        self.fonts = fonts
        self.assets = assets

    def rasterize_sync(self, config: CoverConfig, *, quality: float) -> Image.Image:
        if quality <= 0:
            raise RasterizationError(f"Invalid quality factor: {quality}")
        if config.has_active_background_image and config.has_filters:
            _LOGGER.warning("Rasterizing with unbaked filters; blur/brightness are ignored")
        try:
            return compose(
                config,
                fonts=self.fonts,
                assets=self.assets,
                pixel_ratio=quality,
                live_filters=False,
            )
        except AssetNotFoundError as exc:
            raise RasterizationError(f"Unresolvable background: {exc}") from exc
        except DecodeError:
            raise
        except (OSError, ValueError, MemoryError) as exc:
            raise RasterizationError(f"Rasterization failed: {exc}") from exc

    async def rasterize(self, config: CoverConfig, *, quality: float) -> Image.Image:
        return await asyncio.to_thread(self.rasterize_sync, config, quality=quality)


__all__ = ["PillowRasterizer", "Rasterizer"]
