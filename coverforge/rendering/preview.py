from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import TYPE_CHECKING, Optional, Tuple

from ..image_processing import encode_png
from ..models.config import CoverConfig
from ..storage.assets import AssetStore
from .compositor import compose
from .fonts import FontRegistry
from .scaler import ViewportScaler

if TYPE_CHECKING:  # pragma: no cover
    from ..session import CoverSession

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreviewResult:
    """Result of a preview render operation."""

    version: int
    scale: float
    size: Tuple[int, int]
    image_bytes: bytes
    generated_at: datetime
    stale: bool = False
    cache_hit: bool = False

    def iso_timestamp(self) -> str:
        return self.generated_at.isoformat(timespec="seconds")


class PreviewRenderer:
    """Renders the live, scaled preview of the current configuration.

    The full virtual canvas is composed with live filters and then scaled
    by the viewport transform. The last result is cached per
    ``(version, scale)``; when a re-render fails the previous image keeps
    being served, marked stale.
    """

    def __init__(self, fonts: FontRegistry, assets: AssetStore, scaler: ViewportScaler) -> None:
        self.fonts = fonts
        self.assets = assets
        self.scaler = scaler
        self._last: Optional[PreviewResult] = None
        self._lock = threading.Lock()

    @property
    def last_result(self) -> Optional[PreviewResult]:
        with self._lock:
            return self._last

    def render(self, config: CoverConfig, version: int, scale: Optional[float] = None) -> PreviewResult:
        scale = self.scaler.current_scale if scale is None else scale
        with self._lock:
            cached = self._last
            if cached and cached.version == version and cached.scale == scale and not cached.stale:
                return replace(cached, cache_hit=True)

        try:
            composition = compose(config, fonts=self.fonts, assets=self.assets, live_filters=True)
            scaled = self.scaler.apply(composition, scale)
            result = PreviewResult(
                version=version,
                scale=scale,
                size=scaled.size,
                image_bytes=encode_png(scaled),
                generated_at=datetime.now(),
            )
        except Exception as exc:
            _LOGGER.exception("Preview render failed: %s", exc)
            with self._lock:
                cached = self._last
                if cached:
                    stale = replace(cached, stale=True, cache_hit=True)
                    self._last = stale
                    return stale
            raise

        with self._lock:
            self._last = result
        return result

    async def settle(self, session: "CoverSession") -> PreviewResult:
        """Render the session's current version; returns once that render is complete."""

        config, version = session.current()
        result = await asyncio.to_thread(self.render, config, version)
        _LOGGER.debug("Preview settled at version %d", result.version)
        return result


__all__ = ["PreviewRenderer", "PreviewResult"]
