"""Export orchestration: bake, settle, rasterize, encode, restore.

The orchestrator is a two-state machine (``idle`` / ``exporting``). A
request while an export is running is rejected without touching any
state. Whatever happens during an export, the background reference and
the two filter values are restored to their pre-export values before the
orchestrator returns to ``idle``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple

from .errors import (
    AssetNotFoundError,
    DecodeError,
    EncodeError,
    ExportFailedError,
    ExportInProgressError,
    RasterizationError,
)
from .image_processing import encode_png
from .models.config import ExportSettings
from .rendering.filters import NEUTRAL_BLUR, NEUTRAL_BRIGHTNESS, bake_async, needs_baking
from .rendering.rasterizer import Rasterizer
from .session import CoverSession

LOGGER = logging.getLogger(__name__)

BAKED_KIND = "baked"

Baker = Callable[[bytes, float, float], Awaitable[bytes]]
Settler = Callable[[CoverSession], Awaitable[object]]


class ExportState(str, Enum):
    IDLE = "idle"
    EXPORTING = "exporting"


@dataclass(frozen=True)
class ExportArtifact:
    filename: str
    data: bytes
    size: Tuple[int, int]
    created_at: datetime
    baked: bool = False

    @property
    def media_type(self) -> str:
        return "image/png"


class ExportOrchestrator:
    def __init__(
        self,
        session: CoverSession,
        rasterizer: Rasterizer,
        *,
        settings: Optional[ExportSettings] = None,
        settle: Optional[Settler] = None,
        baker: Baker = bake_async,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.session = session
        self.rasterizer = rasterizer
        self.settings = settings or ExportSettings()
        self._settle = settle
        self._baker = baker
        self._clock = clock
        self._logger = logger or LOGGER
        self._state = ExportState.IDLE
        self.last_artifact: Optional[ExportArtifact] = None

    @property
    def state(self) -> ExportState:
        return self._state

    @property
    def is_exporting(self) -> bool:
        return self._state is ExportState.EXPORTING

    async def request_export(self) -> ExportArtifact:
        # check-and-set happens before the first await, so it cannot interleave
        if self._state is ExportState.EXPORTING:
            raise ExportInProgressError("An export is already in progress")
        self._state = ExportState.EXPORTING

        session = self.session
        snapshot = session.snapshot_export_fields()
        baked_ref: Optional[str] = None
        started = time.monotonic()
        try:
            config = session.config
            if needs_baking(config):
                source = session.assets.get(config.background_image_ref or "")
                baked = await self._baker(source, config.blur_amount, config.brightness_percent)
                baked_ref = session.assets.put(baked, kind=BAKED_KIND, filename="baked.png")
                session.update(
                    background_image_ref=baked_ref,
                    blur_amount=NEUTRAL_BLUR,
                    brightness_percent=NEUTRAL_BRIGHTNESS,
                )
                self._logger.debug("Background baked into %s", baked_ref)

            await self._wait_settled()

            image = await self.rasterizer.rasterize(session.config, quality=self.settings.quality)
            data = encode_png(image)
            artifact = ExportArtifact(
                filename=self._artifact_name(),
                data=data,
                size=image.size,
                created_at=datetime.now(),
                baked=baked_ref is not None,
            )
        except (AssetNotFoundError, DecodeError, RasterizationError, EncodeError) as exc:
            self._logger.error("Export failed: %s", exc)
            raise ExportFailedError("Export failed") from exc
        except Exception as exc:
            self._logger.exception("Unexpected export failure: %s", exc)
            raise ExportFailedError("Export failed") from exc
        finally:
            session.restore_export_fields(snapshot)
            if baked_ref is not None:
                session.assets.discard(baked_ref)
            self._state = ExportState.IDLE

        self.last_artifact = artifact
        self._logger.info(
            "Exported %s (%sx%s) in %.2fs",
            artifact.filename,
            artifact.size[0],
            artifact.size[1],
            time.monotonic() - started,
        )
        return artifact

    async def _wait_settled(self) -> None:
        if self._settle is None:
            return
        try:
            await asyncio.wait_for(self._settle(self.session), timeout=self.settings.settle_timeout)
        except asyncio.TimeoutError:
            self._logger.warning(
                "Preview did not settle within %.1fs, rasterizing anyway",
                self.settings.settle_timeout,
            )

    def _artifact_name(self) -> str:
        return f"{self.settings.filename_prefix}-{int(self._clock() * 1000)}.png"


__all__ = ["BAKED_KIND", "ExportArtifact", "ExportOrchestrator", "ExportState"]
