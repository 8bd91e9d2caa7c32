"""The editing session: versioned configuration plus uploaded resources.

All configuration changes, whether they come from the UI or from the
export orchestrator, go through :meth:`CoverSession.update`. The
configuration itself is an immutable value, so a snapshot is simply a
reference to an old value.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from pydantic import ValidationError

from .errors import ConfigUpdateError
from .image_processing import decode_image
from .models.config import BackgroundMode, CoverConfig
from .rendering.fonts import FontRegistry, RegisteredFont
from .storage.assets import ALLOWED_EXT, FONT_EXT, AssetStore, check_upload

_LOGGER = logging.getLogger(__name__)

UPLOAD_KIND = "upload"


@dataclass(frozen=True)
class ExportSnapshot:
    """The three fields the export may temporarily substitute."""

    background_image_ref: Optional[str]
    blur_amount: float
    brightness_percent: float

    def as_update(self) -> dict:
        return {
            "background_image_ref": self.background_image_ref,
            "blur_amount": self.blur_amount,
            "brightness_percent": self.brightness_percent,
        }


class CoverSession:
    def __init__(
        self,
        *,
        fonts: FontRegistry,
        assets: AssetStore,
        initial: Optional[CoverConfig] = None,
    ) -> None:
        self.fonts = fonts
        self.assets = assets
        self._config = initial or CoverConfig()
        self._version = 0
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # reading
    # ------------------------------------------------------------------
    @property
    def config(self) -> CoverConfig:
        with self._lock:
            return self._config

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def current(self) -> Tuple[CoverConfig, int]:
        with self._lock:
            return self._config, self._version

    # ------------------------------------------------------------------
    # updating
    # ------------------------------------------------------------------
    def update(self, changes: Mapping[str, Any] | None = None, **fields: Any) -> CoverConfig:
        """Apply ``changes`` atomically; the whole new value is validated first."""

        payload = dict(changes or {})
        payload.update(fields)
        return self._apply(payload, check_references=True)

    def _apply(self, payload: Mapping[str, Any], *, check_references: bool) -> CoverConfig:
        if not payload:
            return self.config

        with self._lock:
            data = self._config.model_dump()
            data.update(payload)
            try:
                new_config = CoverConfig(**data)
            except ValidationError as exc:
                raise ConfigUpdateError("Invalid configuration update", exc.errors()) from exc
            if check_references:
                self._check_references(new_config, payload)
            if new_config == self._config:
                return self._config
            self._config = new_config
            self._version += 1
            _LOGGER.debug("Configuration updated to version %d: %s", self._version, sorted(payload))
            return new_config

    def update_field(self, key: str, value: Any) -> CoverConfig:
        return self.update({key: value})

    def _check_references(self, config: CoverConfig, payload: Mapping[str, Any]) -> None:
        if "font_family" in payload and not self.fonts.knows(config.font_family):
            raise ConfigUpdateError(f"Unknown font family: {config.font_family}")
        ref = config.background_image_ref
        if "background_image_ref" in payload and ref is not None and ref not in self.assets:
            raise ConfigUpdateError(f"Unknown background image: {ref}")

    def snapshot_export_fields(self) -> ExportSnapshot:
        config = self.config
        return ExportSnapshot(
            background_image_ref=config.background_image_ref,
            blur_amount=config.blur_amount,
            brightness_percent=config.brightness_percent,
        )

    def restore_export_fields(self, snapshot: ExportSnapshot) -> CoverConfig:
        # the snapshot held before the export, even if its asset has gone since
        return self._apply(snapshot.as_update(), check_references=False)

    # ------------------------------------------------------------------
    # uploads
    # ------------------------------------------------------------------
    def upload_background_image(self, filename: str, data: bytes) -> str:
        """Store an uploaded image and switch the background to it."""

        slug = check_upload(filename, data, ALLOWED_EXT)
        decode_image(data)
        ref = self.assets.put(data, kind=UPLOAD_KIND, filename=slug)
        try:
            self.update(background_image_ref=ref, background_mode=BackgroundMode.IMAGE)
        except ConfigUpdateError:
            self.assets.discard(ref)
            raise
        _LOGGER.info("Background image %s stored as %s", slug, ref)
        return ref

    async def upload_font(self, filename: str, data: bytes) -> RegisteredFont:
        """Register an uploaded font and activate it once it is ready.

        ``font_family`` only changes after registration succeeded; on
        :class:`~coverforge.errors.FontLoadError` the configuration is left
        untouched.
        """

        check_upload(filename, data, FONT_EXT)
        name = self.fonts.unique_name()
        font = await self.fonts.register(name, data)
        self.update(font_family=font.name)
        return font


__all__ = ["CoverSession", "ExportSnapshot", "UPLOAD_KIND"]
