from __future__ import annotations

import asyncio
import io
import logging
import os
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from PIL import ImageFont

from ..errors import FontLoadError

_LOGGER = logging.getLogger(__name__)

CUSTOM_FONT_PREFIX = "CustomFont"

# Display names of the selectable presets, keyed by their family value.
PRESET_FONTS: Dict[str, str] = {
    "sans-serif": "System Sans",
    "monospace": "System Mono",
    "serif": "Serif",
    "Impact": "Impact",
    '"Arial Black"': "Arial Black",
}

PRESET_FILES: Dict[str, Sequence[str]] = {
    "sans-serif": ("DejaVuSans-Bold.ttf", "LiberationSans-Bold.ttf", "Arial Bold.ttf", "DejaVuSans.ttf"),
    "monospace": ("DejaVuSansMono-Bold.ttf", "LiberationMono-Bold.ttf", "DejaVuSansMono.ttf"),
    "serif": ("DejaVuSerif-Bold.ttf", "LiberationSerif-Bold.ttf", "DejaVuSerif.ttf"),
    "Impact": ("Impact.ttf", "impact.ttf", "Anton-Regular.ttf"),
    '"Arial Black"': ("Arial Black.ttf", "ariblk.ttf", "Arial_Black.ttf"),
}

FALLBACK_FILES: Sequence[str] = (
    "DejaVuSans.ttf",
    "LiberationSans-Regular.ttf",
    "Arial.ttf",
)

DEFAULT_SEARCH_PATHS: Sequence[Path] = (
    Path("/usr/share/fonts/truetype/dejavu"),
    Path("/usr/share/fonts/truetype/liberation"),
    Path("/usr/share/fonts"),
    Path("/usr/local/share/fonts"),
)

FontType = ImageFont.FreeTypeFont | ImageFont.ImageFont


@lru_cache(maxsize=128)
def _load_font_file(path: str, size: int) -> ImageFont.FreeTypeFont:
    return ImageFont.truetype(path, size=size)


@dataclass(frozen=True)
class RegisteredFont:
    name: str
    data: bytes = field(repr=False)
    registered_at: datetime


class FontRegistry:
    """Session-scoped font table.

    Uploaded fonts are validated with FreeType before they become visible.
    Registrations accumulate for the lifetime of the session: a name is
    never replaced or removed once registered.
    """

    def __init__(
        self,
        search_paths: Iterable[Path] | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        extra = [Path(p) for p in (search_paths or [])]
        self._search_paths = extra + [p for p in DEFAULT_SEARCH_PATHS if p.exists()]
        self._fonts: Dict[str, RegisteredFont] = {}
        self._cache: Dict[Tuple[str, int], FontType] = {}
        self._lock = threading.Lock()
        self._clock = clock

    # ------------------------------------------------------------------
    # registration
    # ------------------------------------------------------------------
    def unique_name(self) -> str:
        base = f"{CUSTOM_FONT_PREFIX}_{int(self._clock() * 1000)}"
        candidate = base
        counter = 1
        with self._lock:
            while candidate in self._fonts:
                candidate = f"{base}_{counter}"
                counter += 1
        return candidate

    async def register(self, name: str, data: bytes) -> RegisteredFont:
        """Validate and activate ``data`` under ``name``."""

        if not name:
            raise FontLoadError("Font name must not be empty")
        if name in PRESET_FONTS:
            raise FontLoadError(f"'{name}' is a preset font family")
        with self._lock:
            existing = self._fonts.get(name)
        if existing is not None:
            if existing.data == data:
                return existing
            raise FontLoadError(f"Font '{name}' is already registered")

        await asyncio.to_thread(_validate_font, bytes(data))

        with self._lock:
            # a concurrent registration of the same name may have finished first
            existing = self._fonts.get(name)
            if existing is not None:
                if existing.data == data:
                    return existing
                raise FontLoadError(f"Font '{name}' is already registered")
            font = RegisteredFont(name=name, data=bytes(data), registered_at=datetime.now())
            self._fonts[name] = font
        _LOGGER.info("Registered font %s (%d bytes)", name, len(data))
        return font

    def is_registered(self, name: str) -> bool:
        with self._lock:
            return name in self._fonts

    def registered(self) -> List[str]:
        with self._lock:
            return list(self._fonts)

    def presets(self) -> Dict[str, str]:
        return dict(PRESET_FONTS)

    def knows(self, family: str) -> bool:
        return family in PRESET_FONTS or self.is_registered(family)

    # ------------------------------------------------------------------
    # lookup
    # ------------------------------------------------------------------
    def resolve(self, family: str | None, size: int) -> FontType:
        size = max(1, int(round(size)))
        key = (family or "", size)
        with self._lock:
            cached = self._cache.get(key)
            registered = self._fonts.get(family) if family else None
        if cached is not None:
            return cached

        if registered is not None:
            font: FontType = ImageFont.truetype(io.BytesIO(registered.data), size=size)
        else:
            font = self._load_preset(family, size)
        with self._lock:
            self._cache[key] = font
        return font

    def _load_preset(self, family: str | None, size: int) -> FontType:
        candidates: List[str] = list(PRESET_FILES.get(family or "", ()))
        candidates.extend(FALLBACK_FILES)
        for candidate in candidates:
            path = self._find(candidate)
            if path is None:
                continue
            try:
                return _load_font_file(path, size)
            except OSError:
                _LOGGER.debug("Could not load font file %s", path)
        for candidate in candidates:
            # let Pillow search the platform font directories
            try:
                return _load_font_file(candidate, size)
            except OSError:
                continue
        _LOGGER.warning("No font file found for %s, using Pillow default", family)
        return ImageFont.load_default(size=size)

    def _find(self, name: str) -> Optional[str]:
        if os.path.isabs(name) and Path(name).exists():
            return name
        for base in self._search_paths:
            path = base / name
            if path.exists():
                return str(path)
        return None


def _validate_font(data: bytes) -> None:
    try:
        font = ImageFont.truetype(io.BytesIO(data), size=16)
        font.getbbox("Hg")
    except (OSError, ValueError) as exc:
        raise FontLoadError(f"Invalid font data: {exc}") from exc


__all__ = [
    "CUSTOM_FONT_PREFIX",
    "FontRegistry",
    "FontType",
    "PRESET_FONTS",
    "RegisteredFont",
]
