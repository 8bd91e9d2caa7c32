from __future__ import annotations

import math
import threading
from typing import Optional, Tuple

from PIL import Image

from ..models.config import VIRTUAL_HEIGHT, VIRTUAL_WIDTH


def compute_scale(width: Optional[float], virtual_width: int = VIRTUAL_WIDTH) -> float:
    """Return ``width / virtual_width``, or ``1.0`` when the width is unusable."""

    if width is None:
        return 1.0
    try:
        width = float(width)
    except (TypeError, ValueError):
        return 1.0
    if not math.isfinite(width) or width <= 0:
        return 1.0
    return width / virtual_width


class ViewportScaler:
    """Maps the fixed virtual canvas onto the available preview width."""

    def __init__(self, virtual_size: Tuple[int, int] = (VIRTUAL_WIDTH, VIRTUAL_HEIGHT)) -> None:
        self.virtual_size = virtual_size
        self._scale = 1.0
        self._lock = threading.Lock()

    @property
    def current_scale(self) -> float:
        with self._lock:
            return self._scale

    def resize(self, container_width: Optional[float], padding: float = 0) -> float:
        available = None if container_width is None else float(container_width) - float(padding)
        scale = compute_scale(available, self.virtual_size[0])
        with self._lock:
            self._scale = scale
        return scale

    @property
    def preview_size(self) -> Tuple[int, int]:
        scale = self.current_scale
        width, height = self.virtual_size
        return max(1, round(width * scale)), max(1, round(height * scale))

    def apply(self, composition: Image.Image, scale: Optional[float] = None) -> Image.Image:
        """Uniformly scale a full-size composition, anchored at the top-left."""

        if composition.size != self.virtual_size:
            raise ValueError(f"Expected a {self.virtual_size} composition, got {composition.size}")
        factor = self.current_scale if scale is None else scale
        width, height = self.virtual_size
        target = (max(1, round(width * factor)), max(1, round(height * factor)))
        if target == composition.size:
            return composition.copy()
        return composition.resize(target, Image.Resampling.LANCZOS)


__all__ = ["ViewportScaler", "compute_scale"]
