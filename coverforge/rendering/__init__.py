"""Rendering of the cover: composition, live preview and export rasterizer."""

from .compositor import compose
from .filters import BLUR_MULTIPLIER, apply_filter_chain, bake, bake_async, needs_baking
from .fonts import PRESET_FONTS, FontRegistry, RegisteredFont
from .preview import PreviewRenderer, PreviewResult
from .rasterizer import PillowRasterizer, Rasterizer
from .scaler import ViewportScaler, compute_scale

__all__ = [
    "BLUR_MULTIPLIER",
    "PRESET_FONTS",
    "FontRegistry",
    "PillowRasterizer",
    "PreviewRenderer",
    "PreviewResult",
    "Rasterizer",
    "RegisteredFont",
    "ViewportScaler",
    "apply_filter_chain",
    "bake",
    "bake_async",
    "compose",
    "compute_scale",
    "needs_baking",
]
